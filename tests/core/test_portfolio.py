"""Tests for portfolio figures - purchasability, quotes, sale progress, holdings."""

from realtoken.core import portfolio

from tests.core.factories import catalog, ledger, make_property


def test_is_purchasable_requires_available_tokens():
    assert portfolio.is_purchasable(make_property(available=1, sold=9))
    assert not portfolio.is_purchasable(make_property(available=0, sold=10))


def test_sold_out_status_not_purchasable():
    prop = make_property(available=5, status={"agotado": None})
    assert not portfolio.is_purchasable(prop)


def test_purchase_cost_is_token_price_times_amount():
    assert portfolio.purchase_cost(make_property(token_price=250.0), 4) == 1000.0


def test_sale_progress_percent():
    assert portfolio.sale_progress(make_property(available=2, sold=1)) == 33.33


def test_sale_progress_zero_tokens():
    assert portfolio.sale_progress(make_property(available=0, sold=0)) == 0.0


def test_holdings_value_ignores_unknown_properties():
    cat = catalog(make_property(id=1, token_price=10.0), make_property(id=2, token_price=5.0))
    led = ledger({1: 3, 2: 2, 9: 100})
    assert portfolio.holdings_value(cat, led) == 40.0
    assert portfolio.total_tokens(led) == 105
