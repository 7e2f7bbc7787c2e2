"""Portfolio Figures - derived numbers shown next to listings and holdings.

Invariants:
    - Pure functions over snapshots; results are display figures, never written back
    - sale_progress is 0.0 for a property with no tokens
"""

from realtoken.core.domain_types import PropertyStatus
from realtoken.core.snapshots import CatalogSnapshot, LedgerSnapshot
from realtoken.schemas.property import Property


def is_purchasable(prop: Property) -> bool:
    """Buy control is enabled only while tokens remain and the listing is not sold out."""
    return prop.available_tokens > 0 and prop.status != PropertyStatus.SOLD_OUT


def purchase_cost(prop: Property, amount: int) -> float:
    """Quoted cost of `amount` tokens at the listed token price."""
    return prop.token_price * amount


def sale_progress(prop: Property) -> float:
    """Percent of tokens sold, 0-100."""
    if prop.total_tokens <= 0:
        return 0.0
    return round(prop.sold_tokens / prop.total_tokens * 100, 2)


def holdings_value(catalog: CatalogSnapshot, ledger: LedgerSnapshot) -> float:
    """Value of held tokens at current token prices. Unknown properties count as 0."""
    total = 0.0
    for property_id, amount in ledger.balances.items():
        prop = catalog.get(property_id)
        if prop is not None:
            total += prop.token_price * amount
    return total


def total_tokens(ledger: LedgerSnapshot) -> int:
    return ledger.total_tokens
