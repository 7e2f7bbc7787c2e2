"""Cache Snapshots - immutable views of the remote catalog and the caller's balances.

Invariants:
    - Snapshots are never mutated; a refresh builds a new one and swaps the reference
    - Each snapshot carries the session generation it was fetched under
    - Catalog anomalies (token counts that do not add up, duplicate ids) are reported,
      never raised
    - Balances are non-negative; properties not held read as 0
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from realtoken.schemas.property import Property


def _empty_mapping() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class CatalogSnapshot:
    """All properties of one catalog read, indexed by id."""

    properties: tuple[Property, ...] = ()
    generation: int = 0
    _by_id: Mapping[int, Property] = field(
        default_factory=_empty_mapping, repr=False, compare=False,
    )

    @classmethod
    def build(cls, properties: Iterable[Property], generation: int) -> "CatalogSnapshot":
        items = tuple(properties)
        return cls(
            properties=items,
            generation=generation,
            _by_id=MappingProxyType({p.id: p for p in items}),
        )

    def __len__(self) -> int:
        return len(self.properties)

    def __iter__(self) -> Iterator[Property]:
        return iter(self.properties)

    def get(self, property_id: int) -> Property | None:
        return self._by_id.get(property_id)

    @property
    def is_empty(self) -> bool:
        return not self.properties

    @property
    def inconsistent_ids(self) -> list[int]:
        return [p.id for p in self.properties if not p.is_consistent]

    @property
    def duplicate_ids(self) -> list[int]:
        seen: set[int] = set()
        dupes: list[int] = []
        for p in self.properties:
            if p.id in seen and p.id not in dupes:
                dupes.append(p.id)
            seen.add(p.id)
        return dupes


@dataclass(frozen=True)
class LedgerSnapshot:
    """The caller's token balances, keyed by property id."""

    balances: Mapping[int, int] = field(default_factory=_empty_mapping)
    generation: int = 0

    @classmethod
    def build(cls, balances: Mapping[int, int], generation: int) -> "LedgerSnapshot":
        return cls(balances=MappingProxyType(dict(balances)), generation=generation)

    def balance_for(self, property_id: int) -> int:
        return self.balances.get(property_id, 0)

    @property
    def is_empty(self) -> bool:
        return not self.balances

    @property
    def total_tokens(self) -> int:
        return sum(self.balances.values())

    @property
    def held_property_ids(self) -> list[int]:
        return sorted(pid for pid, amount in self.balances.items() if amount > 0)
