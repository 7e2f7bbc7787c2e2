"""Property Schema - catalog record as reported by the remote ledger.

Invariants:
    - id is unique within a catalog snapshot (checked by CatalogSnapshot)
    - available_tokens + sold_tokens == total_tokens is enforced server-side;
      a violation is exposed via is_consistent, never raised
    - status normalised to PropertyStatus from plain strings, Candid variants
      ({"disponible": null}) and the ledger's Spanish spellings

Design Decisions:
    - AliasChoices for wire names: camelCase and legacy `price` / `area` accepted
    - frozen model: snapshots are immutable, refresh replaces them wholesale
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from realtoken.core.domain_types import PropertyStatus


_STATUS_ALIASES: dict[str, PropertyStatus] = {
    "available": PropertyStatus.AVAILABLE,
    "disponible": PropertyStatus.AVAILABLE,
    "under_construction": PropertyStatus.UNDER_CONSTRUCTION,
    "underconstruction": PropertyStatus.UNDER_CONSTRUCTION,
    "en_construccion": PropertyStatus.UNDER_CONSTRUCTION,
    "en construcción": PropertyStatus.UNDER_CONSTRUCTION,
    "en construccion": PropertyStatus.UNDER_CONSTRUCTION,
    "sold_out": PropertyStatus.SOLD_OUT,
    "soldout": PropertyStatus.SOLD_OUT,
    "agotado": PropertyStatus.SOLD_OUT,
}


def parse_property_status(raw: object) -> PropertyStatus:
    """Normalise a wire status (str or single-key variant dict)."""
    if isinstance(raw, PropertyStatus):
        return raw
    if isinstance(raw, dict):
        if len(raw) != 1:
            raise ValueError(f"status variant must have exactly one tag, got {list(raw)}")
        raw = next(iter(raw))
    if not isinstance(raw, str):
        raise ValueError(f"unsupported status value: {raw!r}")
    key = raw.strip().lower().replace("-", "_")
    try:
        return _STATUS_ALIASES[key]
    except KeyError:
        raise ValueError(f"unknown property status: {raw!r}") from None


class Property(BaseModel):
    """One tokenized real-estate listing."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int = Field(ge=0)
    title: str
    location: str = ""
    description: str = ""
    price_total: float = Field(
        ge=0, validation_alias=AliasChoices("price_total", "priceTotal", "price"),
    )
    token_price: float = Field(
        ge=0, validation_alias=AliasChoices("token_price", "tokenPrice"),
    )
    total_tokens: int = Field(
        ge=0, validation_alias=AliasChoices("total_tokens", "totalTokens"),
    )
    available_tokens: int = Field(
        ge=0, validation_alias=AliasChoices("available_tokens", "availableTokens"),
    )
    sold_tokens: int = Field(
        ge=0, validation_alias=AliasChoices("sold_tokens", "soldTokens"),
    )
    status: PropertyStatus = PropertyStatus.AVAILABLE
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    area_sqm: float = Field(
        0, ge=0, validation_alias=AliasChoices("area_sqm", "areaSqm", "area"),
    )
    image_url: str | None = Field(
        None, validation_alias=AliasChoices("image_url", "imageUrl"),
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalise_status(cls, v: object) -> PropertyStatus:
        return parse_property_status(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def unwrap_optional(cls, v: object) -> object:
        """Candid opt values arrive as [] / [value]."""
        if isinstance(v, list):
            return v[0] if v else None
        return v

    @property
    def is_consistent(self) -> bool:
        return self.available_tokens + self.sold_tokens == self.total_tokens
