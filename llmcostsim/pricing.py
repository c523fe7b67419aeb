# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Per-model token price lists, and a catalog to look them up by model ID

All prices are expressed in currency per 1,000 tokens. Optional prices (for features like prompt
caching or batch inference) may be `None` when a model doesn't offer them: The cost engine treats
a missing price as a zero contribution rather than an error, so callers should check
`has_missing_cache_prices` and surface a caveat that real costs may be understated.

A `PricingCatalog` can be loaded from a local or Cloud JSON file laid out as::

    {
        "metadata": {"last_updated": "...", "currency": "USD"},
        "models": [
            {
                "id": "...", "name": "...", "provider": "...",
                "pricing": {"input_1k": 0.003, "output_1k": 0.015, "cache_write_1k": ..., ...},
                "constraints": {"supports_caching": true, "supported_tiers": ["standard"], ...}
            }
        ]
    }
"""

# Python Built-Ins:
from __future__ import annotations
from dataclasses import dataclass, field
import json
import logging
import os
from typing import Iterator, Literal, NamedTuple

# External Dependencies:
import jmespath
from upath import UPath as Path

# Local Dependencies:
from .constants import TIER_MULTIPLIERS
from .serde import JSONableBase

logger = logging.getLogger(__name__)

CacheTTL = Literal["5min", "1hour"]
PricingTier = Literal["standard", "priority", "flex"]
CACHE_TTLS: tuple[str, ...] = ("5min", "1hour")


def validate_cache_ttl(ttl: str) -> None:
    if ttl not in CACHE_TTLS:
        raise ValueError(f"Unknown cache TTL '{ttl}': Expected one of {CACHE_TTLS}")


class Rates(NamedTuple):
    """Per-1k-token prices for one computation, after tier and TTL have been applied"""

    input: float
    output: float
    cache_write: float
    cache_read: float
    batch_input: float
    batch_output: float


@dataclass(frozen=True)
class ModelCapabilities(JSONableBase):
    supports_caching: bool = False
    supports_1hour_cache: bool = False
    supports_batch: bool = False


@dataclass(frozen=True)
class PriceList(JSONableBase):
    """Token prices (per 1,000 tokens) and capability flags for one model

    Args:
        input_price: Standard price for (uncached) input tokens
        output_price: Standard price for output tokens
        cache_write_price_5min: Price for writing tokens to a prompt cache with a 5 minute TTL
        cache_write_price_1hour: Price for writing tokens to a prompt cache with a 1 hour TTL
        cache_read_price: Price for input tokens read from the prompt cache
        batch_input_price: Discounted input price for batch inference
        batch_output_price: Discounted output price for batch inference
        capabilities: Which optional features the model supports
    """

    input_price: float
    output_price: float
    cache_write_price_5min: float | None = None
    cache_write_price_1hour: float | None = None
    cache_read_price: float | None = None
    batch_input_price: float | None = None
    batch_output_price: float | None = None
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)

    def __post_init__(self):
        for name in ("input_price", "output_price"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

    @property
    def has_missing_cache_prices(self) -> bool:
        """True if the model supports caching, but its cache write or read price is unknown"""
        return self.capabilities.supports_caching and (
            self.cache_write_price_5min is None or self.cache_read_price is None
        )

    @property
    def batch_available(self) -> bool:
        """Batch inference needs both the capability and a published batch input price"""
        return self.capabilities.supports_batch and self.batch_input_price is not None

    def effective_cache_ttl(self, ttl: CacheTTL) -> CacheTTL:
        """The TTL that will actually apply: 1-hour caching falls back to 5 minutes if unsupported"""
        validate_cache_ttl(ttl)
        if ttl == "1hour" and self.capabilities.supports_1hour_cache:
            return "1hour"
        return "5min"

    def cache_write_price(self, ttl: CacheTTL) -> float:
        """Cache write price for the requested TTL, falling back to 5-minute pricing, then zero"""
        validate_cache_ttl(ttl)
        if ttl == "1hour" and self.cache_write_price_1hour is not None:
            return self.cache_write_price_1hour
        return self.cache_write_price_5min or 0.0

    def rates(self, tier_multiplier: float = 1.0, ttl: CacheTTL = "5min") -> Rates:
        """Resolve all prices needed by the cost formulas, with `None` mapped to zero

        Batch prices fall back to the standard input/output prices when absent.
        """
        if tier_multiplier < 0:
            raise ValueError(f"tier_multiplier must be non-negative, got {tier_multiplier}")
        return Rates(
            input=self.input_price * tier_multiplier,
            output=self.output_price * tier_multiplier,
            cache_write=self.cache_write_price(ttl) * tier_multiplier,
            cache_read=(self.cache_read_price or 0.0) * tier_multiplier,
            batch_input=(
                self.batch_input_price
                if self.batch_input_price is not None
                else self.input_price
            )
            * tier_multiplier,
            batch_output=(
                self.batch_output_price
                if self.batch_output_price is not None
                else self.output_price
            )
            * tier_multiplier,
        )

    @classmethod
    def from_dict(cls, raw: dict, **kwargs) -> PriceList:
        raw_args = {**raw}
        if isinstance(raw_args.get("capabilities"), dict):
            raw_args["capabilities"] = ModelCapabilities.from_dict(raw_args["capabilities"])
        return super().from_dict(raw_args, **kwargs)

    @classmethod
    def from_catalog_entry(cls, entry: dict) -> PriceList:
        """Build a PriceList from one `models[]` entry of a catalog JSON file"""
        return cls(
            input_price=float(jmespath.search("pricing.input_1k", entry)),
            output_price=float(jmespath.search("pricing.output_1k", entry)),
            cache_write_price_5min=jmespath.search("pricing.cache_write_1k", entry),
            cache_write_price_1hour=jmespath.search("pricing.cache_write_1hour_1k", entry),
            cache_read_price=jmespath.search("pricing.cache_read_1k", entry),
            batch_input_price=jmespath.search("pricing.batch_input_1k", entry),
            batch_output_price=jmespath.search("pricing.batch_output_1k", entry),
            capabilities=ModelCapabilities(
                supports_caching=bool(jmespath.search("constraints.supports_caching", entry)),
                supports_1hour_cache=bool(
                    jmespath.search("constraints.supports_1hour_cache", entry)
                ),
                supports_batch=bool(jmespath.search("constraints.supports_batch", entry)),
            ),
        )


@dataclass(frozen=True)
class ModelPricing(JSONableBase):
    """A catalog entry: A model's identity, its PriceList, and tier/TTL constraints"""

    id: str
    prices: PriceList
    name: str | None = None
    provider: str | None = None
    supported_tiers: tuple[str, ...] = ("standard",)
    min_cache_ttl_seconds: int | None = None

    def effective_tier(self, tier: PricingTier) -> PricingTier:
        """Requested tier if this model offers it, otherwise `standard`"""
        if tier not in TIER_MULTIPLIERS:
            raise ValueError(
                f"Unknown pricing tier '{tier}': Expected one of {list(TIER_MULTIPLIERS)}"
            )
        return tier if tier in self.supported_tiers else "standard"

    def tier_multiplier(self, tier: PricingTier = "standard") -> float:
        return TIER_MULTIPLIERS[self.effective_tier(tier)]

    def batch_available_for_tier(self, tier: PricingTier = "standard") -> bool:
        """Amazon-provided models only offer batch inference on the standard tier"""
        if not self.prices.batch_available:
            return False
        return self.provider != "Amazon" or self.effective_tier(tier) == "standard"

    @classmethod
    def from_dict(cls, raw: dict, **kwargs) -> ModelPricing:
        raw_args = {**raw}
        if isinstance(raw_args.get("prices"), dict):
            raw_args["prices"] = PriceList.from_dict(raw_args["prices"])
        if "supported_tiers" in raw_args:
            raw_args["supported_tiers"] = tuple(raw_args["supported_tiers"])
        return super().from_dict(raw_args, **kwargs)

    @classmethod
    def from_catalog_entry(cls, entry: dict) -> ModelPricing:
        tiers = jmespath.search("constraints.supported_tiers", entry) or ["standard"]
        return cls(
            id=entry["id"],
            name=entry.get("name"),
            provider=entry.get("provider"),
            prices=PriceList.from_catalog_entry(entry),
            supported_tiers=tuple(tiers),
            min_cache_ttl_seconds=jmespath.search("constraints.min_cache_ttl_seconds", entry),
        )


@dataclass
class PricingCatalog:
    """Read-only mapping from model ID to `ModelPricing`"""

    models: dict[str, ModelPricing] = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)

    def __getitem__(self, model_id: str) -> ModelPricing:
        try:
            return self.models[model_id]
        except KeyError:
            raise KeyError(
                f"Model '{model_id}' not found in pricing catalog. Known models: "
                f"{list(self.models)}"
            ) from None

    def __contains__(self, model_id: object) -> bool:
        return model_id in self.models

    def __iter__(self) -> Iterator[ModelPricing]:
        return iter(self.models.values())

    def __len__(self) -> int:
        return len(self.models)

    @property
    def currency(self) -> str:
        return self.metadata.get("currency", "USD")

    @classmethod
    def from_dict(cls, raw: dict) -> PricingCatalog:
        """Parse the catalog JSON layout described in this module's docstring"""
        models: dict[str, ModelPricing] = {}
        for entry in jmespath.search("models[]", raw) or []:
            model = ModelPricing.from_catalog_entry(entry)
            if model.id in models:
                raise ValueError(f"Duplicate model ID '{model.id}' in pricing catalog")
            if model.prices.has_missing_cache_prices:
                logger.warning(
                    "Model '%s' supports caching but is missing cache prices: Cache costs will "
                    "be treated as zero and totals may be understated",
                    model.id,
                )
            models[model.id] = model
        return cls(models=models, metadata=raw.get("metadata", {}))

    @classmethod
    def load(cls, path: os.PathLike | str) -> PricingCatalog:
        """Load a catalog from a (local or Cloud) JSON file"""
        path = Path(path)
        with path.open("r") as f:
            raw = json.load(f)
        catalog = cls.from_dict(raw)
        logger.info("Loaded pricing for %s models from %s", len(catalog), path)
        return catalog
