"""
Cost estimation per model family.

Maps (model, token counts) to an estimated USD cost using fixed
per-million-token rate tables selected by substring match on the model name.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Tuple, Union

ONE_MILLION = Decimal("1000000")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class ModelPricing:
    """USD rates per million tokens for one model tier."""
    input_per_mtok: Decimal
    output_per_mtok: Decimal
    cache_read_per_mtok: Decimal = Decimal("0")  # heavily discounted input
    cache_write_per_mtok: Decimal = Decimal("0")  # premium over input


@dataclass(frozen=True)
class FamilyPricing:
    """Rate tiers for one provider family.

    Tiers are checked in order; the first whose marker occurs in the
    lowercased model name wins, otherwise `default` applies.
    """
    tiers: Tuple[Tuple[str, ModelPricing], ...]
    default: ModelPricing

    def get_pricing(self, model: str) -> ModelPricing:
        """Select the rate tier for a model identifier.

        Args:
            model: Model identifier, matched case-insensitively

        Returns:
            ModelPricing for the matching tier
        """
        model_lower = (model or "").lower()
        for marker, pricing in self.tiers:
            if marker in model_lower:
                return pricing
        return self.default


# Fixed pricing tables - no dynamic fetching
PRICING_TABLE: Dict[str, FamilyPricing] = {
    "claude": FamilyPricing(
        tiers=(
            ("opus", ModelPricing(
                input_per_mtok=Decimal("15.00"),
                output_per_mtok=Decimal("75.00"),
                cache_read_per_mtok=Decimal("1.50"),
                cache_write_per_mtok=Decimal("18.75"),
            )),
            ("haiku", ModelPricing(
                input_per_mtok=Decimal("0.25"),
                output_per_mtok=Decimal("1.25"),
                cache_read_per_mtok=Decimal("0.025"),
                cache_write_per_mtok=Decimal("0.3125"),
            )),
        ),
        # Sonnet and everything unrecognised
        default=ModelPricing(
            input_per_mtok=Decimal("3.00"),
            output_per_mtok=Decimal("15.00"),
            cache_read_per_mtok=Decimal("0.30"),
            cache_write_per_mtok=Decimal("3.75"),
        ),
    ),
    "gemini": FamilyPricing(
        tiers=(
            ("flash", ModelPricing(
                input_per_mtok=Decimal("0.15"),
                output_per_mtok=Decimal("0.60"),
            )),
        ),
        default=ModelPricing(
            input_per_mtok=Decimal("1.25"),
            output_per_mtok=Decimal("10.00"),
        ),
    ),
    "zai": FamilyPricing(
        tiers=(),
        default=ModelPricing(
            input_per_mtok=Decimal("1.00"),
            output_per_mtok=Decimal("4.00"),
        ),
    ),
}


def get_family_pricing(family: str) -> FamilyPricing:
    """Get the rate tiers for a provider family.

    Raises:
        ValueError: If the family has no pricing table
    """
    if family not in PRICING_TABLE:
        raise ValueError(f"Unsupported provider family: {family}")
    return PRICING_TABLE[family]


def round_usd(amount: Union[Decimal, float, int]) -> float:
    """Round a USD amount to cents, halves away from zero."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def estimate_cost(
    family: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int = 0,
    cache_write_tokens: int = 0,
) -> float:
    """Estimate the USD cost of a model's token usage.

    Args:
        family: Provider family ("claude", "gemini", "zai")
        model: Model identifier used to pick the rate tier
        input_tokens: Uncached input tokens
        output_tokens: Output tokens
        cache_read_tokens: Tokens served from the prompt cache
        cache_write_tokens: Tokens written to the prompt cache

    Returns:
        Cost rounded to 2 decimal places; 0.0 for zero tokens or a blank
        model name

    Raises:
        ValueError: If the family has no pricing table
    """
    pricing = get_family_pricing(family).get_pricing(model)
    if not model or not model.strip():
        return 0.0

    total = (
        Decimal(input_tokens) * pricing.input_per_mtok
        + Decimal(output_tokens) * pricing.output_per_mtok
        + Decimal(cache_read_tokens) * pricing.cache_read_per_mtok
        + Decimal(cache_write_tokens) * pricing.cache_write_per_mtok
    ) / ONE_MILLION

    return round_usd(total)


def sum_costs(costs) -> float:
    """Add already-rounded per-model costs without float drift."""
    total = sum((Decimal(str(cost)) for cost in costs), Decimal("0"))
    return round_usd(total)
