import math

from scrapline.exceptions import ValidationError


def require_positive(name: str, value) -> float:
    """Coerce to float and reject non-finite or non-positive values."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}", original_error=e)
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"{name} must be a finite number greater than 0, got {value!r}")
    return number


def compute_total(unit_price, actual_weight) -> float:
    """Payable amount for a pickup.

    Plain multiplication: no currency rounding, presentation formats to two
    decimals.
    """
    return require_positive("unit_price", unit_price) * require_positive(
        "actual_weight", actual_weight
    )
