from typing import Optional


def format_amount(value: Optional[float]) -> Optional[str]:
    """Two-decimal display form of a settlement amount."""
    if value is None:
        return None
    return f"{value:.2f}"
