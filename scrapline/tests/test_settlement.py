import math

import pytest

from scrapline.exceptions import ValidationError
from scrapline.settlement import compute_total


def test_compute_total():
    assert compute_total(150, 3.5) == 525
    assert compute_total(40, 4.8) == pytest.approx(192)


def test_compute_total_is_not_rounded():
    assert compute_total(0.1, 0.7) == 0.1 * 0.7


@pytest.mark.parametrize(
    "unit_price, actual_weight",
    [(0, 10), (10, 0), (-5, 2), (math.inf, 1), (1, math.nan), (None, 1), (True, 2)],
)
def test_compute_total_rejects_invalid_input(unit_price, actual_weight):
    with pytest.raises(ValidationError):
        compute_total(unit_price, actual_weight)
