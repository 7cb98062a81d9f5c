# roofing_estimator/services/money_utils.py
from decimal import Decimal, ROUND_HALF_UP

DEFAULT_RANGE_LOW = 0.85
DEFAULT_RANGE_HIGH = 1.25


def round_half_up(value, places=0):
    """
    Round the way a customer expects: halves go up, never to even.

    Returns an int for whole units and a float otherwise.
    """
    quantum = Decimal(1).scaleb(-places)
    result = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if places == 0:
        return int(result)
    return float(result)


def to_cents(value):
    if value is None:
        return None
    return round_half_up(value, 2)


def whole_units(value):
    """
    Round a computed amount to whole units, settling it to cents first.

    Chained float multiplication can land just under a half, e.g.
    42693.749999999993 for 42693.75.
    """
    return round_half_up(round_half_up(value, 2))


def three_tier_prices(price, range_low=DEFAULT_RANGE_LOW, range_high=DEFAULT_RANGE_HIGH):
    """
    Spread a single computed price into (low, likely, high) whole-unit prices.

    The likely price is rounded first and the spread is taken from the
    rounded value, so low == round(likely * range_low) always holds.
    """
    likely = whole_units(price)
    return whole_units(likely * range_low), likely, whole_units(likely * range_high)
