"""Position sizing — pure math, no I/O.

Calculates the trade size in standard lots from account equity, risk
percentage, stop-loss distance and the symbol's pip value.
"""

import math

LOT_STEP = 0.01


def calculate_lots(
    equity: float,
    risk_pct: float,
    sl_distance_pips: float,
    pip_value_per_lot: float = 10.0,
) -> float:
    """Calculate position size in lots.

    Formula::

        risk_amount = equity × (risk_pct / 100)
        lots        = risk_amount / (sl_distance_pips × pip_value_per_lot)

    The result is floored to the 0.01-lot step.

    Args:
        equity: Current account equity (e.g. 10_000.0).
        risk_pct: Percentage of equity to risk per trade (e.g. 1.0 for 1 %).
        sl_distance_pips: Stop-loss distance in pips (e.g. 30).
        pip_value_per_lot: Account-currency value of one pip on one lot.

    Returns:
        Lots, never negative.  0.0 when the stop distance or pip value is
        zero.

    Raises:
        ValueError: If *equity* or *risk_pct* is negative.
    """
    if equity < 0:
        raise ValueError(f"equity must not be negative, got {equity}")
    if risk_pct < 0:
        raise ValueError(f"risk_pct must not be negative, got {risk_pct}")

    denominator = sl_distance_pips * pip_value_per_lot
    if denominator <= 0:
        return 0.0

    risk_amount = equity * (risk_pct / 100.0)
    lots = risk_amount / denominator
    # Small epsilon so 0.3 does not floor to 0.29 through float noise
    steps = math.floor(lots / LOT_STEP + 1e-9)
    return max(0.0, round(steps * LOT_STEP, 2))
