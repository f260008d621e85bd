"""
Domain: Fund accounting

Pure functions over coin lists:
  - meets_threshold: does an attached payment count as a donation
  - split: proportional share of a balance, rounded down per coin
  - merge_coins: fold duplicate denominations together
"""
from __future__ import annotations

import math
from decimal import Decimal, localcontext
from typing import Dict, Iterable, List

from ..kernel.schema import Coin


def meets_threshold(funds: Iterable[Coin], minimum: Coin) -> bool:
    """
    True when minimum.amount is zero, or some coin of minimum.denom carries
    at least minimum.amount.

    A zero minimum counts every donation regardless of denomination,
    including a donation with no funds at all.
    """
    if minimum.amount == 0:
        return True
    return any(c.denom == minimum.denom and c.amount >= minimum.amount for c in funds)


def split(balance: Iterable[Coin], part: Decimal) -> List[Coin]:
    shares: List[Coin] = []
    # Default precision (28 digits) cannot hold a uint128 amount exactly.
    with localcontext() as ctx:
        ctx.prec = 96
        for c in balance:
            amount = int(math.floor(Decimal(c.amount) * part))
            if amount > 0:
                shares.append(Coin(denom=c.denom, amount=amount))
    return shares


def merge_coins(funds: Iterable[Coin]) -> List[Coin]:
    """Sum amounts per denom, dropping zeros; order follows first appearance."""
    totals: Dict[str, int] = {}
    for c in funds:
        totals[c.denom] = totals.get(c.denom, 0) + c.amount
    return [Coin(denom=d, amount=a) for d, a in totals.items() if a > 0]
