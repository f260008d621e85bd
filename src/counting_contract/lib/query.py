from __future__ import annotations

from typing import Any

from ..kernel.schema import ValueResp
from .state import STATE


def value(storage: Any) -> ValueResp:
    """Current counter. Reads state only; no caller, no funds."""
    return ValueResp(value=STATE.load(storage).counter)
