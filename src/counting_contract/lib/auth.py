"""
Domain: Authorization

Pure predicates over caller identity. The privileged identity always comes
from stored state, never from a message payload.
"""
from __future__ import annotations

from ..kernel.errors import Unauthorized
from ..kernel.schema import Addr


def is_authorized(caller: Addr, owner: Addr) -> bool:
    return caller == owner


def require_owner(caller: Addr, owner: Addr) -> None:
    """Raise Unauthorized (carrying the expected owner) unless caller is owner."""
    if not is_authorized(caller, owner):
        raise Unauthorized(owner=str(owner))
