"""
Live storage slots of the current contract schema.

Legacy slot layouts live next to the upgrade handler that reads them
(lib/upgrades.py), never here.
"""
from __future__ import annotations

from ..kernel.schema import ParentDonation, State
from ..kernel.store import Item

STATE: Item[State] = Item("state", State)
PARENT_DONATION: Item[ParentDonation] = Item("parent_donation", ParentDonation)
