"""
Global slot table.

Live globals get consecutive static slot indices in allocation order.
Constants are counted but take no slot. At most one extra slot holds the
pending fault of a deferred call.
"""

from typing import Dict, Optional, Iterator, Tuple

from ..errors import CapacityError


MAX_SLOTS = 255


class SlotTable:
    """Insertion-ordered mapping of qualified global names to slot indices."""

    def __init__(self, limit: int = MAX_SLOTS):
        self.limit = limit
        self.slots: Dict[str, int] = {}
        self.constants = 0
        self.fault_slot: Optional[int] = None

    def allocate(self, name: str) -> int:
        """Assign the next free slot to `name`, or return its existing slot."""
        if name in self.slots:
            return self.slots[name]
        if self.fault_slot is not None:
            raise ValueError("globals cannot be allocated after the fault slot")
        slot = len(self.slots)
        self.slots[name] = slot
        return slot

    def add_constant(self):
        self.constants += 1

    def reserve_fault_slot(self) -> int:
        """Reserve the auxiliary slot after all named globals."""
        if self.fault_slot is None:
            self.fault_slot = len(self.slots)
        return self.fault_slot

    def get(self, name: str) -> Optional[int]:
        return self.slots.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.slots

    def __len__(self) -> int:
        return self.total

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self.slots.items())

    @property
    def total(self) -> int:
        """Number of static slots the script must reserve."""
        return len(self.slots) + (1 if self.fault_slot is not None else 0)

    def check_capacity(self):
        """
        Raises:
            CapacityError: If more slots are needed than the VM provides
        """
        if self.total > self.limit:
            raise CapacityError(self.total, self.limit)
