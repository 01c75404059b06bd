"""
Patch Stack
===========

A bounded LIFO of pending control addresses. Each structured construct that
cannot finish its own branches pushes a slot when it opens, and the matching
close resolves the slot and pops it.

Two stacks exist per compilation unit: one for IF/SWITCH constructs and one
for loops. Keeping the families apart means an IF inside a loop never sits
between a BREAK and the loop it leaves, and vice versa.

Slots
-----
A slot is either:

- an **unresolved forward reference**: `operand` is the address of a 2-byte
  field that will be patched, and `instruction` is the address of the JMP
  that owns it (the target of chain-through branches); or
- a **resolved anchor**: `anchor` is an address that is already known, such
  as the top of a loop, and later code may branch back to it immediately.

All three addresses are recorded once, when the instruction is emitted, and
stored as separate fields. Nothing is recomputed from instruction sizes.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from psion_flow.errors import (
    SourceLocation,
    StackOverflowError,
    StackUnderflowError,
    UnmatchedCloseError,
)

logger = logging.getLogger(__name__)

# Default nesting depth per stack.
DEFAULT_CAPACITY = 12


class SlotKind(Enum):
    """The construct that created a slot, with its source keyword."""
    IF = "IF"
    ELSE = "ELSE"
    SWITCH = "SWITCH"
    CASE = "CASE"
    LOOP_ANCHOR = "DO"
    LOOP_EXIT = "loop exit"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PatchSlot:
    """
    One entry on a patch stack.

    Attributes:
        kind: Construct that created the slot
        location: Source position of that construct (if known)
        anchor: Resolved address to branch back to (loop anchors)
        instruction: Address of the JMP owning a pending operand
        operand: Address of the pending 2-byte operand
    """
    kind: SlotKind
    location: Optional[SourceLocation] = None
    anchor: Optional[int] = None
    instruction: Optional[int] = None
    operand: Optional[int] = None

    @property
    def is_anchor(self) -> bool:
        """True for a resolved anchor, False for a forward reference."""
        return self.anchor is not None

    def describe(self) -> str:
        """Short human-readable form for messages and logs."""
        where = f" at {self.location}" if self.location else ""
        if self.is_anchor:
            return f"{self.kind} (anchor ${self.anchor:04X}){where}"
        return f"{self.kind} (operand ${self.operand:04X}){where}"


class PatchStack:
    """
    Bounded stack of PatchSlot.

    Usage:
        stack = PatchStack("control", capacity=12)
        stack.push(slot)
        ...
        slot = stack.pop()
    """

    def __init__(self, name: str, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"{name} stack capacity must be at least 1, got {capacity}")
        self._name = name
        self._capacity = capacity
        self._slots: list[PatchSlot] = []

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def depth(self) -> int:
        return len(self._slots)

    def is_empty(self) -> bool:
        return not self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[PatchSlot]:
        """Iterate from the bottom (oldest) slot to the top."""
        return iter(list(self._slots))

    # =========================================================================
    # Stack Operations
    # =========================================================================

    def push(self, slot: PatchSlot) -> None:
        """
        Push a slot.

        Raises:
            StackOverflowError: If the stack is already at capacity
        """
        if len(self._slots) >= self._capacity:
            raise StackOverflowError(self._name, self._capacity, location=slot.location)
        self._slots.append(slot)
        logger.debug(f"{self._name}[{len(self._slots)}] push {slot.describe()}")

    def pop(self, location: Optional[SourceLocation] = None) -> PatchSlot:
        """
        Remove and return the top slot.

        Raises:
            StackUnderflowError: If the stack is empty
        """
        self._require_depth(1, location)
        slot = self._slots.pop()
        logger.debug(f"{self._name}[{len(self._slots)}] pop {slot.describe()}")
        return slot

    def top(self, location: Optional[SourceLocation] = None) -> PatchSlot:
        """
        Return the top slot without removing it.

        Raises:
            StackUnderflowError: If the stack is empty
        """
        self._require_depth(1, location)
        return self._slots[-1]

    def set_top(self, slot: PatchSlot, location: Optional[SourceLocation] = None) -> None:
        """
        Replace the top slot in place; depth is unchanged.

        Raises:
            StackUnderflowError: If the stack is empty
        """
        self._require_depth(1, location)
        logger.debug(
            f"{self._name}[{len(self._slots)}] replace {self._slots[-1].describe()} "
            f"with {slot.describe()}"
        )
        self._slots[-1] = slot

    def nth(self, k: int, location: Optional[SourceLocation] = None) -> PatchSlot:
        """
        Return the slot k levels below the top; nth(0) is the top.

        Raises:
            StackUnderflowError: If k >= depth
        """
        if k < 0:
            raise ValueError(f"stack depth index must be non-negative, got {k}")
        self._require_depth(k + 1, location)
        return self._slots[-1 - k]

    # =========================================================================
    # Construct Matching
    # =========================================================================

    def expect_top(
        self,
        kinds: tuple[SlotKind, ...],
        construct: str,
        location: Optional[SourceLocation] = None,
    ) -> PatchSlot:
        """
        Return the top slot, checking it was created by one of `kinds`.

        Raises:
            StackUnderflowError: If the stack is empty
            UnmatchedCloseError: If the top slot belongs to another construct
        """
        if not self._slots:
            expected = "/".join(str(kind) for kind in kinds)
            raise StackUnderflowError(
                f"{construct} without matching {expected}",
                location=location,
            )
        slot = self._slots[-1]
        if slot.kind not in kinds:
            hint = None
            if slot.location is not None:
                hint = f"{slot.kind} opened at {slot.location} is still open"
            raise UnmatchedCloseError(
                f"{construct} does not close {slot.kind}",
                location=location,
                hint=hint,
            )
        return slot

    def _require_depth(self, depth: int, location: Optional[SourceLocation]) -> None:
        if len(self._slots) < depth:
            raise StackUnderflowError(
                f"{self._name} stack holds {len(self._slots)} slot(s), "
                f"needed {depth}",
                location=location,
            )
