"""
Loop Constructs
===============

    DO              top:                      ; anchor pushed (already resolved)
                    ...
    WHILE cc        Bcc  body
                    JMP  ????                 ; the loop's pending exit
              body: ...
    BREAK           JMP  <pending exit JMP>   ; chain through
    CONTINUE        JMP  top
                    ...
    ENDDO           JMP  top
                                              ; pending exit patched to here

UNTIL is WHILE with the condition inverted: the loop leaves the first time
the condition holds. FOREVER closes the loop with the same backward JMP as
ENDDO. LOOP closes it with the encoder's counted decrement-branch.

Pending exit
------------
A loop has at most one pending-exit slot, sitting directly above its anchor
on the loop stack. The first WHILE, UNTIL or BREAK in the loop creates it;
its JMP becomes *the* exit instruction. Every later test or BREAK in the same
loop jumps to that instruction instead of reserving an operand of its own,
so one patch at the end of the loop resolves all of them.

BREAK and CONTINUE locate their loop structurally: the innermost loop is the
topmost anchor on the loop stack, and its pending exit (if any) is the slot
above it.
"""

import logging
from typing import Optional

from psion_flow.constructs import ConstructCompiler
from psion_flow.encoder import BranchEncoder, Condition, Counter
from psion_flow.errors import (
    InvalidBreakContinueError,
    SourceLocation,
    StackUnderflowError,
    UnmatchedCloseError,
)
from psion_flow.patchstack import PatchSlot, PatchStack, SlotKind
from psion_flow.stream import CodeStream

logger = logging.getLogger(__name__)


class LoopCompiler(ConstructCompiler):
    """Compiles DO/WHILE/UNTIL/ENDDO/FOREVER/LOOP/BREAK/CONTINUE."""

    def __init__(
        self,
        stream: CodeStream,
        stack: PatchStack,
        encoder: BranchEncoder,
        counter: Counter = Counter.X,
    ):
        super().__init__(stream, stack, encoder)
        self._counter = counter

    # =========================================================================
    # Opening and Testing
    # =========================================================================

    def do_open(self, location: Optional[SourceLocation] = None) -> None:
        """Open a loop; its anchor is the current address."""
        self._stack.push(
            PatchSlot(SlotKind.LOOP_ANCHOR, location=location, anchor=self._stream.here())
        )

    def while_cond(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        """Leave the innermost loop unless `condition` holds."""
        self._exit_unless(condition, "WHILE", location)

    def until_cond(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        """Leave the innermost loop if `condition` holds."""
        self._exit_unless(self._encoder.invert(condition), "UNTIL", location)

    def _exit_unless(
        self,
        condition: Condition,
        construct: str,
        location: Optional[SourceLocation],
    ) -> None:
        _, pending = self._innermost(construct, StackUnderflowError, location)
        if pending is None:
            self._stack.push(self._emit_guarded_jump(condition, SlotKind.LOOP_EXIT, location))
        else:
            self._emit_skip(condition)
            self._emit_jump(pending.instruction)

    # =========================================================================
    # Closing
    # =========================================================================

    def enddo(self, location: Optional[SourceLocation] = None) -> None:
        """Close the innermost loop with a backward jump to its anchor."""
        anchor, pending = self._closing("ENDDO", location)
        self._emit_jump(anchor.anchor)
        self._finish(pending, location)

    def forever(self, location: Optional[SourceLocation] = None) -> None:
        """Close the innermost loop unconditionally; only BREAK leaves it."""
        anchor, pending = self._closing("FOREVER", location)
        self._emit_jump(anchor.anchor)
        self._finish(pending, location)

    def counted_loop(
        self,
        counter: Optional[Counter] = None,
        location: Optional[SourceLocation] = None,
    ) -> None:
        """Close the innermost loop with a decrement-and-branch-if-non-zero."""
        anchor, pending = self._closing("LOOP", location)
        source = self._stream.here()
        self._stream.emit(
            self._encoder.counted_branch(counter or self._counter, source, anchor.anchor)
        )
        self._finish(pending, location)

    # =========================================================================
    # Escapes
    # =========================================================================

    def break_loop(self, location: Optional[SourceLocation] = None) -> None:
        """Jump out of the innermost loop."""
        _, pending = self._innermost("BREAK", InvalidBreakContinueError, location)
        if pending is None:
            self._stack.push(self._emit_forward_jump(SlotKind.LOOP_EXIT, location))
        else:
            self._emit_jump(pending.instruction)

    def continue_loop(self, location: Optional[SourceLocation] = None) -> None:
        """Jump back to the anchor of the innermost loop."""
        anchor, _ = self._innermost("CONTINUE", InvalidBreakContinueError, location)
        self._emit_jump(anchor.anchor)

    # =========================================================================
    # Stack Navigation
    # =========================================================================

    def _innermost(
        self,
        construct: str,
        error: type,
        location: Optional[SourceLocation],
    ) -> tuple[PatchSlot, Optional[PatchSlot]]:
        """Return (anchor, pending exit or None) of the innermost loop."""
        pending = None
        for k in range(self._stack.depth):
            slot = self._stack.nth(k)
            if slot.kind is SlotKind.LOOP_ANCHOR:
                return slot, pending
            pending = slot
        raise error(f"{construct} outside any loop", location=location)

    def _closing(
        self,
        construct: str,
        location: Optional[SourceLocation],
    ) -> tuple[PatchSlot, Optional[PatchSlot]]:
        top = self._stack.expect_top(
            (SlotKind.LOOP_ANCHOR, SlotKind.LOOP_EXIT), construct, location
        )
        if top.kind is SlotKind.LOOP_ANCHOR:
            return top, None
        anchor = self._stack.nth(1, location)
        if anchor.kind is not SlotKind.LOOP_ANCHOR:
            raise UnmatchedCloseError(
                f"{construct} does not close {anchor.kind}", location=location
            )
        return anchor, top

    def _finish(self, pending: Optional[PatchSlot], location: Optional[SourceLocation]) -> None:
        """Resolve the pending exit (if any) to here and pop the loop's slots."""
        if pending is not None:
            self._resolve(pending, location)
            self._stack.pop(location)
        anchor = self._stack.pop(location)
        logger.debug(f"closed loop at ${anchor.anchor:04X}")
