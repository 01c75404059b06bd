"""
Construct Compiler Base
=======================

Emission helpers shared by the control (IF/SWITCH) and loop compilers. Both
work on the same CodeStream but each owns its own PatchStack.

The one pattern both families rely on is the *guarded forward jump*:

    Bcc  skip        ; taken when the condition holds
    JMP  ????        ; reserved operand, patched later
  skip:

When the condition holds, control hops over the JMP and continues inline.
Otherwise the JMP carries it to a target that is only known later.
"""

import logging
from typing import Optional

from psion_flow.encoder import BranchEncoder, Condition
from psion_flow.errors import SourceLocation
from psion_flow.patchstack import PatchSlot, PatchStack, SlotKind
from psion_flow.stream import CodeStream

logger = logging.getLogger(__name__)


class ConstructCompiler:
    """Base class holding the stream, stack and encoder of one construct family."""

    def __init__(self, stream: CodeStream, stack: PatchStack, encoder: BranchEncoder):
        self._stream = stream
        self._stack = stack
        self._encoder = encoder

    @property
    def stack(self) -> PatchStack:
        return self._stack

    # =========================================================================
    # Emission Helpers
    # =========================================================================

    def _emit_forward_jump(self, kind: SlotKind, location: Optional[SourceLocation]) -> PatchSlot:
        """Emit JMP with a reserved operand and describe it as a slot."""
        instruction = self._stream.emit(self._encoder.unconditional_opcode())
        operand = self._stream.reserve_operand()
        return PatchSlot(kind, location=location, instruction=instruction, operand=operand)

    def _emit_guarded_jump(
        self,
        condition: Condition,
        kind: SlotKind,
        location: Optional[SourceLocation],
    ) -> PatchSlot:
        """Emit `Bcc skip ; JMP ????` and return the slot for the JMP."""
        self._emit_skip(condition)
        return self._emit_forward_jump(kind, location)

    def _emit_skip(self, condition: Condition) -> None:
        """Emit a branch over the next unconditional jump, taken when `condition` holds."""
        source = self._stream.here()
        target = source + self._encoder.skip_size + self._encoder.jump_size
        self._stream.emit(self._encoder.short_conditional_branch(condition, source, target))

    def _emit_jump(self, target: int) -> int:
        """Emit JMP to a known address; returns the instruction address."""
        return self._stream.emit(self._encoder.unconditional_branch(target))

    def _resolve(self, slot: PatchSlot, location: Optional[SourceLocation]) -> int:
        """Patch a slot's operand to the current address and return that address."""
        target = self._stream.here()
        self._stream.patch_operand(slot.operand, target, location)
        logger.debug(f"resolved {slot.describe()} -> ${target:04X}")
        return target
