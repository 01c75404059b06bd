# =============================================================================
# test_patchstack.py - PatchStack Unit Tests
# =============================================================================
# Tests for the bounded construct stacks.
#
# Test coverage includes:
#   - push/pop/top/set_top/nth
#   - Explicit overflow at capacity
#   - Underflow on every read of an empty stack
#   - Construct matching with expect_top
# =============================================================================

import pytest

from psion_flow.errors import (
    SourceLocation,
    StackOverflowError,
    StackUnderflowError,
    UnmatchedCloseError,
)
from psion_flow.patchstack import DEFAULT_CAPACITY, PatchSlot, PatchStack, SlotKind


def forward(operand: int, kind: SlotKind = SlotKind.IF, line: int = 1) -> PatchSlot:
    return PatchSlot(
        kind,
        location=SourceLocation("<test>", line, 1),
        instruction=operand - 1,
        operand=operand,
    )


class TestStackOperations:
    """Basic LIFO behaviour."""

    def test_default_capacity(self):
        assert PatchStack("control").capacity == DEFAULT_CAPACITY == 12

    def test_push_pop_order(self):
        stack = PatchStack("control")
        stack.push(forward(0x10))
        stack.push(forward(0x20))
        assert stack.depth == 2
        assert stack.pop().operand == 0x20
        assert stack.pop().operand == 0x10
        assert stack.is_empty()

    def test_top_does_not_remove(self):
        stack = PatchStack("control")
        stack.push(forward(0x10))
        assert stack.top().operand == 0x10
        assert stack.depth == 1

    def test_set_top_keeps_depth(self):
        stack = PatchStack("control")
        stack.push(forward(0x10))
        stack.push(forward(0x20))
        stack.set_top(forward(0x30, SlotKind.ELSE))
        assert stack.depth == 2
        assert stack.top().operand == 0x30
        assert stack.top().kind is SlotKind.ELSE
        assert stack.nth(1).operand == 0x10

    def test_nth(self):
        stack = PatchStack("loop")
        stack.push(PatchSlot(SlotKind.LOOP_ANCHOR, anchor=0x100))
        stack.push(forward(0x200, SlotKind.LOOP_EXIT))
        assert stack.nth(0).operand == 0x200
        assert stack.nth(1).anchor == 0x100
        assert stack.nth(1).is_anchor
        assert not stack.nth(0).is_anchor

    def test_iterates_bottom_to_top(self):
        stack = PatchStack("control")
        for operand in (1, 2, 3):
            stack.push(forward(operand + 1))
        assert [slot.operand for slot in stack] == [2, 3, 4]

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            PatchStack("control", capacity=0)


class TestBounds:
    """Overflow and underflow are reported, never absorbed."""

    def test_overflow_at_capacity(self):
        stack = PatchStack("control", capacity=3)
        for operand in range(3):
            stack.push(forward(0x10 + operand))
        with pytest.raises(StackOverflowError) as exc_info:
            stack.push(forward(0x99, line=7))
        assert exc_info.value.capacity == 3
        assert exc_info.value.location.line == 7
        # Nothing was discarded
        assert [slot.operand for slot in stack] == [0x10, 0x11, 0x12]

    @pytest.mark.parametrize("operation", ["pop", "top"])
    def test_empty_reads_underflow(self, operation):
        stack = PatchStack("control")
        with pytest.raises(StackUnderflowError):
            getattr(stack, operation)()

    def test_set_top_on_empty_underflows(self):
        with pytest.raises(StackUnderflowError):
            PatchStack("control").set_top(forward(0x10))

    def test_nth_beyond_depth_underflows(self):
        stack = PatchStack("loop")
        stack.push(forward(0x10))
        with pytest.raises(StackUnderflowError):
            stack.nth(1)


class TestExpectTop:
    """Matching a close construct against the innermost open one."""

    def test_matching_kind(self):
        stack = PatchStack("control")
        stack.push(forward(0x10, SlotKind.ELSE))
        slot = stack.expect_top((SlotKind.IF, SlotKind.ELSE), "ENDIF")
        assert slot.operand == 0x10

    def test_empty_stack(self):
        with pytest.raises(StackUnderflowError, match="ENDIF without matching IF"):
            PatchStack("control").expect_top((SlotKind.IF,), "ENDIF")

    def test_wrong_kind_names_open_construct(self):
        stack = PatchStack("control")
        stack.push(forward(0x10, SlotKind.SWITCH, line=4))
        with pytest.raises(UnmatchedCloseError) as exc_info:
            stack.expect_top((SlotKind.IF,), "ENDIF", SourceLocation("<test>", 9, 1))
        error = exc_info.value
        assert "ENDIF does not close SWITCH" in str(error)
        assert "<test>:4:1" in error.hint
        assert error.location.line == 9

    def test_unmatched_is_an_underflow(self):
        assert issubclass(UnmatchedCloseError, StackUnderflowError)
