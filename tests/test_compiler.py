# =============================================================================
# test_compiler.py - StructuredCompiler Tests
# =============================================================================
# Tests for the compilation unit: configuration, completion checks, listing
# and encoder injection.
# =============================================================================

import logging

import pytest

from psion_flow import (
    Condition,
    Counter,
    FlowConfig,
    HD6303BranchEncoder,
    SourceLocation,
    StructuredCompiler,
)
from psion_flow.errors import UnresolvedReferenceError

A, B = 0xA1, 0xA2


def loc(line: int) -> SourceLocation:
    return SourceLocation("test.flw", line, 1)


# =============================================================================
# Reference Scenario
# =============================================================================

class TestIfElseScenario:
    """
    IF NE / A / ELSE / B / ENDIF lays out as

        [BNE L1][JMP L2][L1: A][JMP L3][L2: B][L3:]
    """

    def build(self, compiler: StructuredCompiler) -> bytes:
        compiler.if_open(Condition.NE)
        compiler.emit(bytes([A]))
        compiler.else_branch()
        compiler.emit(bytes([B]))
        compiler.end_if()
        return compiler.finish()

    def test_at_origin(self):
        compiler = StructuredCompiler(FlowConfig(origin=0x2100))
        code = self.build(compiler)
        assert code == bytes([
            0x26, 0x03,
            0x7E, 0x21, 0x09,
            A,
            0x7E, 0x21, 0x0A,
            B,
        ])
        assert compiler.here() == 0x210A

    def test_only_operands_change(self):
        compiler = StructuredCompiler(FlowConfig(origin=0x2100))
        compiler.if_open(Condition.NE)
        compiler.emit(bytes([A]))
        before = compiler.get_code()
        compiler.else_branch()
        middle = compiler.get_code()
        compiler.emit(bytes([B]))
        compiler.end_if()
        after = compiler.finish()

        def changed(old: bytes) -> list[int]:
            return [i for i in range(len(old)) if old[i] != after[i]]

        assert changed(before) == [3, 4]     # IF operand, patched by ELSE
        assert changed(middle) == [7, 8]     # ELSE operand, patched by ENDIF

    def test_traced(self, trace):
        code = self.build(StructuredCompiler())
        assert trace(code, [True]).markers == [A]
        assert trace(code, [False]).markers == [B]


# =============================================================================
# Configuration
# =============================================================================

class TestConfiguration:

    def test_defaults(self, compiler):
        assert compiler.config == FlowConfig()
        assert compiler.stream.origin == 0
        assert compiler.control_stack.capacity == 12
        assert compiler.loop_stack.capacity == 12
        assert compiler.control_stack.name == "control"
        assert compiler.loop_stack.name == "loop"

    def test_capacities(self):
        compiler = StructuredCompiler(FlowConfig(control_capacity=3, loop_capacity=5))
        assert compiler.control_stack.capacity == 3
        assert compiler.loop_stack.capacity == 5

    def test_stacks_are_independent(self, compiler):
        compiler.if_open(Condition.EQ)
        compiler.do_open()
        assert compiler.control_stack.depth == 1
        assert compiler.loop_stack.depth == 1

    def test_instances_share_no_state(self):
        first = StructuredCompiler()
        second = StructuredCompiler()
        first.if_open(Condition.EQ)
        assert second.control_stack.depth == 0
        assert second.get_code() == b""

    def test_emit_returns_start(self, compiler):
        assert compiler.emit(b"\x01\x02") == 0
        assert compiler.emit(b"\x03") == 2
        assert compiler.here() == 3


# =============================================================================
# Encoder Injection
# =============================================================================

class LongJumpEncoder(HD6303BranchEncoder):
    """Encoder with a two-byte unconditional opcode, as on a prefixed target."""

    @property
    def jump_size(self) -> int:
        return 4

    def unconditional_opcode(self) -> bytes:
        return bytes([0x18, 0x7E])


class TestEncoderInjection:

    def test_sizes_follow_encoder(self):
        compiler = StructuredCompiler(encoder=LongJumpEncoder())
        compiler.if_open(Condition.NE)
        compiler.emit(bytes([A]))
        compiler.end_if()
        assert compiler.finish() == bytes([
            0x26, 0x04,                     # skip the 4-byte jump
            0x18, 0x7E, 0x00, 0x07,
            A,
        ])

    def test_loop_back_jump_uses_encoder(self):
        compiler = StructuredCompiler(encoder=LongJumpEncoder())
        compiler.do_open()
        compiler.emit(bytes([A]))
        compiler.forever()
        assert compiler.finish() == bytes([A, 0x18, 0x7E, 0x00, 0x00])


# =============================================================================
# Completion
# =============================================================================

class TestFinish:

    def test_returns_code(self, compiler):
        compiler.emit(bytes([A]))
        assert compiler.finish() == bytes([A])

    def test_empty_unit(self, compiler):
        assert compiler.finish() == b""

    def test_open_constructs_reported(self, compiler):
        compiler.if_open(Condition.EQ, loc(3))
        compiler.do_open(loc(5))
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            compiler.finish(loc(9))
        error = exc_info.value
        assert error.pending == 2
        assert error.location == loc(9)
        assert error.hint == "IF opened at test.flw:3:1 is never closed"
        assert "2 construct slot(s) still open" in str(error)

    def test_oldest_construct_named(self, compiler):
        compiler.do_open(loc(2))
        compiler.switch_open(loc(4))
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            compiler.finish()
        assert exc_info.value.hint.startswith("DO opened at test.flw:2:1")

    def test_unpatched_operand_reported(self, compiler):
        compiler.emit(b"\x7E")
        compiler.stream.reserve_operand()
        with pytest.raises(UnresolvedReferenceError, match=r"never patched: \$0001"):
            compiler.finish()

    def test_logs_summary(self, compiler, caplog):
        compiler.if_open(Condition.EQ)
        compiler.end_if()
        with caplog.at_level(logging.INFO, logger="psion_flow.compiler"):
            compiler.finish()
        assert "compiled 5 bytes at $0000, 1 operand(s) patched" in caplog.text

    def test_patches_logged_at_debug(self, compiler, caplog):
        with caplog.at_level(logging.DEBUG, logger="psion_flow"):
            compiler.if_open(Condition.EQ)
            compiler.end_if()
        assert "patched operand $0003 -> $0005" in caplog.text


# =============================================================================
# Listing
# =============================================================================

class TestListing:

    def test_listing_shows_patched_bytes(self, compiler):
        compiler.add_listing_entry(compiler.here(), "IF NE")
        compiler.if_open(Condition.NE)
        compiler.add_listing_entry(compiler.here(), "INX")
        compiler.emit(b"\x08")
        compiler.add_listing_entry(compiler.here(), "ENDIF")
        compiler.end_if()
        compiler.finish()
        lines = compiler.get_listing().splitlines()
        assert lines[0].split() == ["0000", "26", "03", "7E", "00", "06", "IF", "NE"]
        assert lines[1].split() == ["0005", "08", "INX"]
        assert lines[2].split() == ["0006", "ENDIF"]

    def test_listing_columns(self, compiler):
        compiler.add_listing_entry(compiler.here(), "DECB")
        compiler.emit(b"\x5A")
        assert compiler.get_listing() == "0000  " + "5A".ljust(20) + "  DECB"

    def test_counted_loop_listing(self):
        compiler = StructuredCompiler(FlowConfig(origin=0x8000, counter=Counter.B))
        compiler.add_listing_entry(compiler.here(), "DO")
        compiler.do_open()
        compiler.add_listing_entry(compiler.here(), "LOOP")
        compiler.counted_loop()
        compiler.finish()
        lines = compiler.get_listing().splitlines()
        assert lines[0].split() == ["8000", "DO"]
        assert lines[1].split() == ["8000", "5A", "27", "03", "7E", "80", "00", "LOOP"]

    def test_empty_listing(self, compiler):
        assert compiler.get_listing() == ""
