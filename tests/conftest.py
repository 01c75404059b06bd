"""
psion_flow Test Configuration
=============================

pytest fixtures shared by the structured compiler tests.

It provides:
- A fresh StructuredCompiler per test
- A control-flow tracer that walks the emitted HD6303 code

The tracer understands only what the compiler emits: relative branches,
JMP extended, DEX/DECA/DECB and RTS. Every other byte is treated as a
one-byte *marker*; tests emit distinct marker bytes as construct bodies and
check which markers ran, in which order. Conditional branches take their
outcome from a list of booleans supplied by the test (the "condition
oracle"), except for BEQ/BNE directly after a counter decrement, which use
the decremented register.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Union

import pytest

from psion_flow import Condition, StructuredCompiler
from psion_flow.cpu import AddressingMode, get_instruction_info


# ═══════════════════════════════════════════════════════════════════════════════
# CONTROL-FLOW TRACER
# ═══════════════════════════════════════════════════════════════════════════════

JMP = 0x7E
RTS = 0x39
DECREMENTS = {0x09: "x", 0x4A: "a", 0x5A: "b"}
REGISTER_MASKS = {"x": 0xFFFF, "a": 0xFF, "b": 0xFF}

BRANCH_CONDITIONS: dict[int, Condition] = {}
for _condition in Condition:
    _opcode = get_instruction_info(_condition.mnemonic, AddressingMode.RELATIVE).opcode
    BRANCH_CONDITIONS.setdefault(_opcode, _condition)


@dataclass
class Trace:
    """
    Result of one traced run.

    Attributes:
        markers: Marker bytes executed, in order
        exit_address: Address at which execution left the code (or hit RTS)
        branches: Number of oracle-decided branches taken or not taken
        registers: Final counter register values
    """
    markers: list[int] = field(default_factory=list)
    exit_address: int = 0
    branches: int = 0
    registers: dict[str, int] = field(default_factory=dict)


Oracle = Union[Iterable[bool], Callable[[Condition, int], bool]]


class FlowTracer:
    """Executes structured-compiler output against a condition oracle."""

    def __init__(self, code: bytes, origin: int = 0):
        self.code = code
        self.origin = origin
        self.end = origin + len(code)

    def run(
        self,
        outcomes: Oracle = (),
        start: Optional[int] = None,
        max_steps: int = 200_000,
        **registers: int,
    ) -> Trace:
        if callable(outcomes):
            oracle = outcomes
        else:
            pending = iter(outcomes)

            def oracle(condition: Condition, pc: int) -> bool:
                try:
                    return next(pending)
                except StopIteration:
                    raise AssertionError(
                        f"ran out of condition outcomes at ${pc:04X} ({condition.name})"
                    ) from None

        regs = {"x": 0, "a": 0, "b": 0}
        regs.update({name.lower(): value for name, value in registers.items()})
        trace = Trace()
        zero_from_counter: Optional[bool] = None
        pc = self.origin if start is None else start

        for _ in range(max_steps):
            if pc == self.end:
                break
            assert self.origin <= pc < self.end, f"jumped outside the code to ${pc:04X}"
            opcode = self.code[pc - self.origin]

            if opcode in BRANCH_CONDITIONS:
                condition = BRANCH_CONDITIONS[opcode]
                offset = self.code[pc - self.origin + 1]
                if offset >= 0x80:
                    offset -= 0x100
                if condition is Condition.ALWAYS:
                    taken = True
                elif condition is Condition.NEVER:
                    taken = False
                elif zero_from_counter is not None and condition in (Condition.EQ, Condition.NE):
                    taken = zero_from_counter == (condition is Condition.EQ)
                else:
                    taken = oracle(condition, pc)
                    trace.branches += 1
                zero_from_counter = None
                pc = pc + 2 + offset if taken else pc + 2
            elif opcode == JMP:
                index = pc - self.origin
                pc = (self.code[index + 1] << 8) | self.code[index + 2]
            elif opcode in DECREMENTS:
                name = DECREMENTS[opcode]
                regs[name] = (regs[name] - 1) & REGISTER_MASKS[name]
                zero_from_counter = regs[name] == 0
                pc += 1
            elif opcode == RTS:
                break
            else:
                trace.markers.append(opcode)
                zero_from_counter = None
                pc += 1
        else:
            raise AssertionError(f"no exit after {max_steps} steps (pc=${pc:04X})")

        trace.exit_address = pc
        trace.registers = regs
        return trace


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def compiler() -> StructuredCompiler:
    """Fixture: a fresh compiler at origin $0000."""
    return StructuredCompiler()


@pytest.fixture
def trace():
    """
    Fixture: run code through the tracer.

        result = trace(code, [True, False], x=3)
    """
    def run(code: bytes, outcomes: Oracle = (), origin: int = 0, **kwargs) -> Trace:
        return FlowTracer(code, origin).run(outcomes, **kwargs)
    return run
