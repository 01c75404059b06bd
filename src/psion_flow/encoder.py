"""
Branch Encoder
==============

The structured compiler never builds instruction bytes itself. It asks an
encoder for three instruction shapes:

1. **Short conditional branch**: taken when a condition holds. The compiler
   only uses it to hop over exactly one unconditional branch, so it is always
   in range.
2. **Unconditional branch**: to an absolute 16-bit address. When the target
   is not yet known the compiler emits `unconditional_opcode()` followed by a
   reserved operand, and patches the operand later.
3. **Counted decrement-branch**: decrement a counter register and branch back
   to a loop anchor while it is non-zero.

HD6303 Encodings
----------------
    Bcc  rel          2 bytes   $2x oo          (oo = target - (pc + 2))
    JMP  addr         3 bytes   $7E hh ll
    DEX / DECA / DECB 1 byte    $09 / $4A / $5A
    counted branch    6 bytes   DEx ; BEQ +3 ; JMP anchor

The HD6303 has no single decrement-and-branch instruction, so the counted
branch is the three-instruction idiom above. A counter that starts at zero
wraps: DEX from $0000 gives $FFFF, so the body runs 65536 times (256 for
DECA/DECB). The compiler does not special-case this.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from psion_flow.cpu import (
    AddressingMode,
    get_instruction_info,
    get_inverted_branch,
    get_jump_size,
    get_short_branch_size,
)
from psion_flow.errors import BranchRangeError, SourceSyntaxError, SourceLocation


# =============================================================================
# Conditions and Counters
# =============================================================================

class Condition(Enum):
    """
    Branch conditions, named by the HD6303 branch that tests them.

    The condition passed to IF, CASE and WHILE is the condition under which
    the body runs (or the loop continues).
    """
    ALWAYS = "BRA"
    NEVER = "BRN"
    EQ = "BEQ"   # Z=1
    NE = "BNE"   # Z=0
    CC = "BCC"   # C=0
    CS = "BCS"   # C=1
    HS = "BHS"   # unsigned >=, same test as CC
    LO = "BLO"   # unsigned <, same test as CS
    HI = "BHI"   # unsigned >
    LS = "BLS"   # unsigned <=
    VC = "BVC"
    VS = "BVS"
    PL = "BPL"   # N=0
    MI = "BMI"   # N=1
    GE = "BGE"   # signed >=
    LT = "BLT"   # signed <
    GT = "BGT"   # signed >
    LE = "BLE"   # signed <=

    @property
    def mnemonic(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str, location: Optional[SourceLocation] = None) -> "Condition":
        """
        Parse a condition name such as "EQ", "ne" or "BEQ".

        Raises:
            SourceSyntaxError: If the text names no known condition
        """
        name = text.strip().upper()
        if name in cls.__members__:
            return cls[name]
        for condition in cls:
            if condition.value == name:
                return condition
        valid = ", ".join(cls.__members__)
        raise SourceSyntaxError(
            f"unknown condition '{text}'",
            location=location,
            hint=f"valid conditions: {valid}",
        )


class Counter(Enum):
    """Register decremented by a counted loop, with its decrement mnemonic."""
    X = "DEX"
    A = "DECA"
    B = "DECB"

    @property
    def mnemonic(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str, location: Optional[SourceLocation] = None) -> "Counter":
        name = text.strip().upper()
        if name not in cls.__members__:
            raise SourceSyntaxError(
                f"unknown loop counter '{text}'",
                location=location,
                hint="valid counters: X, A, B",
            )
        return cls[name]


# =============================================================================
# Encoder Interface
# =============================================================================

class BranchEncoder(ABC):
    """Encodes the branch shapes used by the structured compiler."""

    # Width of an absolute branch operand, in bytes.
    operand_size = 2

    @property
    @abstractmethod
    def skip_size(self) -> int:
        """Size in bytes of a short conditional branch."""

    @property
    @abstractmethod
    def jump_size(self) -> int:
        """Size in bytes of an unconditional branch including its operand."""

    @abstractmethod
    def short_conditional_branch(self, condition: Condition, source: int, target: int) -> bytes:
        """Encode a branch at `source`, taken to `target` when `condition` holds."""

    @abstractmethod
    def unconditional_opcode(self) -> bytes:
        """Bytes of an unconditional branch that precede its 2-byte operand."""

    @abstractmethod
    def counted_branch(self, counter: Counter, source: int, anchor: int) -> bytes:
        """Encode decrement-`counter`-and-branch-to-`anchor`-if-non-zero at `source`."""

    @abstractmethod
    def invert(self, condition: Condition) -> Condition:
        """Return the condition that holds exactly when `condition` does not."""

    def unconditional_branch(self, target: int) -> bytes:
        """Encode an unconditional branch to a known absolute address."""
        return self.unconditional_opcode() + (target & 0xFFFF).to_bytes(
            self.operand_size, "big"
        )


class HD6303BranchEncoder(BranchEncoder):
    """Branch encodings for the Hitachi HD6303."""

    def __init__(self):
        self._jmp = get_instruction_info("JMP", AddressingMode.EXTENDED)

    @property
    def skip_size(self) -> int:
        return get_short_branch_size()

    @property
    def jump_size(self) -> int:
        return get_jump_size()

    def short_conditional_branch(self, condition: Condition, source: int, target: int) -> bytes:
        info = get_instruction_info(condition.mnemonic, AddressingMode.RELATIVE)
        offset = target - (source + info.size)
        if offset < -128 or offset > 127:
            raise BranchRangeError(target, offset)
        return bytes([info.opcode, offset & 0xFF])

    def unconditional_opcode(self) -> bytes:
        return bytes([self._jmp.opcode])

    def counted_branch(self, counter: Counter, source: int, anchor: int) -> bytes:
        decrement = get_instruction_info(counter.mnemonic, AddressingMode.INHERENT)
        code = bytes([decrement.opcode])
        # BEQ over the JMP once the counter reaches zero
        skip_at = source + len(code)
        code += self.short_conditional_branch(
            Condition.EQ, skip_at, skip_at + self.skip_size + self.jump_size
        )
        return code + self.unconditional_branch(anchor)

    def invert(self, condition: Condition) -> Condition:
        return Condition(get_inverted_branch(condition.mnemonic))
