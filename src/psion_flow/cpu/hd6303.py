"""
HD6303 Instruction Subset for Structured Control Flow
=====================================================

This module describes the part of the HD6303 instruction set that the
structured control-flow compiler needs to know about:

- **Relative branches** (`Bcc`): 2 bytes, opcode + signed 8-bit offset,
  measured from the byte after the branch. Used as the short conditional
  "skip" branch, which only ever hops over one `JMP`.
- **JMP extended**: 3 bytes, `$7E` + 16-bit big-endian address. Used for every
  branch whose target is not known at emission time, because its 2-byte
  operand can be patched to any address.
- **Inherent instructions**: 1 byte, no operand. The source driver accepts
  these as straight-line code, and the counted loop uses `DEX`, `DECA` and
  `DECB` as its decrement step.

The HD6303 is big-endian: the most significant byte of a 16-bit operand is
stored first.

Reference
---------
- Psion Technical Reference: https://www.jaapsch.net/psion/mcmnemal.htm
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Addressing Modes
# =============================================================================

class AddressingMode(Enum):
    """Addressing modes used by the instructions in this table."""
    INHERENT = auto()   # No operand (NOP, DEX)
    EXTENDED = auto()   # Full 16-bit address (JMP $1234)
    RELATIVE = auto()   # Signed 8-bit displacement (BEQ label)

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class InstructionInfo:
    """
    Encoding of one (mnemonic, addressing mode) pair.

    Attributes:
        opcode: The opcode byte
        size: Total instruction size in bytes (including operand)
        cycles: CPU cycles for execution
        operand_size: Size of operand in bytes (0, 1 or 2)
    """
    opcode: int
    size: int
    cycles: int
    operand_size: int

    def __repr__(self) -> str:
        return f"InstructionInfo(opcode=${self.opcode:02X}, size={self.size}, cycles={self.cycles})"


# =============================================================================
# Opcode Table
# =============================================================================
# Inherent opcodes are listed as mnemonic -> (opcode, cycles); the table below
# expands them into InstructionInfo entries so that all lookups share one key
# shape: (mnemonic, AddressingMode).
# =============================================================================

_INHERENT: dict[str, tuple[int, int]] = {
    # Control and flags
    "TRAP": (0x00, 12), "NOP": (0x01, 1),
    "CLV": (0x0A, 1), "SEV": (0x0B, 1), "CLC": (0x0C, 1), "SEC": (0x0D, 1),
    "CLI": (0x0E, 1), "SEI": (0x0F, 1), "TAP": (0x06, 1), "TPA": (0x07, 1),
    # 16-bit and index register
    "LSRD": (0x04, 1), "ASLD": (0x05, 1), "LSLD": (0x05, 1),
    "INX": (0x08, 1), "DEX": (0x09, 1), "ABX": (0x3A, 1),
    "XGDX": (0x18, 2), "MUL": (0x3D, 7),
    # Register transfers and arithmetic
    "SBA": (0x10, 1), "CBA": (0x11, 1), "TAB": (0x16, 1), "TBA": (0x17, 1),
    "DAA": (0x19, 2), "ABA": (0x1B, 1), "SLP": (0x1A, 4),
    # Stack
    "TSX": (0x30, 1), "INS": (0x31, 1), "PULA": (0x32, 3), "PULB": (0x33, 3),
    "DES": (0x34, 1), "TXS": (0x35, 1), "PSHA": (0x36, 4), "PSHB": (0x37, 4),
    "PULX": (0x38, 4), "PSHX": (0x3C, 5),
    # Returns and interrupts
    "RTS": (0x39, 5), "RTI": (0x3B, 10), "WAI": (0x3E, 9), "SWI": (0x3F, 12),
    # Accumulator A
    "NEGA": (0x40, 1), "COMA": (0x43, 1), "LSRA": (0x44, 1), "RORA": (0x46, 1),
    "ASRA": (0x47, 1), "ASLA": (0x48, 1), "LSLA": (0x48, 1), "ROLA": (0x49, 1),
    "DECA": (0x4A, 1), "INCA": (0x4C, 1), "TSTA": (0x4D, 1), "CLRA": (0x4F, 1),
    # Accumulator B
    "NEGB": (0x50, 1), "COMB": (0x53, 1), "LSRB": (0x54, 1), "RORB": (0x56, 1),
    "ASRB": (0x57, 1), "ASLB": (0x58, 1), "LSLB": (0x58, 1), "ROLB": (0x59, 1),
    "DECB": (0x5A, 1), "INCB": (0x5C, 1), "TSTB": (0x5D, 1), "CLRB": (0x5F, 1),
}

_RELATIVE: dict[str, int] = {
    "BRA": 0x20, "BRN": 0x21, "BHI": 0x22, "BLS": 0x23,
    "BCC": 0x24, "BHS": 0x24, "BCS": 0x25, "BLO": 0x25,
    "BNE": 0x26, "BEQ": 0x27, "BVC": 0x28, "BVS": 0x29,
    "BPL": 0x2A, "BMI": 0x2B, "BGE": 0x2C, "BLT": 0x2D,
    "BGT": 0x2E, "BLE": 0x2F,
}

OPCODE_TABLE: dict[tuple[str, AddressingMode], InstructionInfo] = {
    **{
        (mnemonic, AddressingMode.INHERENT): InstructionInfo(opcode, 1, cycles, 0)
        for mnemonic, (opcode, cycles) in _INHERENT.items()
    },
    **{
        (mnemonic, AddressingMode.RELATIVE): InstructionInfo(opcode, 2, 3, 1)
        for mnemonic, opcode in _RELATIVE.items()
    },
    ("JMP", AddressingMode.EXTENDED): InstructionInfo(0x7E, 3, 3, 2),
}


# =============================================================================
# Instruction Set Reference Lists
# =============================================================================

MNEMONICS: frozenset[str] = frozenset(mnemonic for mnemonic, _ in OPCODE_TABLE)

BRANCH_INSTRUCTIONS: frozenset[str] = frozenset(_RELATIVE)

INHERENT_ONLY_INSTRUCTIONS: frozenset[str] = frozenset(_INHERENT)

# Each conditional branch paired with the branch taken in exactly the
# opposite case. BRA/BRN are included so "always" inverts to "never".
BRANCH_INVERSION: dict[str, str] = {
    "BRA": "BRN", "BRN": "BRA",
    "BEQ": "BNE", "BNE": "BEQ",
    "BCC": "BCS", "BCS": "BCC",
    "BHS": "BLO", "BLO": "BHS",
    "BHI": "BLS", "BLS": "BHI",
    "BVC": "BVS", "BVS": "BVC",
    "BPL": "BMI", "BMI": "BPL",
    "BGE": "BLT", "BLT": "BGE",
    "BGT": "BLE", "BLE": "BGT",
}


# =============================================================================
# Lookup Functions
# =============================================================================

def get_instruction_info(
    mnemonic: str,
    mode: AddressingMode
) -> Optional[InstructionInfo]:
    """
    Look up instruction information by mnemonic and addressing mode.

    Returns:
        InstructionInfo if found, None if the combination is invalid
    """
    return OPCODE_TABLE.get((mnemonic.upper(), mode))


def is_inherent_instruction(mnemonic: str) -> bool:
    """Check if a mnemonic is a one-byte, operand-less instruction."""
    return mnemonic.upper() in INHERENT_ONLY_INSTRUCTIONS


def get_inverted_branch(mnemonic: str) -> str:
    """
    Return the branch mnemonic with the opposite condition.

    Raises:
        KeyError: If the mnemonic is not a relative branch
    """
    return BRANCH_INVERSION[mnemonic.upper()]


def get_short_branch_size() -> int:
    """Size in bytes of a relative branch."""
    return OPCODE_TABLE[("BRA", AddressingMode.RELATIVE)].size


def get_jump_size() -> int:
    """Size in bytes of JMP extended."""
    return OPCODE_TABLE[("JMP", AddressingMode.EXTENDED)].size
