"""
psion_flow CPU Package
======================

Instruction set definitions for the HD6303 used by the branch encoder and the
source driver.

Usage:
    from psion_flow.cpu import (
        AddressingMode,
        InstructionInfo,
        get_instruction_info,
    )
"""

from psion_flow.cpu.hd6303 import (
    # Core types
    AddressingMode,
    InstructionInfo,
    # Instruction database
    OPCODE_TABLE,
    MNEMONICS,
    BRANCH_INSTRUCTIONS,
    BRANCH_INVERSION,
    INHERENT_ONLY_INSTRUCTIONS,
    # Lookup functions
    get_instruction_info,
    is_inherent_instruction,
    get_inverted_branch,
    get_short_branch_size,
    get_jump_size,
)

__all__ = [
    "AddressingMode",
    "InstructionInfo",
    "OPCODE_TABLE",
    "MNEMONICS",
    "BRANCH_INSTRUCTIONS",
    "BRANCH_INVERSION",
    "INHERENT_ONLY_INSTRUCTIONS",
    "get_instruction_info",
    "is_inherent_instruction",
    "get_inverted_branch",
    "get_short_branch_size",
    "get_jump_size",
]
