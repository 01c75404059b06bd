"""
psion_flow - Structured Control Flow for the Psion Organiser II
===============================================================

This package compiles structured control flow (IF/ELSE, SWITCH/CASE, loops
with BREAK and CONTINUE) into linear HD6303 machine code in a single pass,
without the programmer writing a single label or jump target.

The core is a forward-reference backpatching engine: branches whose target
is not yet known reserve a 2-byte operand, and the construct that later
learns the target patches exactly those two bytes. Escapes such as BREAK and
ENDCASE jump *through* a still-unresolved exit instruction, so any number of
them share one patch.

Main Components
---------------
- **stream**: CodeStream, the output buffer with in-place operand patching
- **patchstack**: PatchStack and PatchSlot, the bounded construct stacks
- **encoder**: BranchEncoder and the HD6303 branch encodings
- **control**: IF/ELSE/ENDIF and SWITCH/CASE/ENDCASE/ENDSWITCH
- **loops**: DO/WHILE/UNTIL/ENDDO/FOREVER/LOOP/BREAK/CONTINUE
- **compiler**: StructuredCompiler, one compilation unit
- **source**: a line-oriented driver for structured source files

Quick Start
-----------
    >>> from psion_flow import StructuredCompiler, Condition
    >>> c = StructuredCompiler()
    >>> c.do_open()
    >>> c.emit(bytes([0x5A]))       # DECB
    >>> c.while_cond(Condition.NE)
    >>> c.enddo()
    >>> code = c.finish()

Or use the command-line tool:
    $ psflow menu.flw -o menu.bin -l menu.lst
"""

__version__ = "1.0.0"
__author__ = "Hugo José Pinto & Contributors"

# =============================================================================
# Public API Exports
# =============================================================================

from psion_flow.compiler import StructuredCompiler, ListingEntry
from psion_flow.config import FlowConfig
from psion_flow.control import ControlCompiler
from psion_flow.encoder import BranchEncoder, Condition, Counter, HD6303BranchEncoder
from psion_flow.errors import (
    FlowError,
    ConstructError,
    SourceLocation,
    StackOverflowError,
    StackUnderflowError,
    UnmatchedCloseError,
    UnresolvedReferenceError,
    InvalidBreakContinueError,
    PatchError,
    BranchRangeError,
    SourceSyntaxError,
)
from psion_flow.loops import LoopCompiler
from psion_flow.patchstack import PatchSlot, PatchStack, SlotKind
from psion_flow.source import SourceCompiler, compile_file, compile_source
from psion_flow.stream import CodeStream

__all__ = [
    # Version info
    "__version__",
    # Engine
    "CodeStream",
    "PatchStack",
    "PatchSlot",
    "SlotKind",
    "BranchEncoder",
    "HD6303BranchEncoder",
    "Condition",
    "Counter",
    "ControlCompiler",
    "LoopCompiler",
    "StructuredCompiler",
    "ListingEntry",
    "FlowConfig",
    # Source driver
    "SourceCompiler",
    "compile_source",
    "compile_file",
    # Errors
    "FlowError",
    "ConstructError",
    "SourceLocation",
    "StackOverflowError",
    "StackUnderflowError",
    "UnmatchedCloseError",
    "UnresolvedReferenceError",
    "InvalidBreakContinueError",
    "PatchError",
    "BranchRangeError",
    "SourceSyntaxError",
]
