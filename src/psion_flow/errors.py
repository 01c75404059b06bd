"""
psion_flow Error Hierarchy
==========================

This module defines the exception hierarchy for the structured control-flow
compiler. All exceptions inherit from FlowError, allowing callers to catch
every compiler error with a single except clause.

Exception Hierarchy
-------------------
FlowError (base)
└── ConstructError (construct-level, carries a source location)
    ├── StackOverflowError - nesting deeper than the stack capacity
    ├── StackUnderflowError - close with no matching open
    │   └── UnmatchedCloseError - close does not match the innermost open
    ├── UnresolvedReferenceError - compilation ended with live slots
    ├── InvalidBreakContinueError - BREAK/CONTINUE outside any loop
    ├── PatchError - backpatch of bytes that cannot be patched
    ├── BranchRangeError - relative branch target too far
    └── SourceSyntaxError - driver could not parse a source line

Every construct error is fatal to the compilation unit that raised it. The
compiler never tries to recover and produce code after one of these.

Error messages follow this format:
    filename:line:column: error: description
    source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


class FlowError(Exception):
    """
    Base exception for all psion_flow errors.

        try:
            compiler.finish()
        except FlowError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Construct Errors
# =============================================================================

class ConstructError(FlowError):
    """
    Base exception for errors tied to a structured construct.

    Attributes:
        message: The error description
        location: Where in the source the offending construct is (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            loop.flw:7:1: error: ENDIF does not close DO
                ENDIF
                ^
            hint: DO opened at loop.flw:3:1 is still open
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class StackOverflowError(ConstructError):
    """
    Construct nesting exceeded the patch stack capacity.

    The capacity is a configuration value (12 by default, per stack). It is
    enforced explicitly: a push past capacity is an error, never a silent
    loss of the oldest entry.
    """

    def __init__(
        self,
        stack_name: str,
        capacity: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.stack_name = stack_name
        self.capacity = capacity
        super().__init__(
            f"{stack_name} nesting exceeds {capacity} levels",
            location=location,
            hint="raise the stack capacity or flatten the nesting",
            source_line=source_line,
        )


class StackUnderflowError(ConstructError):
    """
    A close (or continuation) construct found its stack empty.

    Examples:
        ENDIF with no IF
        ENDSWITCH with no SWITCH
    """
    pass


class UnmatchedCloseError(StackUnderflowError):
    """
    A close construct does not match the innermost open construct.

    Raised when, for example, ENDCASE is used while the innermost control
    construct is an IF, or ENDDO is used when the innermost loop entry was
    not opened by DO.
    """
    pass


class UnresolvedReferenceError(ConstructError):
    """
    Compilation finished with pending forward references.

    This means open and close constructs are unbalanced: some construct was
    opened and never closed, so the branch it reserved was never patched.

    Attributes:
        pending: Number of live slots or unpatched reservations
    """

    def __init__(
        self,
        message: str,
        pending: int,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.pending = pending
        super().__init__(message, location=location, hint=hint, source_line=source_line)


class InvalidBreakContinueError(ConstructError):
    """BREAK or CONTINUE used with no enclosing loop."""
    pass


class PatchError(ConstructError):
    """
    A backpatch targeted bytes that cannot be patched.

    Raised when:
    - The operand lies beyond the current write cursor
    - The address was never reserved as an operand
    - The reservation has already been patched once

    This always indicates a defect in the compiler rather than in the
    source program.
    """
    pass


class BranchRangeError(ConstructError):
    """
    Relative branch target is out of range.

    HD6303 branch instructions use a signed 8-bit offset, limiting the range
    to -128 to +127 bytes from the instruction following the branch. The
    structured compiler only emits relative branches that skip one JMP, so
    this is only reachable through direct use of the encoder.
    """

    def __init__(
        self,
        target: int,
        offset: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.target = target
        self.offset = offset
        super().__init__(
            f"branch target ${target:04X} is out of range (offset: {offset})",
            location=location,
            hint=f"branch offset is {offset}, but range is -128 to +127",
            source_line=source_line,
        )


class SourceSyntaxError(ConstructError):
    """
    Syntax error in structured source.

    Examples:
        - Unknown keyword or mnemonic
        - Missing or unknown condition code after IF/CASE/WHILE/UNTIL
        - Invalid number format
        - ORG after code has been emitted
    """
    pass
