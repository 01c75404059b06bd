"""
Control Constructs: IF and SWITCH
=================================

IF / ELSE / ENDIF
-----------------
    IF cc           Bcc  body          ; cc holds: enter the body
                    JMP  ????          ; slot A
               body:
                    ...
    ELSE            JMP  ????          ; slot B replaces A on the stack
                                       ; A patched to here
                    ...
    ENDIF                              ; top slot patched to here, popped

Only one slot is live per IF at any time. ELSE hands the IF's obligation to
its own JMP by overwriting the stack top in place.

SWITCH / CASE / ENDCASE / ENDSWITCH
-----------------------------------
    SWITCH          BRA  first         ; hop over the exit instruction
              exit: JMP  ????          ; slot S, live for the whole switch
              first:
    CASE cc         Bcc  body
                    JMP  ????          ; slot C: to the next test
               body:
                    ...
    ENDCASE         JMP  exit          ; chain through the pending exit
                                       ; C patched to here, popped
                    ...                ; next CASE, or default code
    ENDSWITCH                          ; S patched to here, popped

ENDCASE never creates a new obligation: every case jumps to the exit JMP,
which is still unresolved when they are emitted. Patching that single JMP at
ENDSWITCH redirects all of them.
"""

from typing import Optional

from psion_flow.constructs import ConstructCompiler
from psion_flow.encoder import Condition
from psion_flow.errors import SourceLocation, UnmatchedCloseError
from psion_flow.patchstack import SlotKind


class ControlCompiler(ConstructCompiler):
    """Compiles IF/ELSE/ENDIF and SWITCH/CASE/ENDCASE/ENDSWITCH."""

    # =========================================================================
    # IF / ELSE / ENDIF
    # =========================================================================

    def if_open(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        """Open an IF whose body runs when `condition` holds."""
        slot = self._emit_guarded_jump(condition, SlotKind.IF, location)
        self._stack.push(slot)

    def else_branch(self, location: Optional[SourceLocation] = None) -> None:
        """End the IF body and start the ELSE body."""
        pending = self._stack.expect_top((SlotKind.IF,), "ELSE", location)
        slot = self._emit_forward_jump(SlotKind.ELSE, location)
        self._resolve(pending, location)
        self._stack.set_top(slot, location)

    def end_if(self, location: Optional[SourceLocation] = None) -> None:
        """Close the innermost IF (with or without ELSE)."""
        slot = self._stack.expect_top((SlotKind.IF, SlotKind.ELSE), "ENDIF", location)
        self._resolve(slot, location)
        self._stack.pop(location)

    # =========================================================================
    # SWITCH / CASE / ENDCASE / ENDSWITCH
    # =========================================================================

    def switch_open(self, location: Optional[SourceLocation] = None) -> None:
        """Open a SWITCH and emit its shared exit instruction."""
        self._emit_skip(Condition.ALWAYS)
        slot = self._emit_forward_jump(SlotKind.SWITCH, location)
        self._stack.push(slot)

    def case_test(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        """Open a CASE whose body runs when `condition` holds."""
        self._stack.expect_top((SlotKind.SWITCH,), "CASE", location)
        slot = self._emit_guarded_jump(condition, SlotKind.CASE, location)
        self._stack.push(slot)

    def end_case(self, location: Optional[SourceLocation] = None) -> None:
        """Close a CASE body: leave the switch, and resolve the case's fall-through."""
        case = self._stack.expect_top((SlotKind.CASE,), "ENDCASE", location)
        switch = self._stack.nth(1, location)
        if switch.kind is not SlotKind.SWITCH:
            raise UnmatchedCloseError(
                f"ENDCASE outside SWITCH (found {switch.kind})", location=location
            )
        self._emit_jump(switch.instruction)
        self._resolve(case, location)
        self._stack.pop(location)

    def end_switch(self, location: Optional[SourceLocation] = None) -> None:
        """Close the innermost SWITCH; code since the last ENDCASE is the default."""
        slot = self._stack.expect_top((SlotKind.SWITCH,), "ENDSWITCH", location)
        self._resolve(slot, location)
        self._stack.pop(location)
