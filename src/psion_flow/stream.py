"""
Code Stream
===========

The output buffer of one compilation unit: an append-only byte sequence with
a write cursor, plus in-place overwrite of operands that were reserved
earlier.

Addresses
---------
All addresses handed out by the stream are absolute target addresses, i.e.
`origin + offset into the buffer`. The cursor (`here()`) only ever advances.
A patch writes into bytes that already exist; it never grows the buffer and
never moves the cursor.

Reservations
------------
`reserve_operand()` appends a 2-byte placeholder and remembers its address.
Each reservation must be patched exactly once. The stream enforces this, so
a double patch or a patch of an arbitrary address is reported as a
`PatchError` instead of silently corrupting code that was already final.
"""

import logging
from typing import Optional

from psion_flow.errors import PatchError, SourceLocation

logger = logging.getLogger(__name__)

# Operands are 16-bit absolute addresses, stored big-endian.
OPERAND_SIZE = 2

# Placeholder written into reserved operands until they are patched.
PLACEHOLDER = b"\x00\x00"


class CodeStream:
    """
    Emitted code plus write cursor.

    Usage:
        stream = CodeStream(origin=0x2000)
        stream.emit(bytes([0x7E]))
        operand = stream.reserve_operand()
        ...
        stream.patch_operand(operand, stream.here())
    """

    def __init__(self, origin: int = 0):
        if not 0 <= origin <= 0xFFFF:
            raise ValueError(f"origin ${origin:X} outside the 16-bit address space")
        self._origin = origin
        self._code = bytearray()
        # reserved operand address -> True once patched
        self._reservations: dict[int, bool] = {}

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def origin(self) -> int:
        """Address of the first emitted byte."""
        return self._origin

    def here(self) -> int:
        """Current cursor: the address the next emitted byte will occupy."""
        return self._origin + len(self._code)

    def __len__(self) -> int:
        return len(self._code)

    def get_code(self) -> bytes:
        """Return a copy of everything emitted so far."""
        return bytes(self._code)

    # =========================================================================
    # Emission
    # =========================================================================

    def emit(self, data: bytes) -> int:
        """
        Append bytes at the cursor.

        Returns:
            The address of the first appended byte
        """
        start = self.here()
        if start + len(data) > 0x10000:
            raise PatchError(
                f"code at ${start:04X} would run past the end of the address space"
            )
        self._code.extend(data)
        return start

    def reserve_operand(self) -> int:
        """
        Append a placeholder operand whose value is not yet known.

        Returns:
            The address of the operand's first byte
        """
        address = self.emit(PLACEHOLDER)
        self._reservations[address] = False
        logger.debug(f"reserved operand at ${address:04X}")
        return address

    def patch_operand(
        self,
        operand_address: int,
        value: int,
        location: Optional[SourceLocation] = None,
    ) -> None:
        """
        Overwrite a reserved operand in place with a 16-bit value.

        Raises:
            PatchError: If the operand is not fully emitted yet, was never
                reserved, or has already been patched
        """
        offset = operand_address - self._origin
        if offset < 0 or offset + OPERAND_SIZE > len(self._code):
            raise PatchError(
                f"cannot patch ${operand_address:04X}: not emitted yet "
                f"(cursor at ${self.here():04X})",
                location=location,
            )
        if operand_address not in self._reservations:
            raise PatchError(
                f"cannot patch ${operand_address:04X}: not a reserved operand",
                location=location,
            )
        if self._reservations[operand_address]:
            raise PatchError(
                f"operand at ${operand_address:04X} was already patched",
                location=location,
            )

        self._code[offset] = (value >> 8) & 0xFF
        self._code[offset + 1] = value & 0xFF
        self._reservations[operand_address] = True
        logger.debug(f"patched operand ${operand_address:04X} -> ${value & 0xFFFF:04X}")

    # =========================================================================
    # Inspection
    # =========================================================================

    def read_word(self, address: int) -> int:
        """Read the big-endian 16-bit word stored at an address."""
        offset = address - self._origin
        if offset < 0 or offset + 2 > len(self._code):
            raise IndexError(f"no word emitted at ${address:04X}")
        return (self._code[offset] << 8) | self._code[offset + 1]

    def is_patched(self, operand_address: int) -> bool:
        """Return True if a reserved operand has received its value."""
        return self._reservations.get(operand_address, False)

    def unresolved(self) -> list[int]:
        """Return the addresses of reserved operands that were never patched."""
        return sorted(
            address for address, patched in self._reservations.items() if not patched
        )

    def reservation_count(self) -> int:
        """Return how many operands have been reserved in total."""
        return len(self._reservations)
