"""
psion_flow Configuration
========================

Settings for one compilation unit. Configuration can come from:
- Default values (defined here)
- Environment variables (`FlowConfig.from_env()`)
- Command-line options (`FlowConfig.with_overrides()`, used by psflow)

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

import dataclasses
import logging
import os
from dataclasses import dataclass

from psion_flow.encoder import Counter
from psion_flow.patchstack import DEFAULT_CAPACITY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowConfig:
    """
    Configuration for a StructuredCompiler.

    Attributes:
        origin: Address of the first emitted byte (default: $0000)
        control_capacity: Nesting limit for IF/SWITCH constructs (default: 12)
        loop_capacity: Nesting limit for loop slots (default: 12). A loop
            with a pending exit uses two slots.
        counter: Register decremented by LOOP when none is given (default: X)
    """

    origin: int = 0x0000
    control_capacity: int = DEFAULT_CAPACITY
    loop_capacity: int = DEFAULT_CAPACITY
    counter: Counter = Counter.X

    def __post_init__(self):
        if not 0 <= self.origin <= 0xFFFF:
            raise ValueError(f"origin ${self.origin:X} outside the 16-bit address space")
        if self.control_capacity < 1 or self.loop_capacity < 1:
            raise ValueError("stack capacities must be at least 1")

    # ═══════════════════════════════════════════════════════════════════════════
    # FACTORY METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    @classmethod
    def from_env(cls) -> "FlowConfig":
        """
        Create FlowConfig from environment variables.

        Environment variables (all optional):
            PSFLOW_ORIGIN: Origin address (e.g. "0x2000" or "8192")
            PSFLOW_STACK_CAPACITY: Capacity of both patch stacks (integer)
            PSFLOW_COUNTER: Default LOOP counter register ("X", "A" or "B")

        Invalid values are logged as warnings and the default is kept.
        """
        overrides = {}

        if origin := os.environ.get("PSFLOW_ORIGIN"):
            try:
                value = int(origin, 0)
            except ValueError:
                value = -1
            if 0 <= value <= 0xFFFF:
                overrides["origin"] = value
            else:
                logger.warning(f"ignoring invalid PSFLOW_ORIGIN={origin!r}")

        if capacity := os.environ.get("PSFLOW_STACK_CAPACITY"):
            try:
                value = int(capacity)
            except ValueError:
                value = 0
            if value >= 1:
                overrides["control_capacity"] = value
                overrides["loop_capacity"] = value
            else:
                logger.warning(f"ignoring invalid PSFLOW_STACK_CAPACITY={capacity!r}")

        if counter := os.environ.get("PSFLOW_COUNTER"):
            if counter.upper() in Counter.__members__:
                overrides["counter"] = Counter[counter.upper()]
            else:
                logger.warning(f"ignoring invalid PSFLOW_COUNTER={counter!r}")

        return cls(**overrides)

    # ═══════════════════════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    def with_overrides(self, **changes) -> "FlowConfig":
        """
        Return a copy with the given fields replaced.

        Fields passed as None are left unchanged, so optional command-line
        values can be forwarded directly.
        """
        return dataclasses.replace(
            self, **{name: value for name, value in changes.items() if value is not None}
        )
