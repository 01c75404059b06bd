"""
psion_flow Command-Line Interface
=================================

- **psflow**: compile structured HD6303 source to raw machine code

The tool is a Click-based CLI application with help text and unified error
reporting.
"""

__all__ = ["psflow"]
