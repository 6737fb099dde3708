"""
Lease Kernel

Pure domain core of the property-lease back office:
- Fixed-precision money arithmetic
- Immutable invoice, receipt and termination aggregates
- Lifecycle and approval state machines
- Typed exceptions and structured logging
"""

__version__ = "0.1.0"
