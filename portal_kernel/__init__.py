"""
Portal Kernel

Shared primitives for the accountant portal's payment lifecycle:
- Typed, code-carrying exceptions
- Structured JSON logging
- Injectable clock
- Declarative workflow value objects
- SQLAlchemy declarative base and session helpers
"""

__version__ = "0.1.0"
