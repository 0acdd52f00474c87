"""
Utility modules for papergres.

Provides:
- Structured logging configuration
- Query lifecycle logger
"""

from papergres.utils.logging import QueryLogger, configure_logging, render_args

__all__ = [
    "configure_logging",
    "render_args",
    "QueryLogger",
]
