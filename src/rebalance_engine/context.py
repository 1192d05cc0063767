"""
Run context management using ContextVar for async-safe context propagation.
"""

from contextvars import ContextVar
from typing import Optional

from .models import RunInfo

# Context variable to store the current run across async boundaries
current_run: ContextVar[Optional[RunInfo]] = ContextVar('current_run', default=None)


def set_current_run(run: RunInfo) -> None:
    """Set the current run in the context."""
    current_run.set(run)


def get_current_run() -> Optional[RunInfo]:
    """Get the current run from the context."""
    return current_run.get()


def clear_current_run() -> None:
    """Clear the current run from the context."""
    current_run.set(None)
