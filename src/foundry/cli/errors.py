"""
Standardized error handling and exit codes for the foundry CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console

from foundry.core.errors import (
    AuthenticationError,
    CapacityExceededError,
    CyclicRelationshipError,
    DanglingReferenceError,
    FoundryError,
    IntegrityError,
    InvalidFieldError,
    NotAuthorizedError,
    NotFoundError,
)

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for foundry CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error (I/O failure, corrupted checkpoint)."""

    USER_ERROR = 2
    """Rejected request (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Capture not found: cap-9",
        ...     solution="foundry capture list",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def _solution(error: FoundryError) -> str | None:
    if isinstance(error, AuthenticationError):
        return "foundry --as <principal> ...  # or set FOUNDRY_PRINCIPAL"
    if isinstance(error, NotAuthorizedError):
        return "foundry config show  # lists the controllers"
    if isinstance(error, NotFoundError):
        return f"foundry {error.kind} list"
    if isinstance(error, InvalidFieldError):
        return "foundry capture fields  # lists the fields each type accepts"
    if isinstance(error, CyclicRelationshipError):
        return "choose a parent outside the record's own subtree"
    if isinstance(error, DanglingReferenceError):
        return f"check that {error.kind} {error.record_id} exists and is yours"
    if isinstance(error, CapacityExceededError):
        return f"foundry sprint update {error.sprint_id} --capacity <larger>"
    if isinstance(error, IntegrityError):
        return "foundry audit --repair"
    return None


def print_foundry_error(error: FoundryError) -> ExitCode:
    """Print a store error with guidance and return the exit code to use."""
    reason = None
    if isinstance(error, IntegrityError):
        reason = "\n".join(str(f) for f in error.findings[:10])
    print_error(str(error), reason=reason, solution=_solution(error))
    if isinstance(error, IntegrityError):
        return ExitCode.GENERAL_ERROR
    return ExitCode.USER_ERROR
