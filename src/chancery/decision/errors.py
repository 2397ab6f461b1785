"""Exceptions raised by the decision pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import ValidationError


class DecisionParseError(Exception):
    """Raised when no valid decision could be produced after every tier."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_errors: list[str],
    ) -> None:
        self.attempts = attempts
        self.last_errors = last_errors
        super().__init__(message)


class LooseJSONError(ValueError):
    """Raised when text contains no recoverable JSON object."""

    def __init__(self, message: str, text: str) -> None:
        self.text = text
        super().__init__(message)


class SynthesisError(Exception):
    """Raised when no action kind is available to synthesize a decision from."""


def format_validation_errors(error: ValidationError) -> list[str]:
    """Format Pydantic validation errors as ``loc: msg`` strings.

    Args:
        error: Pydantic ValidationError.

    Returns:
        List of human-readable error messages.
    """
    errors = []
    for e in error.errors():
        loc = ".".join(str(part) for part in e["loc"])
        msg = e["msg"]
        if loc:
            errors.append(f"{loc}: {msg}")
        else:
            errors.append(msg)
    return errors
