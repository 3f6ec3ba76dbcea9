"""
Registration error types.

Absence of a match is never an error (resolvers return ``None``).  The
exceptions below are what the engine surfaces to its caller:

- RegistrationRejected: the attributes are invalid; nothing was written.
  Not retryable.
- RegistrationConflict: a concurrent writer kept winning the same unique
  key and the retry budget ran out.  Retryable by the caller.
- RegistrationFailed: device creation raised (e.g. a plugin blew up while
  extracting details); the creation was rolled back as a unit.
"""

from typing import Any, Dict, List, Optional


class RegistrationError(Exception):
    """Base class for errors surfaced by the registration engine."""

    reason = "registration_error"
    retryable = False

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "reason": self.reason}


class RegistrationRejected(RegistrationError):
    """Malformed or inconsistent registration attributes."""

    reason = "invalid_attributes"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message, reason)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class RegistrationConflict(RegistrationError):
    """Unique-key conflicts persisted past the retry budget."""

    reason = "write_conflict"
    retryable = True


class RegistrationFailed(RegistrationError):
    """Device creation failed and was rolled back."""

    reason = "creation_failed"
