"""Error taxonomy shared by the store, the generation pipeline and the API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError


class AharaError(Exception):
    """Base class for all application errors."""


@dataclass(frozen=True)
class FieldError:
    """One offending field and the constraint it violated."""

    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ValidationFailure(AharaError):
    """Raised when input fails validation; carries one entry per field."""

    def __init__(self, errors: list[FieldError], message: str = "Validation error") -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> ValidationFailure:
        return cls([FieldError(field=field, message=message)])

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> ValidationFailure:
        """Flatten pydantic errors into dotted ``{field, message}`` pairs."""
        errors = [
            FieldError(
                field=".".join(str(part) for part in err["loc"]),
                message=err["msg"],
            )
            for err in exc.errors()
        ]
        return cls(errors)

    def as_dicts(self) -> list[dict[str, Any]]:
        return [e.as_dict() for e in self.errors]


class NotFound(AharaError):
    """Requested identity does not resolve to an active record."""


class MalformedIdentity(AharaError):
    """An id does not match the store's identity format."""


class DuplicateRecord(AharaError):
    """An active record already holds the same unique contact value."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Duplicate value for {field}")
        self.field = field


class ConfigurationMissing(AharaError):
    """A required external credential is absent."""

    def __init__(self, credential: str) -> None:
        super().__init__(f"{credential} is not configured")
        self.credential = credential


class UpstreamFailure(AharaError):
    """The external LLM call errored or returned unusable content."""
