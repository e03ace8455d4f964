"""Error codes understood by the Box Skills UI and the exceptions that carry them."""

from __future__ import annotations

from enum import Enum


class SkillsErrorCode(str, Enum):
    FILE_PROCESSING_ERROR = "skills_file_processing_error"
    INVALID_FILE_SIZE = "skills_invalid_file_size_error"
    INVALID_FILE_FORMAT = "skills_invalid_file_format_error"
    INVALID_EVENT = "skills_invalid_event_error"
    NO_INFO_FOUND = "skills_no_info_found"
    INVOCATIONS_ERROR = "skills_invocations_error"
    EXTERNAL_AUTH_ERROR = "skills_external_auth_error"
    BILLING_ERROR = "skills_billing_error"
    UNKNOWN = "skills_unknown_error"

    @classmethod
    def normalize(cls, value: object) -> SkillsErrorCode:
        """Map any value onto the closed set, falling back to UNKNOWN.

        Accepts wire values ("skills_billing_error") and the same value without
        the ``skills_`` prefix ("billing_error").
        """
        if isinstance(value, cls):
            return value
        for candidate in (value, f"skills_{value}"):
            try:
                return cls(candidate)
            except ValueError:
                continue
        return cls.UNKNOWN


CUSTOM_ERROR_CODE = "custom_error"


class SkillsError(Exception):
    """Raised for failures that map onto a skill error card code."""

    def __init__(self, code: SkillsErrorCode, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code.value)


class ClientAuthorizationError(Exception):
    """The read token was rejected (401) while fetching file content."""
