"""
Error type shared by every stage of the resolution pipeline.

A single exception class carries a machine-readable ``ErrorKind`` so callers
(chat bot, HTTP wrapper) can map failures to user copy without parsing
messages.
"""

from ..models.enums import ErrorKind


class RelayError(Exception):
    """Raised when classification, an upstream call or normalization fails."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE,
        *,
        status_code: int | None = None,
        retryable: bool = False,
        last_error: "RelayError | None" = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.retryable = retryable
        self.last_error = last_error

    @property
    def error_code(self) -> str:
        return self.kind.value

    @property
    def root_kind(self) -> ErrorKind:
        """Kind of the innermost wrapped error (for AllMethodsFailed chains)."""
        err = self
        while err.last_error is not None:
            err = err.last_error
        return err.kind

    def __repr__(self) -> str:
        return f"RelayError({str(self)!r}, kind={self.kind.value})"


# Input the user can fix by sending something else.
USER_CORRECTABLE_KINDS = frozenset(
    {
        ErrorKind.UNRECOGNIZED_INPUT,
        ErrorKind.MISSING_USERNAME,
        ErrorKind.SHORTCODE_PARSE_ERROR,
        ErrorKind.INVALID_STORY_LINK,
    }
)

# Legitimate "nothing to return" outcomes, not transient failures.
EMPTY_RESULT_KINDS = frozenset(
    {
        ErrorKind.USER_NOT_FOUND,
        ErrorKind.MEDIA_NOT_FOUND,
        ErrorKind.NO_ACTIVE_STORIES,
        ErrorKind.NO_HIGHLIGHTS,
        ErrorKind.NO_POSTS,
    }
)

# Kinds that must reach the operator through the failure monitor.
ALERT_KINDS = frozenset(
    {
        ErrorKind.CREDENTIALS_MISSING,
        ErrorKind.UNAUTHORIZED,
        ErrorKind.MALFORMED_UPSTREAM_RESPONSE,
        ErrorKind.ALL_METHODS_FAILED,
    }
)


def status_code_of(exc: BaseException) -> int | None:
    """Best-effort HTTP status extraction from RelayError or httpx errors."""
    code = getattr(exc, "status_code", None)
    if code is None:
        response = getattr(exc, "response", None)
        code = getattr(response, "status_code", None)
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def alert_name(kind: ErrorKind) -> str:
    """CamelCase name used in failure reports, e.g. ``AllMethodsFailed``."""
    return "".join(part.title() for part in kind.value.split("_"))
