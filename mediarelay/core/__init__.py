"""Core pipeline pieces: HTTP, credentials, retry, classification, normalization, download."""

from .credentials import CredentialPool, obtain_csrf_token
from .download import materialize
from .errors import RelayError
from .http_client import HTTPClient
from .locator import classify, resolve_share_link
from .monitor import FailureMonitor, FailureReport
from .retry import RetryPolicy, execute

__all__ = [
    "CredentialPool",
    "FailureMonitor",
    "FailureReport",
    "HTTPClient",
    "RelayError",
    "RetryPolicy",
    "classify",
    "execute",
    "materialize",
    "obtain_csrf_token",
    "resolve_share_link",
]
