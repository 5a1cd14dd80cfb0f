"""
Custom exceptions for the Completion Service layer.

The Analysis Dispatcher converts any of these into an error-marker
ClassificationResult for the affected message; only backend startup
failures (BackendNotReadyError) are fatal to a run.
"""


class CompletionClientError(Exception):
    """
    Base exception for all Completion Service errors.

    All completion-specific exceptions inherit from this to allow catching
    any transport-related error with a single except clause.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CompletionConnectionError(CompletionClientError):
    """
    Raised when unable to reach the completion endpoint.

    Includes network errors, DNS failures, refused connections.
    Retried with backoff by the client.
    """
    pass


class CompletionTimeoutError(CompletionConnectionError):
    """Raised when a completion request exceeds the client timeout."""
    pass


class CompletionRequestError(CompletionClientError):
    """
    Raised when the endpoint answers with an error status or an
    unparseable envelope.

    5xx responses are retried; 4xx responses are not.
    """
    pass


class CompletionRateLimitError(CompletionRequestError):
    """Raised on HTTP 429 from the hosted provider after retries are exhausted."""
    pass


class CompletionConfigurationError(CompletionClientError):
    """Raised when a client is missing required settings (endpoint, key, deployment)."""
    pass


class BackendNotReadyError(CompletionClientError):
    """
    Raised when the self-hosted backend cannot be started or does not
    report a loaded model within the readiness window.

    Fatal to the processing run.
    """
    pass
