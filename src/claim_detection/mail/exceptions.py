"""Exceptions raised by Mail Source implementations."""


class MailSourceError(Exception):
    """
    Base exception for mail retrieval errors.

    A failure while listing messages is fatal to a processing run; a failure
    fetching one message's detail is recorded against that message only.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MailSourceConnectionError(MailSourceError):
    """Network error or timeout talking to the mail provider."""
    pass


class MailSourceRequestError(MailSourceError):
    """The mail provider answered with an error status or an invalid payload."""
    pass


class MailSourceConfigurationError(MailSourceError):
    """Missing mailbox address or access token."""
    pass
