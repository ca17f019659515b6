"""Domain exceptions raised at configuration and dispatch boundaries."""

from typing import Optional


class ChatwireException(Exception):
    """Base exception for chatwire operations."""

    def __init__(self, message: str, query_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.query_id = query_id


class ConfigurationException(ChatwireException):
    """Invalid or unreadable configuration."""

    pass


class DispatchException(ChatwireException):
    """Exchange could not be started."""

    def __init__(self, message: str, provider: Optional[str] = None, query_id: Optional[str] = None):
        super().__init__(message, query_id)
        self.provider = provider


class MissingCredentialException(DispatchException):
    """No usable secret is available for the provider."""

    pass


class UnknownProviderException(DispatchException):
    """Provider has no configured endpoint."""

    pass


class TransportException(DispatchException):
    """Transport failed while talking to the provider."""

    def __init__(self, message: str, provider: Optional[str] = None, exit_code: Optional[int] = None, query_id: Optional[str] = None):
        super().__init__(message, provider, query_id)
        self.exit_code = exit_code
