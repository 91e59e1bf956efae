"""
Core interfaces for the Oriento session client.

This module defines the abstract interfaces for the collaborators the session
layer talks to, so the pipeline can be exercised without a real network or UI.
"""

from abc import ABC, abstractmethod
from typing import Optional, Any

from .models import OutgoingRequest, HTTPResponse


class ITransport(ABC):
    """Interface for sending a single HTTP request."""

    @abstractmethod
    async def send(self, request: OutgoingRequest) -> HTTPResponse:
        """Send a request and return its decoded response, whatever the status."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release any network resources."""
        pass


class INavigator(ABC):
    """Interface for the navigation layer the access guard redirects through."""

    @abstractmethod
    def navigate(self, route: str) -> None:
        """Move the user to the given route."""
        pass


class IConfigurationManager(ABC):
    """Interface for configuration management."""

    @abstractmethod
    def get_server_url(self) -> str:
        """Get server URL."""
        pass

    @abstractmethod
    def get_auth_path(self) -> str:
        """Get base path of the authentication endpoints."""
        pass

    @abstractmethod
    def get_login_route(self) -> str:
        """Get the navigation route of the login entry point."""
        pass

    @abstractmethod
    def set_override(self, key: str, value: Any) -> None:
        """Set configuration override."""
        pass

    @abstractmethod
    def get_config(self, key: str, default: Optional[Any] = None) -> Any:
        """Get configuration value."""
        pass
