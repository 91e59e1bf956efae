"""
Core data models for the Oriento session client.

This module defines the data structures shared by the session store, the
request pipeline and the renewal coordinator.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum


class RenewalPhase(Enum):
    """Phase of the credential renewal state machine."""
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class Session:
    """Snapshot of the authenticated state."""
    credential: Optional[str] = None
    identity: Optional[Dict[str, Any]] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        if self.identity is not None and self.credential is None:
            raise ValueError("Session identity requires a credential")

    @property
    def is_authenticated(self) -> bool:
        return self.credential is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when the credential has a known expiry that has passed."""
        if self.expires_at is None:
            return False
        return (now or datetime.now()) >= self.expires_at


@dataclass(frozen=True)
class CredentialGrant:
    """Validated result of a login or renewal call."""
    credential: str
    expires_at: Optional[datetime] = None
    identity: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.credential:
            raise ValueError("Credential cannot be empty")


@dataclass(frozen=True)
class OutgoingRequest:
    """Immutable description of an HTTP request before it is sent."""
    method: str
    path: str
    json: Optional[Dict[str, Any]] = None
    params: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.method:
            raise ValueError("Request method cannot be empty")
        object.__setattr__(self, 'method', self.method.upper())

    def with_header(self, name: str, value: str) -> 'OutgoingRequest':
        """Return a copy of this request with one header added or replaced."""
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)


@dataclass(frozen=True)
class RequestEnvelope:
    """A request travelling through the pipeline, with its retry marker."""
    request: OutgoingRequest
    retried: bool = False

    def for_retry(self) -> 'RequestEnvelope':
        return replace(self, retried=True)


@dataclass
class HTTPResponse:
    """Decoded response returned by the transport."""
    status: int
    data: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_auth_failure(self) -> bool:
        return self.status == 401

    @property
    def detail(self) -> str:
        """Best-effort error detail from the response body."""
        for key in ('detail', 'message', 'error'):
            value = self.data.get(key)
            if value:
                return str(value)
        return ''


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an access guard check."""
    allowed: bool
    redirect_to: Optional[str] = None
