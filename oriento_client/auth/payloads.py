"""
Wire payloads of the authentication API.

Request bodies are built from these models and server responses are validated
against them before anything reaches the session store. Field aliases follow
the server's wire format.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from jose import jwt, JWTError
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from oriento_shared.exceptions import MalformedResponseError, ValidationError
from oriento_shared.models import CredentialGrant

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    """Login request body."""
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=1)
    secret: str = Field(..., alias='senha', min_length=1)


class RegisterRequest(BaseModel):
    """Registration request body."""
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(..., alias='nome', min_length=1)
    tax_id: str = Field(..., alias='cnpj', min_length=1)
    email: str = Field(..., min_length=1)
    secret: str = Field(..., alias='senha', min_length=1)


class CredentialGrantResponse(BaseModel):
    """Body returned by the login and refresh endpoints."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    access_token: str = Field(..., alias='accessToken', min_length=1)
    expires_in: Optional[int] = Field(None, alias='expiresIn', ge=0)
    identity: Optional[Dict[str, Any]] = Field(None, alias='usuario')


def build_body(model_cls, **fields) -> Dict[str, Any]:
    """
    Validate request fields and serialize them with wire aliases.

    Raises:
        ValidationError: If a field is missing or empty
    """
    try:
        return model_cls(**fields).model_dump(by_alias=True)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = '.'.join(str(part) for part in first.get('loc', ()))
        raise ValidationError(f"Invalid {field_name}: {first.get('msg')}", field_name=field_name, cause=e)


def expiry_from_token(token: str) -> Optional[datetime]:
    """Read the expiry claim of a JWT credential without verifying it."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None

    exp = claims.get('exp')
    if not isinstance(exp, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(exp)
    except (OverflowError, OSError, ValueError):
        logger.warning(f"Ignoring out-of-range exp claim: {exp}")
        return None


def parse_credential_grant(data: Any, now: Optional[datetime] = None) -> CredentialGrant:
    """
    Validate a login/refresh response body.

    The expiry comes from ``expiresIn`` when present, otherwise from the
    credential's own ``exp`` claim when it is a JWT.

    Raises:
        MalformedResponseError: If the body does not match the expected shape
    """
    try:
        payload = CredentialGrantResponse.model_validate(data)
    except PydanticValidationError as e:
        logger.warning(f"Rejected malformed credential payload: {e.error_count()} error(s)")
        raise MalformedResponseError(
            "Malformed credential response from server",
            context={'errors': [err.get('msg') for err in e.errors()]},
            cause=e
        )

    if payload.expires_in is not None:
        try:
            expires_at = (now or datetime.now()) + timedelta(seconds=payload.expires_in)
        except OverflowError:
            logger.warning(f"Ignoring out-of-range expiresIn: {payload.expires_in}")
            expires_at = None
    else:
        expires_at = expiry_from_token(payload.access_token)

    return CredentialGrant(
        credential=payload.access_token,
        expires_at=expires_at,
        identity=payload.identity
    )
