"""
HTTP transport for the Oriento session client.

This module sends individual requests to the API server over aiohttp, with
connection-level retry logic. It returns every HTTP response as-is, including
error statuses; interpreting them is left to the request pipeline.
"""

import asyncio
import json
import logging
import random
from typing import Optional, Dict, Any

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError

from oriento_shared.exceptions import NetworkError, ErrorCode
from oriento_shared.interfaces import ITransport
from oriento_shared.models import OutgoingRequest, HTTPResponse

logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for connection-level retry logic."""

    def __init__(
        self,
        max_retries: int = 2,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        exponential_base: float = 2.0,
        jitter: bool = True
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before the retry following the given attempt."""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            delay *= (0.5 + random.random() * 0.5)
        return delay


# Safe to resend after a failure mid-request
IDEMPOTENT_METHODS = frozenset(['GET', 'HEAD', 'OPTIONS', 'PUT', 'DELETE'])


class HTTPTransport(ITransport):
    """
    aiohttp-backed transport.

    Keeps one client session with a cookie jar, so durable cookies set by the
    login call are sent back on renewal and logout.
    """

    def __init__(
        self,
        server_url: str,
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None
    ):
        self.server_url = server_url.rstrip('/')
        self.timeout = ClientTimeout(total=timeout)
        self.retry_config = retry_config or RetryConfig()

        self._session: Optional[ClientSession] = None

        logger.info(f"HTTP transport initialized for server: {self.server_url}")

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                limit_per_host=5,
                keepalive_timeout=30,
            )
            # unsafe=True keeps cookies issued by IP-addressed dev servers
            self._session = ClientSession(
                connector=connector,
                timeout=self.timeout,
                cookie_jar=aiohttp.CookieJar(unsafe=True),
                headers={'User-Agent': 'OrientoClient/1.0'}
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _build_url(self, path: str) -> str:
        if path.startswith(('http://', 'https://')):
            return path
        return f"{self.server_url}/{path.lstrip('/')}"

    async def send(self, request: OutgoingRequest) -> HTTPResponse:
        """
        Send a request, retrying only on connection-level failures.

        Args:
            request: The request to send

        Returns:
            The decoded response, whatever its status

        Raises:
            NetworkError: When every attempt failed to reach the server
        """
        session = await self._ensure_session()
        url = self._build_url(request.path)

        attempt = 0
        last_exception: Optional[BaseException] = None

        while attempt <= self.retry_config.max_retries:
            try:
                logger.debug(f"{request.method} {url} (attempt {attempt + 1})")

                async with session.request(
                    method=request.method,
                    url=url,
                    json=request.json,
                    params=request.params,
                    headers=request.headers
                ) as response:
                    data = await self._decode_body(response)
                    return HTTPResponse(
                        status=response.status,
                        data=data,
                        headers=dict(response.headers)
                    )

            except (ClientError, asyncio.TimeoutError, OSError) as e:
                last_exception = e
                logger.warning(f"Network error on attempt {attempt + 1} for {request.method} {url}: {e}")

                if attempt >= self.retry_config.max_retries or not self._is_retryable(request, e):
                    break

                delay = self.retry_config.delay_for(attempt)
                logger.info(f"Retrying in {delay:.1f} seconds...")
                await asyncio.sleep(delay)
                attempt += 1

        error_code = (
            ErrorCode.NETWORK_TIMEOUT if isinstance(last_exception, asyncio.TimeoutError)
            else ErrorCode.NETWORK_CONNECTION_FAILED
        )
        raise NetworkError(
            f"Network request failed after {attempt + 1} attempts: {last_exception}",
            error_code=error_code,
            context={'method': request.method, 'url': url},
            cause=last_exception
        )

    @staticmethod
    def _is_retryable(request: OutgoingRequest, error: BaseException) -> bool:
        """Non-idempotent requests are retried only if they never reached the server."""
        if request.method in IDEMPOTENT_METHODS:
            return True
        return isinstance(error, aiohttp.ClientConnectorError)

    async def _decode_body(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        """Decode a JSON body; empty or non-JSON bodies become a dict."""
        text = await response.text(errors='replace')
        if not text.strip():
            return {}
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return {'detail': text}
        if isinstance(payload, dict):
            return payload
        return {'data': payload}
