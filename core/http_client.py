"""Outbound REST transport for the Helios API.

:class:`ResilientHttpClient` owns one ``aiohttp`` session, attaches the
browser-like headers the web app sends, a bearer token where required,
and whichever proxy is currently bound.  It raises :class:`ApiError` for
every failure so that :mod:`core.retry` can classify it by status.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from core.config import BotSettings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A failed outbound call.

    Attributes:
        status: HTTP status, or ``None`` for transport failures
            (timeouts, refused connections, proxy errors).
        payload: Decoded JSON body (or raw text) of the error response.
        method: HTTP method of the failed call.
        url: Target URL of the failed call.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        payload: Any = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload
        self.method = method
        self.url = url

    @property
    def api_message(self) -> Optional[str]:
        """The ``message`` field of a JSON error payload, if any."""
        if isinstance(self.payload, dict):
            message = self.payload.get("message")
            if message is not None:
                return str(message)
        return None


async def read_payload(response: aiohttp.ClientResponse) -> Any:
    """Decode a response body as JSON, falling back to text.

    Undecodable bytes are replaced so that an error page in an unexpected
    encoding still surfaces with its status.
    """
    try:
        return await response.json(content_type=None)
    except (ValueError, aiohttp.ContentTypeError):
        return await response.text(errors="replace")


class ResilientHttpClient:
    """JSON-over-HTTPS client bound to the Helios REST base URL.

    The proxy is attached per request, so rebinding it with
    :meth:`bind_proxy` takes effect on the very next call without
    tearing down the underlying session.

    Args:
        settings: Bot-wide configuration.
        proxy: Initial proxy URI, or ``None`` for a direct connection.
    """

    def __init__(
        self, settings: BotSettings, proxy: Optional[str] = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.api_base_url
        self.proxy = proxy
        self.timeout = aiohttp.ClientTimeout(
            total=settings.request_timeout_seconds,
        )
        self.headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Origin": settings.app_origin,
            "Referer": settings.app_referer,
            "User-Agent": settings.user_agent,
        }
        self._session: Optional[aiohttp.ClientSession] = None

    def bind_proxy(self, proxy: Optional[str]) -> None:
        """Route subsequent requests through *proxy* (``None`` = direct)."""
        self.proxy = proxy

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Any:
        """Send one request and return its decoded body.

        Args:
            method: HTTP method (``GET`` / ``POST``).
            path: Path below the API base URL, starting with ``/``.
            json: Optional JSON body.
            token: Optional bearer token.

        Returns:
            The decoded JSON body (or text for non-JSON responses).

        Raises:
            ApiError: On any status >= 400 or transport failure.
        """
        url = f"{self.base_url}{path}"
        headers = dict(self.headers)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        session = await self._get_session()
        try:
            async with session.request(
                method, url, json=json, headers=headers, proxy=self.proxy,
            ) as response:
                payload = await read_payload(response)
                if response.status >= 400:
                    raise ApiError(
                        f"Request failed with status code {response.status}",
                        status=response.status,
                        payload=payload,
                        method=method,
                        url=url,
                    )
                return payload
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ApiError(
                f"{method} {path} failed: {e or type(e).__name__}",
                method=method,
                url=url,
            ) from e

    async def get(self, path: str, token: Optional[str] = None) -> Any:
        return await self.request("GET", path, token=token)

    async def post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Any:
        return await self.request("POST", path, json=json, token=token)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
