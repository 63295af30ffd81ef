# transport.py

import asyncio
import io
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional, Protocol, runtime_checkable

import aiohttp

from reqchain.context import RunContext
from reqchain.errors import InvalidHeader
from reqchain.log import logger, mask_headers, preview

DEFAULT_TIMEOUT = 30.0 # seconds

# HTTP methods
METHOD_GET = "GET"
METHOD_POST = "POST"
METHOD_PUT = "PUT"
METHOD_PATCH = "PATCH"
METHOD_DELETE = "DELETE"
METHOD_HEAD = "HEAD"
METHOD_OPTIONS = "OPTIONS"

VALID_METHODS = (METHOD_GET, METHOD_POST, METHOD_PUT, METHOD_PATCH, METHOD_DELETE, METHOD_HEAD, METHOD_OPTIONS)
BODY_METHODS = (METHOD_POST, METHOD_PUT, METHOD_PATCH)

# Content types
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
CONTENT_TYPE_TEXT = "text/plain"


def is_valid_method(method: str) -> bool:
    return method.upper() in VALID_METHODS


def is_body_required(method: str) -> bool:
    return method.upper() in BODY_METHODS


def parse_header(header: str) -> tuple:
    """Splits a 'Key: Value' header string; the key must not be empty."""
    key, sep, value = header.partition(":")
    if not sep:
        raise InvalidHeader(f"invalid header format: {header}")
    key, value = key.strip(), value.strip()
    if not key:
        raise InvalidHeader(f"header key cannot be empty: {header}")
    return key, value


def parse_headers(headers) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for header in headers or []:
        key, value = parse_header(header)
        parsed[key] = value
    return parsed


@dataclass
class HttpRequest:
    url: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    content_type: str = ""
    context: Optional[RunContext] = None

    def with_context(self, ctx: Optional[RunContext]) -> 'HttpRequest':
        self.context = ctx
        return self

    @property
    def content_length(self) -> int:
        return len(self.body) if self.body else 0


@dataclass
class HttpResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[BinaryIO] = None
    reason: str = ""

    @classmethod
    def from_bytes(cls, status_code: int, content: bytes = b"", headers: Optional[Dict[str, str]] = None, reason: str = "") -> 'HttpResponse':
        return cls(status_code=status_code, headers=dict(headers or {}), body=io.BytesIO(content), reason=reason)

    def header(self, name: str, default: str = "") -> str:
        lowered = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lowered:
                return v
        return default


@runtime_checkable
class HttpClient(Protocol):
    """Contract the engine depends on for sending requests."""

    async def do(self, request: HttpRequest) -> HttpResponse:
        ...

    def set_timeout(self, timeout: float) -> None:
        ...


class AiohttpClient:
    """HttpClient backed by an aiohttp ClientSession."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: Optional[aiohttp.ClientSession] = None):
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def set_timeout(self, timeout: float) -> None:
        self.timeout = timeout

    def create_session(self) -> aiohttp.ClientSession:
        """Creates a new aiohttp ClientSession; per-request timeouts are applied in do()."""
        connector = aiohttp.TCPConnector(limit=100, enable_cleanup_closed=True)
        return aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=None, connect=10),
            cookie_jar=aiohttp.DummyCookieJar(), # no implicit state between requests
        )

    def _effective_timeout(self, request: HttpRequest) -> float:
        timeout = self.timeout
        if request.context is not None:
            remaining = request.context.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)
        return timeout

    async def do(self, request: HttpRequest) -> HttpResponse:
        if request.context is not None:
            request.context.raise_if_done()
        if self._session is None or self._session.closed:
            self._session = self.create_session()
            self._owns_session = True

        headers = dict(request.headers)
        if request.body is not None and request.content_type:
            headers.setdefault('Content-Type', request.content_type)

        logger.debug(f"\n--- REQUEST START ---\n"
                     f"URL: {request.method} {request.url}\n"
                     f"Headers: {mask_headers(headers)}\n"
                     f"Payload: {preview(request.body.decode('utf-8', errors='replace')) if request.body else 'None'}\n"
                     f"---------------------")

        start = time.monotonic()
        try:
            async with self._session.request(
                request.method,
                request.url,
                headers=headers,
                data=request.body,
                timeout=aiohttp.ClientTimeout(total=self._effective_timeout(request)),
                allow_redirects=True,
            ) as resp:
                content = await resp.read()
                response = HttpResponse.from_bytes(
                    resp.status,
                    content,
                    {k: v for k, v in resp.headers.items()},
                    resp.reason or "",
                )
        except asyncio.TimeoutError:
            logger.warning(f"{request.method} {request.url} timed out after {(time.monotonic() - start) * 1000:.2f} ms")
            raise

        logger.debug(f"Received {response.status_code} {request.method} {request.url} ({(time.monotonic() - start) * 1000:.2f} ms, {len(content)} bytes)")
        return response

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> 'AiohttpClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
