import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, Self

import httpx

from .constants import RequestKind
from .exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass
class HttpRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    body: Any = None
    has_body: bool = False
    kind: RequestKind = RequestKind.PRIMARY


@dataclass
class HttpResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    elapsed: float = 0.0

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.content.strip():
            return None
        return json.loads(self.content)


class Transport(Protocol):
    async def send(self, request: HttpRequest) -> HttpResponse: ...


class HttpxTransport:
    """Transport backed by a shared ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()
        self.timeout = timeout

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def send(self, request: HttpRequest) -> HttpResponse:
        request_kwargs: dict[str, Any] = {
            "method": request.method,
            "url": request.url,
            "headers": request.headers,
            "params": request.params,
            "timeout": self.timeout,
        }
        if request.has_body:
            request_kwargs["json"] = request.body

        started = time.perf_counter()
        try:
            response = await self.client.request(**request_kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"HTTP request timed out: {str(e)}") from None
        except httpx.ConnectError as e:
            raise TransportError(f"HTTP connection error: {str(e)}") from None
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {str(e)}") from None
        except Exception as e:
            raise TransportError(f"Unexpected error: {str(e)}") from None

        elapsed = time.perf_counter() - started
        logger.info(f"{request.kind} {request.method} {request.url} -> {response.status_code} ({elapsed:.3f}s)")
        return HttpResponse(
            status=response.status_code,
            headers=dict(response.headers),
            content=response.content,
            elapsed=elapsed,
        )
