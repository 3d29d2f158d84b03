"""HTTP transports behind the clients.

The clients only ever call ``send(method, url, headers, body)`` and look at
the returned status and text, so tests and alternative stacks can plug in
their own transport.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterable, Iterable, Mapping, Optional, Union
import logging

import httpx
import requests

from .exceptions import InfluxDBConnectionError

logger = logging.getLogger(__name__)

Body = Union[None, str, bytes, Iterable[bytes]]
AsyncBody = Union[None, str, bytes, Iterable[bytes], AsyncIterable[bytes]]


@dataclass(frozen=True)
class TransportResponse:
    status: int
    text: str


class Transport(ABC):
    """Blocking request/response boundary."""

    @abstractmethod
    def send(
        self, method: str, url: str, headers: Mapping[str, str], body: Body = None
    ) -> TransportResponse:
        """Send one request. Iterable bodies are streamed chunk by chunk."""

    def close(self) -> None:
        """Release pooled connections."""


class AsyncTransport(ABC):
    """Coroutine flavour of ``Transport``."""

    @abstractmethod
    async def send(
        self, method: str, url: str, headers: Mapping[str, str], body: AsyncBody = None
    ) -> TransportResponse:
        """Send one request. Async iterable bodies are streamed."""

    async def aclose(self) -> None:
        """Release pooled connections."""


class RequestsTransport(Transport):
    """``requests.Session`` backed transport; generator bodies go out chunked."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30.0) -> None:
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._timeout = timeout

    def send(
        self, method: str, url: str, headers: Mapping[str, str], body: Body = None
    ) -> TransportResponse:
        if isinstance(body, str):
            body = body.encode("utf-8")
        try:
            response = self._session.request(
                method, url, headers=dict(headers), data=body, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise InfluxDBConnectionError(str(exc)) from exc
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return TransportResponse(status=response.status_code, text=response.text)

    def close(self) -> None:
        if self._owns_session:
            self._session.close()


class HttpxAsyncTransport(AsyncTransport):
    """``httpx.AsyncClient`` backed transport."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def send(
        self, method: str, url: str, headers: Mapping[str, str], body: AsyncBody = None
    ) -> TransportResponse:
        if isinstance(body, str):
            body = body.encode("utf-8")
        try:
            response = await self._client.request(method, url, headers=dict(headers), content=body)
        except httpx.HTTPError as exc:
            raise InfluxDBConnectionError(str(exc)) from exc
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return TransportResponse(status=response.status_code, text=response.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
