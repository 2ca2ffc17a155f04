"""Query clients for the trait graph database.

A client takes a ``Query``, runs it against the graph, and returns its rows
as tuples, or ``None`` if the endpoint did not answer successfully. Failures
are logged here and never raised, so the pagination engine can record the
chunk as failed and move on.

Example:
    client = HttpGraphClient(
        server="https://eol.org/",
        auth=AuthConfig(token="${TRAITBANK_TOKEN}"),
    )
    rows = client.execute(Query("MATCH (r:Term) RETURN r.uri LIMIT 5", ["uri"]))
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import requests_toolbelt
import tenacity
from requests_toolbelt.utils.user_agent import user_agent
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from traitdump import __version__
from traitdump.lib.auth import AuthConfig, build_auth_headers
from traitdump.lib.errors import ConfigurationError, TransportError
from traitdump.lib.query import Query
from traitdump.lib.throttle import ResponseThrottle

logger = logging.getLogger(__name__)

__all__ = [
    "GraphClient",
    "HttpGraphClient",
    "CallableGraphClient",
    "Row",
]

Row = Tuple[Any, ...]

_USER_AGENT = user_agent(
    "traitbank-dump",
    __version__,
    extras=[
        ("httpx", getattr(httpx, "__version__", "unknown")),
        ("tenacity", getattr(tenacity, "__version__", "unknown")),
        ("requests-toolbelt", getattr(requests_toolbelt, "__version__", "unknown")),
    ],
)

# Keep failure logs readable when the server returns a full stack trace
_MAX_BODY_LOG = 2000


class GraphClient(ABC):
    """Base class for query clients.

    Subclasses provide ``run_query``, which returns the endpoint's payload
    (``{"columns": [...], "data": [[...], ...]}``) or ``None``. ``execute``
    adds row extraction and the shared backpressure policy.
    """

    def __init__(self, throttle: Optional[ResponseThrottle] = None) -> None:
        self.throttle = throttle or ResponseThrottle()
        self.queries_run = 0

    @abstractmethod
    def run_query(self, cypher: str) -> Optional[Dict[str, Any]]:
        """Run raw query text and return the response payload, or None."""
        ...

    def execute(self, query: Query) -> Optional[List[Row]]:
        """Run a query and return its rows, or None on failure."""
        self.throttle.acquire()
        self.queries_run += 1
        payload = self.run_query(query.text)
        if payload is None:
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            logger.error("Malformed response (no 'data' list) for query:\n%s", query.text)
            return None

        if not all(isinstance(row, (list, tuple)) for row in data):
            logger.error("Malformed response (rows are not lists) for query:\n%s", query.text)
            return None

        rows = [tuple(row) for row in data]
        for row in rows:
            if len(row) != len(query.columns):
                logger.error(
                    "Row width %d does not match %d declared columns %s",
                    len(row),
                    len(query.columns),
                    list(query.columns),
                )
                return None

        self.throttle.record(len(rows))
        return rows

    def close(self) -> None:
        """Release any held resources."""

    def __enter__(self) -> "GraphClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class CallableGraphClient(GraphClient):
    """Client that delegates to a ``cypher -> payload`` function.

    Useful for direct database drivers and for tests.
    """

    def __init__(
        self,
        query_fn: Callable[[str], Optional[Dict[str, Any]]],
        throttle: Optional[ResponseThrottle] = None,
    ) -> None:
        super().__init__(throttle)
        self.query_fn = query_fn

    def run_query(self, cypher: str) -> Optional[Dict[str, Any]]:
        return self.query_fn(cypher)


class HttpGraphClient(GraphClient):
    """Client for the web API's Cypher service.

    Each query is POSTed to ``<server>service/cypher`` with the query text in
    the ``query`` parameter.
    """

    def __init__(
        self,
        server: str,
        auth: Optional[AuthConfig] = None,
        *,
        throttle: Optional[ResponseThrottle] = None,
        timeout: Optional[float] = None,
        max_retries: int = 1,
        backoff_factor: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            server: Base URL of the web API, e.g. "https://eol.org/"
            auth: Authentication config (None = no auth header)
            throttle: Backpressure policy (default: 1s after >100 rows)
            timeout: Client-side timeout in seconds (None = wait for the server)
            max_retries: Attempts per query; 1 disables retries
            backoff_factor: Exponential backoff multiplier between attempts
            transport: Optional httpx transport (for tests)

        Raises:
            ConfigurationError: If the token cannot be resolved (unset or
                empty environment variable)
        """
        super().__init__(throttle)
        if not server:
            raise ValueError("server is required (e.g. 'https://eol.org/')")
        self.server = server if server.endswith("/") else server + "/"
        self.auth = auth
        self.timeout = timeout
        self.max_retries = max(max_retries, 1)
        self.backoff_factor = backoff_factor
        self._transport = transport
        self._client: Optional[httpx.Client] = None

        # Resolved now so a bad token stops the run before its first query
        try:
            self._headers = build_auth_headers(auth)
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(
                f"Cannot build Authorization header: {exc.args[0] if exc.args else exc}",
                field="token",
                suggestion="Set the environment variable the token refers to.",
            ) from exc
        self._headers.setdefault("User-Agent", _USER_AGENT)

    @property
    def endpoint(self) -> str:
        return f"{self.server}service/cypher"

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                headers=self._headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def run_query(self, cypher: str) -> Optional[Dict[str, Any]]:
        try:
            return self._post_with_retry(cypher)
        except TransportError as exc:
            logger.error("** Query failed: %s", exc.message)
            if exc.body:
                logger.error("** Response body: %s", exc.body[:_MAX_BODY_LOG])
            logger.error("** Query was:\n%s", cypher)
            return None

    def _post_with_retry(self, cypher: str) -> Dict[str, Any]:
        client = self._get_client()

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_factor, min=0.5, max=30),
            retry=retry_if_exception(self._should_retry),
            reraise=True,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        def do_request() -> Dict[str, Any]:
            try:
                response = client.post(self.endpoint, params={"query": cypher})
            except httpx.HTTPError as exc:
                raise TransportError(f"Request to {self.endpoint} failed", cause=exc) from exc
            return self._parse_response(response)

        return do_request()

    def _parse_response(self, response: httpx.Response) -> Dict[str, Any]:
        if not response.is_success:
            message = f"HTTP response: {response.status_code} {response.reason_phrase}"
            if response.is_redirect:
                message += f" (Location: {response.headers.get('Location')})"
            raise TransportError(message, status_code=response.status_code, body=response.text)
        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            raise TransportError(
                "Response is not JSON",
                status_code=response.status_code,
                body=response.text,
                cause=exc,
            ) from exc
        if not isinstance(payload, dict):
            raise TransportError(
                f"Unexpected payload type {type(payload).__name__}",
                status_code=response.status_code,
            )
        return payload

    @staticmethod
    def _should_retry(exc: BaseException) -> bool:
        return isinstance(exc, TransportError) and exc.retryable

    def __repr__(self) -> str:
        return f"HttpGraphClient(server={self.server!r})"
