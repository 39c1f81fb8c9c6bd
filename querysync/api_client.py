"""
HTTP client for the dashboard REST API.

The cache never imports this module: it only sees the zero-argument
fetchers built here. Requests are blocking (requests.Session) and run in
a worker thread so the event loop stays free.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import settings

from .cache.core import Fetcher
from .errors import NetworkError, RemoteError, StaleAuthError

logger = logging.getLogger("api_client")


class ApiClient:
    """
    Thin wrapper over requests for the {success, data, error} envelope.

    Raises NetworkError when the server was never reached, StaleAuthError
    on HTTP 401 and RemoteError for any other failure. GET requests are
    retried on NetworkError; writes never are.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. "https://api.example.com/api/v1"
            token: Bearer token (customer or admin session)
            timeout: Per-request timeout in seconds
            session: Session to use (tests pass a stub)
        """
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout or settings.request_timeout_seconds
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path if path.startswith('/') else '/' + path}"

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> Any:
        try:
            response = self._session.request(
                method,
                self._url(path),
                headers=self._headers(),
                params=params,
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed before reaching the server: {e}")
            raise NetworkError(f"{method} {path}: {e}") from e
        return self._handle_response(method, path, response)

    @retry(
        stop=stop_after_attempt(settings.max_retries),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(NetworkError),
        reraise=True,
    )
    def _get_with_retry(self, path: str, params: Optional[Dict[str, Any]]) -> Any:
        return self._send("GET", path, params=params)

    def _handle_response(self, method: str, path: str, response: requests.Response) -> Any:
        """
        Unwrap the response envelope.

        Returns:
            The "data" member of an enveloped payload, else the payload
        """
        try:
            payload = response.json() if response.text else {}
        except ValueError:
            payload = {"raw": response.text}

        error = payload.get("error") if isinstance(payload, dict) else None
        error = error if isinstance(error, dict) else {}

        if response.status_code == 401:
            logger.info(f"{method} {path}: session rejected")
            raise StaleAuthError(
                error.get("message") or "Unauthorized",
                status_code=401,
                code=error.get("code", "UNAUTHORIZED"),
                details=error.get("details"),
            )

        failed = isinstance(payload, dict) and payload.get("success") is False
        if not response.ok or failed:
            message = error.get("message") or f"HTTP {response.status_code}: {response.reason}"
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise RemoteError(
                message,
                status_code=response.status_code,
                code=error.get("code", "HTTP_ERROR"),
                details=error.get("details"),
            )

        if isinstance(payload, dict) and "success" in payload and "data" in payload:
            return payload["data"]
        return payload

    # ========================================================================
    # Async API
    # ========================================================================

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._get_with_retry, path, params)

    async def post(self, path: str, body: Optional[Any] = None) -> Any:
        return await asyncio.to_thread(self._send, "POST", path, None, body)

    async def put(self, path: str, body: Optional[Any] = None) -> Any:
        return await asyncio.to_thread(self._send, "PUT", path, None, body)

    async def delete(self, path: str) -> Any:
        return await asyncio.to_thread(self._send, "DELETE", path)

    def fetcher(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        extract: Optional[Callable[[Any], Any]] = None,
    ) -> Fetcher:
        """
        Build a cache fetcher for a GET endpoint.

        Args:
            path: Endpoint path relative to base_url
            params: Query parameters
            extract: Optional transform applied to the unwrapped data

        Returns:
            Zero-argument coroutine function
        """
        async def fetch() -> Any:
            data = await self.get(path, params)
            return extract(data) if extract is not None else data

        return fetch

    def close(self) -> None:
        self._session.close()
