"""Authenticated JSON transport for the assessment backend."""
from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import requests

from assessment.config import API_BASE_URL, API_TOKEN, REQUEST_TIMEOUT_SECONDS
from assessment.errors import (
    NetworkError,
    error_for_status,
    should_retry_with_fresh_token,
)

log = logging.getLogger(__name__)


class TokenProvider(Protocol):
    """Opaque source of bearer tokens."""

    def get_token(self, force_refresh: bool = False) -> str | None:
        ...


class StaticTokenProvider:
    """Token provider for a fixed (configured or forwarded) token."""

    def __init__(self, token: str | None = API_TOKEN):
        self._token = token

    def get_token(self, force_refresh: bool = False) -> str | None:
        return self._token


def _clean_params(params: dict[str, object] | None) -> dict[str, object] | None:
    if not params:
        return None
    return {key: value for key, value in params.items() if value is not None}


def _parse_payload(response: requests.Response) -> object:
    if response.status_code == 204 or not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return None
    return response.text


class ApiTransport:
    """
    Sends JSON requests with a bearer token.

    A 401/403 (or a 400 whose body looks auth related) is retried exactly
    once after forcing a fresh token. Everything else propagates as a typed
    ``ApiError``.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token_provider: TokenProvider | None = None,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider or StaticTokenProvider()
        self.session = session or requests.Session()
        self.timeout = timeout

    def build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    def _send(
        self,
        method: str,
        url: str,
        json: object,
        params: dict[str, object] | None,
        force_refresh: bool,
    ) -> requests.Response:
        headers = {"Accept": "application/json"}
        token = self.token_provider.get_token(force_refresh=force_refresh)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        body = json if method not in ("GET", "HEAD") else None
        try:
            return self.session.request(
                method,
                url,
                json=body,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(str(exc) or "Network error", 0, None) from exc

    def request_sync(
        self,
        path: str,
        method: str = "GET",
        json: object = None,
        params: dict[str, object] | None = None,
    ) -> object:
        """Blocking request; returns the parsed JSON (or text, or None)."""
        method = method.upper()
        url = self.build_url(path)
        params = _clean_params(params)

        response = self._send(method, url, json, params, force_refresh=False)
        payload = _parse_payload(response)

        if not response.ok and should_retry_with_fresh_token(
            response.status_code, payload
        ):
            log.info("%s %s -> %s, retrying with fresh token", method, path, response.status_code)
            response = self._send(method, url, json, params, force_refresh=True)
            payload = _parse_payload(response)

        if not response.ok:
            log.warning("%s %s failed with %s", method, path, response.status_code)
            raise error_for_status(response.status_code, payload, response.reason or "")

        log.debug("%s %s -> %s", method, path, response.status_code)
        return payload

    async def request(
        self,
        path: str,
        method: str = "GET",
        json: object = None,
        params: dict[str, object] | None = None,
    ) -> object:
        """Non-blocking request; the HTTP call runs in a worker thread."""
        return await asyncio.to_thread(self.request_sync, path, method, json, params)

    async def get(self, path: str, params: dict[str, object] | None = None) -> object:
        return await self.request(path, "GET", params=params)

    async def post(self, path: str, json: object = None) -> object:
        return await self.request(path, "POST", json=json)

    async def patch(self, path: str, json: object = None) -> object:
        return await self.request(path, "PATCH", json=json)

    async def delete(self, path: str, params: dict[str, object] | None = None) -> object:
        return await self.request(path, "DELETE", params=params)

    def close(self) -> None:
        self.session.close()
