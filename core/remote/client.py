"""HTTP client for the remote stock service (bearer auth, unauthorized signal)."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]
UnauthorizedCallback = Callable[[], None]

UNAUTHORIZED_STATUSES = (401, 403)


class RemoteServiceError(Exception):
    """Raised when the stock service is unreachable or answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class UnauthorizedError(RemoteServiceError):
    """The stock service rejected the credential (401/403)."""


def _extract_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] or None
    if isinstance(payload, Mapping):
        for key in ("error", "message", "detail"):
            if payload.get(key):
                return str(payload[key])
    return None


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    return {key: value for key, value in params.items() if value is not None and value != ""}


class StockServiceClient:
    """
    Thin wrapper over ``httpx.Client``.

    The bearer token is read from ``token_provider`` on every request. A
    401/403 answer calls ``on_unauthorized`` once and raises
    ``UnauthorizedError``; there is no retry.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: TokenProvider | None = None,
        on_unauthorized: UnauthorizedCallback | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> "StockServiceClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token_provider is not None:
            token = self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        accept: str | None = None,
    ) -> httpx.Response:
        headers = self._headers()
        if accept:
            headers["Accept"] = accept
        try:
            response = self._http.request(method, path, params=_clean_params(params), json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Service de stock injoignable (%s %s): %s", method, path, exc)
            raise RemoteServiceError(f"Service de stock injoignable: {exc}") from exc

        logger.debug("%s %s -> %s", method, response.request.url, response.status_code)
        if response.status_code in UNAUTHORIZED_STATUSES:
            logger.warning("Accès refusé par le service de stock (%s %s): %s", method, path, response.status_code)
            if self._on_unauthorized is not None:
                self._on_unauthorized()
            raise UnauthorizedError(
                "Session expirée ou droits insuffisants",
                status_code=response.status_code,
                detail=_extract_detail(response),
            )
        if response.is_error:
            detail = _extract_detail(response)
            raise RemoteServiceError(
                f"Erreur du service de stock ({response.status_code}) sur {path}",
                status_code=response.status_code,
                detail=detail,
            )
        return response

    def get_json(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        response = self._send("GET", path, params=params)
        return self._decode(response, path)

    def post_json(self, path: str, payload: Any) -> Any:
        response = self._send("POST", path, json=payload)
        return self._decode(response, path)

    def get_bytes(self, path: str, params: Mapping[str, Any] | None = None) -> tuple[bytes, str | None]:
        """Download a binary artifact; returns (content, content-type)."""

        response = self._send("GET", path, params=params, accept="*/*")
        return response.content, response.headers.get("content-type")

    @staticmethod
    def _decode(response: httpx.Response, path: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteServiceError(
                f"Réponse JSON invalide sur {path}", status_code=response.status_code
            ) from exc


__all__ = [
    "RemoteServiceError",
    "StockServiceClient",
    "TokenProvider",
    "UnauthorizedError",
]
