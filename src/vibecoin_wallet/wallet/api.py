"""Client for the launch service's REST API.

The service deploys coins, publishes contract addresses, and submits
gas-sponsored fee claims. Requests carry an address, a message and its
signature; key material is never sent.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vibecoin_wallet.wallet.errors import NetworkError, RemoteApiError, redact

logger = logging.getLogger("vibecoin_wallet.wallet.api")

DEFAULT_API_URL = "https://vibecoin.up.railway.app"


class RemoteApi:
    """Thin synchronous wrapper over the launch service endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def _request(self, method: str, path: str, json: dict | None = None) -> dict[str, Any]:
        try:
            with self._client() as client:
                resp = client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.error(f"Launch API {method} {path} failed: {exc}")
            raise NetworkError(f"Launch API unreachable: {redact(str(exc))}") from None

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if resp.status_code >= 400 or body.get("error"):
            error = body.get("error") or f"HTTP {resp.status_code}"
            raise RemoteApiError(f"Launch API error: {redact(str(error))}", status_code=resp.status_code)
        return body

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def collect_fees(self, address: str, message: str, signature: str) -> dict[str, Any]:
        """Ask the service to claim fees for *address*, paying gas itself."""
        return self._request(
            "POST",
            "/api/collect-fees",
            json={"walletAddress": address, "message": message, "signature": signature},
        )

    def get_contracts(self) -> dict[str, Any]:
        """Contract addresses published by the service (fee hook, vesting)."""
        return self._request("GET", "/api/config")

    def launch(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Submit a signed launch request."""
        result = self._request("POST", "/api/launch", json=payload)
        if result.get("success") is False:
            raise RemoteApiError("Launch API error: Failed to launch coin")
        return result

    def status(self) -> dict[str, Any]:
        """Service health. Never raises; reports ``available: False`` instead."""
        try:
            result = self._request("GET", "/api/status")
        except NetworkError:
            return {
                "available": False,
                "message": "Launch API not available.",
                "apiUrl": self.base_url,
            }
        return {"available": True, **result}
