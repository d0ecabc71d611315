from __future__ import annotations

from typing import Any

import httpx

from streakify.errors import StorageUnavailable


class RemoteMirror:
    """Client for the key-value mirror (``/storage/{key}``, ``/health``).

    Every call is a single attempt bounded by ``timeout_seconds``; any failure
    is raised as ``StorageUnavailable`` for the gateway to swallow.
    """

    def __init__(self, base_url: str, timeout_seconds: float = 3.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _request(self, method: str, path: str, payload: Any | None = None) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                if method == "GET":
                    resp = client.get(url)
                elif method == "POST":
                    resp = client.post(url, json=payload)
                else:
                    resp = client.delete(url)
                if resp.status_code >= 400:
                    raise StorageUnavailable(f"{method} {path} failed with HTTP {resp.status_code}")
                data = resp.json()
        except StorageUnavailable:
            raise
        except (httpx.HTTPError, ValueError) as exc:
            raise StorageUnavailable(f"{method} {path} failed: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailable(f"{method} {path} returned a non-object body")
        return data

    def fetch(self, key: str) -> Any | None:
        return self._request("GET", f"/storage/{key}").get("data")

    def push(self, key: str, value: Any) -> None:
        data = self._request("POST", f"/storage/{key}", payload=value)
        if data.get("success") is not True:
            raise StorageUnavailable(f"POST /storage/{key} was not acknowledged")

    def delete(self, key: str) -> None:
        self._request("DELETE", f"/storage/{key}")

    def health(self) -> bool:
        try:
            data = self._request("GET", "/health")
        except StorageUnavailable:
            return False
        return data.get("status") == "OK"
