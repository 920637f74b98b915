"""
Thin client for the remote QTI service.

OAuth2 client-credentials auth, JSON payloads of the form
``{"format": "xml", "xml": ...}`` for CRUD and ``{"schema", "xml"}`` for
validation. Status codes map onto QtiApiError / QtiNotFoundError; the
caller owns retries.
"""
import logging
import threading
import time
from urllib.parse import quote

import requests

from qticraft.core.errors import QtiApiError, QtiNotFoundError

logger = logging.getLogger("qticraft.qti_client")

ENDPOINTS = {
    "item": "/assessment-items",
    "test": "/assessment-tests",
    "stimulus": "/stimuli",
}
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class QtiClient:
    def __init__(
        self,
        base_url: str,
        token_url: str = "",
        client_id: str = "",
        client_secret: str = "",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "QtiClient":
        return cls(
            base_url=settings.qti_server_url,
            token_url=settings.qti_token_url,
            client_id=settings.qti_client_id,
            client_secret=settings.qti_client_secret,
            timeout=settings.request_timeout_seconds,
        )

    # ── Auth ──

    def _access_token(self) -> str | None:
        if not self.token_url:
            return None
        # shared by validation workers running in threads
        with self._token_lock:
            return self._cached_or_fresh_token()

    def _cached_or_fresh_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        try:
            resp = self.session.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise QtiApiError(f"token request failed: {e}") from e
        if resp.status_code >= 400:
            raise QtiApiError("token request rejected", status=resp.status_code, body=resp.text)
        payload = resp.json()
        self._token = payload["access_token"]
        expires_in = float(payload.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        return self._token

    # ── Transport ──

    def _request(self, method: str, path: str, json: dict | None = None):
        headers = {"Accept": "application/json"}
        token = self._access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise QtiApiError(f"{method} {path} failed: {e}") from e

        if resp.status_code == 404:
            raise QtiNotFoundError(f"{method} {path}: not found", status=404, body=resp.text)
        if resp.status_code >= 400:
            logger.warning("%s %s -> %d: %s", method, path, resp.status_code, resp.text[:500])
            raise QtiApiError(f"{method} {path}: HTTP {resp.status_code}", status=resp.status_code, body=resp.text)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def _path(self, kind: str, identifier: str | None = None) -> str:
        try:
            base = ENDPOINTS[kind]
        except KeyError:
            raise ValueError(f"unknown document kind '{kind}'") from None
        return base if identifier is None else f"{base}/{quote(identifier, safe='')}"

    # ── Documents ──

    def get(self, kind: str, identifier: str):
        return self._request("GET", self._path(kind, identifier))

    def create(self, kind: str, xml: str):
        return self._request("POST", self._path(kind), json={"format": "xml", "xml": xml})

    def update(self, kind: str, identifier: str, xml: str):
        return self._request("PUT", self._path(kind, identifier), json={"format": "xml", "xml": xml})

    def delete(self, kind: str, identifier: str) -> None:
        self._request("DELETE", self._path(kind, identifier))

    def exists(self, kind: str, identifier: str) -> bool:
        try:
            self.get(kind, identifier)
        except QtiNotFoundError:
            return False
        return True

    def validate_xml(self, schema: str, xml: str) -> bool:
        """Ask the authoritative validator whether ``xml`` is valid for ``schema``."""
        result = self._request("POST", "/validate", json={"schema": schema, "xml": xml})
        if isinstance(result, dict):
            return _as_bool(result.get("success"))
        return _as_bool(result)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)
