"""
Graph Token Tools

App-only (client credentials) token acquisition for Microsoft Graph.
"""

import time

import httpx
import structlog

from inspections.shared.config import Settings, get_settings
from inspections.shared.exceptions import GraphAuthError

log = structlog.get_logger()

GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Refresh this many seconds before the token actually expires
EXPIRY_MARGIN_SECONDS = 60


class GraphTokenProvider:
    """
    Acquires and caches a Graph access token.

    The token is reused until shortly before it expires.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http_client or httpx.Client(
            timeout=self._settings.sharepoint_timeout_seconds
        )
        self._token: str | None = None
        self._expires_at = 0.0

    @property
    def token_url(self) -> str:
        return (
            f"{self._settings.graph_login_url}/"
            f"{self._settings.azure_tenant_id}/oauth2/v2.0/token"
        )

    def get_token(self) -> str:
        """
        Get a bearer token for Graph, requesting a new one when needed.

        Raises:
            GraphAuthError: If the token endpoint rejects the request
        """
        if self._token and time.monotonic() < self._expires_at:
            return self._token

        tenant_id = self._settings.azure_tenant_id
        log.debug("requesting_graph_token", tenant_id=tenant_id)

        try:
            response = self._http.post(
                self.token_url,
                data={
                    "client_id": self._settings.azure_client_id,
                    "client_secret": self._settings.azure_client_secret,
                    "scope": GRAPH_SCOPE,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as e:
            log.error("graph_token_request_failed", tenant_id=tenant_id, error=str(e))
            raise GraphAuthError(tenant_id=tenant_id, error_message=str(e)) from e

        if response.status_code != 200:
            log.error(
                "graph_token_rejected",
                tenant_id=tenant_id,
                status_code=response.status_code,
            )
            raise GraphAuthError(
                tenant_id=tenant_id,
                status_code=response.status_code,
                error_message=response.text[:200],
            )

        data = response.json()
        self._token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._expires_at = time.monotonic() + max(expires_in - EXPIRY_MARGIN_SECONDS, 0)

        log.debug("graph_token_acquired", expires_in=expires_in)
        return self._token
