"""
Rendering Tools

Renders a report URL to PDF bytes through the Cloudflare Browser Rendering
REST API. One call is one render attempt; retrying is the caller's concern.
"""

import httpx
import structlog

from inspections.shared.config import Settings, get_settings
from inspections.shared.exceptions import RenderError

log = structlog.get_logger()

# Letter paper with half-inch margins, background graphics on
PDF_OPTIONS = {
    "format": "letter",
    "printBackground": True,
    "margin": {"top": "0.5in", "bottom": "0.5in", "left": "0.5in", "right": "0.5in"},
}

# Extra time allowed on the HTTP request beyond the page navigation timeout
REQUEST_TIMEOUT_MARGIN_SECONDS = 30.0


class BrowserRenderingClient:
    """Headless-browser PDF renderer."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http_client or httpx.Client(
            timeout=self._settings.render_navigation_timeout_seconds
            + REQUEST_TIMEOUT_MARGIN_SECONDS
        )

    @property
    def endpoint(self) -> str:
        return (
            f"{self._settings.browser_rendering_base_url}/accounts/"
            f"{self._settings.cloudflare_account_id}/browser-rendering/pdf"
        )

    def render_pdf(self, url: str) -> bytes:
        """
        Render a page to PDF.

        Args:
            url: Absolute URL of the page

        Returns:
            PDF document bytes

        Raises:
            RenderError: On timeout, transport failure or a non-200 reply
        """
        navigation_timeout_ms = int(self._settings.render_navigation_timeout_seconds * 1000)
        payload = {
            "url": url,
            "gotoOptions": {"waitUntil": "networkidle0", "timeout": navigation_timeout_ms},
            "pdfOptions": PDF_OPTIONS,
        }

        log.debug("render_request", url=url)

        try:
            response = self._http.post(
                self.endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self._settings.cloudflare_api_token}"},
            )
        except httpx.TimeoutException as e:
            raise RenderError(url=url, error_message=f"Navigation timeout: {e}") from e
        except httpx.HTTPError as e:
            raise RenderError(url=url, error_message=str(e)) from e

        if response.status_code != 200:
            raise RenderError(
                url=url,
                status_code=response.status_code,
                error_message=response.text[:300],
            )

        content = response.content
        if not content.startswith(b"%PDF"):
            raise RenderError(url=url, error_message="Renderer returned a non-PDF body")

        log.debug("render_complete", url=url, size_bytes=len(content))
        return content
