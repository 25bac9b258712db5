"""
Integration test fixtures and configuration.

Provides a fake Graph + Browser Rendering backend behind one
httpx.MockTransport, and a pipeline wired to it.
"""

from dataclasses import dataclass, field

import httpx
import pytest

from inspections.router.notifier import notify
from inspections.router.pipeline import InspectionPipeline
from inspections.shared.tools.renderer import BrowserRenderingClient
from inspections.shared.tools.sharepoint import SharePointClient
from tests.mocks.fake_services import PDF_BYTES


@dataclass
class FakeBackend:
    """
    Minimal Graph and Browser Rendering server.

    Uploaded files are kept by drive path so later listings see them.
    """

    files: dict[str, bytes] = field(default_factory=dict)
    render_failures: list[int] = field(default_factory=list)
    render_calls: int = 0
    token_calls: int = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path

        if host == "login.microsoftonline.com":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": "graph-token", "expires_in": 3600})

        if host == "api.cloudflare.com":
            self.render_calls += 1
            if self.render_failures:
                return httpx.Response(self.render_failures.pop(0), text="Service Unavailable")
            return httpx.Response(200, content=PDF_BYTES)

        if path.endswith("/sites/site-1/drives"):
            return httpx.Response(200, json={"value": [{"id": "drive-1", "name": "Documents"}]})
        if path.startswith("/v1.0/sites/"):
            return httpx.Response(200, json={"id": "site-1"})

        # /v1.0/drives/drive-1/root:/<path>:/children or :/content
        drive_path = path.split("/root:/", 1)[-1].rsplit(":/", 1)[0]

        if request.method == "PUT":
            self.files[drive_path] = request.content
            return httpx.Response(
                201,
                json={"id": f"item-{len(self.files)}", "webUrl": f"https://sharepoint.example/{drive_path}"},
            )

        children = [
            {"id": key, "name": key.rsplit("/", 1)[-1], "file": {}, "webUrl": f"https://sharepoint.example/{key}"}
            for key in self.files
            if key.rsplit("/", 1)[0] == drive_path
        ]
        if not children:
            return httpx.Response(404, json={"error": {"code": "itemNotFound"}})
        return httpx.Response(200, json={"value": children})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def wired_pipeline(backend, settings) -> InspectionPipeline:
    http = httpx.Client(transport=httpx.MockTransport(backend))
    return InspectionPipeline(
        SharePointClient(settings, http_client=http),
        BrowserRenderingClient(settings, http_client=http),
        notify=notify,
        settings=settings,
        sleep=lambda seconds: None,
    )
