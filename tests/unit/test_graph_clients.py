"""
Unit tests for the Microsoft Graph adapters.

Tests cover:
- Graph token acquisition and caching: graph_auth.py
- SharePoint folder listing and upload: sharepoint.py

HTTP is served by httpx.MockTransport handlers.
"""

import json

import httpx
import pytest

from inspections.shared.exceptions import GraphAuthError, SharePointError
from inspections.shared.tools.graph_auth import GraphTokenProvider
from inspections.shared.tools.sharepoint import SharePointClient

GRAPH = "https://graph.microsoft.com/v1.0"


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class StaticTokens:
    def get_token(self) -> str:
        return "token-123"


# ============================================================================
# Graph Token Tests
# ============================================================================


class TestGraphTokenProvider:
    """Tests for GraphTokenProvider."""

    def test_requests_client_credentials_token(self, settings):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"access_token": "abc", "expires_in": 3600})

        provider = GraphTokenProvider(settings, http_client=_client(handler))

        assert provider.get_token() == "abc"
        request = requests[0]
        assert str(request.url).endswith("/test-tenant/oauth2/v2.0/token")
        form = request.content.decode()
        assert "grant_type=client_credentials" in form
        assert "client_id=test-client" in form
        assert "scope=https%3A%2F%2Fgraph.microsoft.com%2F.default" in form

    def test_token_cached_until_expiry(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"access_token": f"t{len(calls)}", "expires_in": 3600})

        provider = GraphTokenProvider(settings, http_client=_client(handler))

        assert provider.get_token() == "t1"
        assert provider.get_token() == "t1"
        assert len(calls) == 1

    def test_short_lived_token_refreshed(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"access_token": f"t{len(calls)}", "expires_in": 30})

        provider = GraphTokenProvider(settings, http_client=_client(handler))

        provider.get_token()
        assert provider.get_token() == "t2"

    def test_rejected_request_raises(self, settings):
        provider = GraphTokenProvider(
            settings,
            http_client=_client(lambda r: httpx.Response(401, text="invalid_client")),
        )

        with pytest.raises(GraphAuthError) as exc_info:
            provider.get_token()

        assert exc_info.value.status_code == 401

    def test_transport_error_raises(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = GraphTokenProvider(settings, http_client=_client(handler))

        with pytest.raises(GraphAuthError):
            provider.get_token()


# ============================================================================
# SharePoint Tests
# ============================================================================


class FakeGraph:
    """Routes Graph requests for one site with a single document library."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.children: dict[str, list[dict] | int] = {}
        self.upload_status = 201
        self.drives = [{"id": "drive-1", "name": "Documents"}]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/v1.0/sites/desertservices.sharepoint.com:/sites/DataDrive":
            return httpx.Response(200, json={"id": "site-1"})
        if path == "/v1.0/sites/site-1/drives":
            return httpx.Response(200, json={"value": self.drives})
        if request.method == "PUT":
            if self.upload_status >= 300:
                return httpx.Response(self.upload_status, text="quota exceeded")
            return httpx.Response(
                self.upload_status,
                json={"id": "item-9", "webUrl": "https://sharepoint.example/new.pdf"},
            )

        key = request.url.raw_path.decode()
        listing = self.children.get(key)
        if listing is None:
            return httpx.Response(404, json={"error": {"code": "itemNotFound"}})
        if isinstance(listing, int):
            return httpx.Response(listing, text="server error")
        return httpx.Response(200, json={"value": listing})


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def sharepoint(settings, graph) -> SharePointClient:
    return SharePointClient(settings, token_provider=StaticTokens(), http_client=_client(graph))


FOLDER = "SWPPP/INSPECTIONS/PROJECTS/PROJECTS A-M/ARCO/KTEC PHX/2026"
FOLDER_CHILDREN = "/v1.0/drives/drive-1/root:/SWPPP/INSPECTIONS/PROJECTS/PROJECTS%20A-M/ARCO/KTEC%20PHX/2026:/children"


class TestSharePointListFolder:
    """Tests for SharePointClient.list_folder."""

    def test_lists_files_and_folders(self, sharepoint, graph):
        graph.children[FOLDER_CHILDREN] = [
            {"id": "1", "name": "01.21.26.pdf", "size": 1200, "webUrl": "https://sp/1", "file": {}},
            {"id": "2", "name": "archive", "webUrl": "https://sp/2", "folder": {"childCount": 3}},
        ]

        items = sharepoint.list_folder(FOLDER)

        assert [i.name for i in items] == ["01.21.26.pdf", "archive"]
        assert items[0].is_folder is False
        assert items[0].size == 1200
        assert items[1].is_folder is True

    def test_sends_bearer_token(self, sharepoint, graph):
        graph.children[FOLDER_CHILDREN] = []

        sharepoint.list_folder(FOLDER)

        assert graph.requests[-1].headers["Authorization"] == "Bearer token-123"

    def test_missing_folder_lists_empty(self, sharepoint):
        assert sharepoint.list_folder(FOLDER) == []

    def test_server_error_raises(self, sharepoint, graph):
        graph.children[FOLDER_CHILDREN] = 500

        with pytest.raises(SharePointError) as exc_info:
            sharepoint.list_folder(FOLDER)

        assert exc_info.value.status_code == 500
        assert exc_info.value.operation == "list"

    def test_root_listing(self, sharepoint, graph):
        graph.children["/v1.0/drives/drive-1/root/children"] = [{"id": "r", "name": "SWPPP", "folder": {}}]

        assert [i.name for i in sharepoint.list_folder("")] == ["SWPPP"]

    def test_site_and_drive_resolved_once(self, sharepoint, graph):
        graph.children[FOLDER_CHILDREN] = []

        sharepoint.list_folder(FOLDER)
        sharepoint.list_folder(FOLDER)

        paths = [r.url.path for r in graph.requests]
        assert paths.count("/v1.0/sites/site-1/drives") == 1

    def test_shared_documents_drive_accepted(self, sharepoint, graph):
        graph.drives = [{"id": "other", "name": "Site Assets"}, {"id": "drive-1", "name": "Shared Documents"}]
        graph.children[FOLDER_CHILDREN] = []

        assert sharepoint.get_drive_id() == "drive-1"

    def test_missing_drive_raises(self, sharepoint, graph):
        graph.drives = [{"id": "other", "name": "Site Assets"}]

        with pytest.raises(SharePointError, match="Site Assets"):
            sharepoint.get_drive_id()


class TestSharePointPutFile:
    """Tests for SharePointClient.put_file."""

    def test_uploads_content(self, sharepoint, graph):
        result = sharepoint.put_file(FOLDER, "01.21.26.pdf", b"%PDF-1.7")

        request = graph.requests[-1]
        assert request.method == "PUT"
        assert request.url.raw_path.decode() == (
            "/v1.0/drives/drive-1/root:/SWPPP/INSPECTIONS/PROJECTS/PROJECTS%20A-M/"
            "ARCO/KTEC%20PHX/2026/01.21.26.pdf:/content"
        )
        assert request.headers["Content-Type"] == "application/pdf"
        assert request.content == b"%PDF-1.7"
        assert result.web_url == "https://sharepoint.example/new.pdf"
        assert result.id == "item-9"

    def test_replace_returns_200(self, sharepoint, graph):
        graph.upload_status = 200
        assert sharepoint.put_file(FOLDER, "01.21.26.pdf", b"%PDF").id == "item-9"

    def test_rejected_upload_raises(self, sharepoint, graph):
        graph.upload_status = 507

        with pytest.raises(SharePointError) as exc_info:
            sharepoint.put_file(FOLDER, "01.21.26.pdf", b"%PDF")

        assert exc_info.value.status_code == 507
        assert "quota exceeded" in str(exc_info.value)
