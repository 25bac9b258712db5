"""
SharePoint Tools

Document-store operations against a SharePoint document library through
Microsoft Graph: list a folder, upload a file.
"""

from urllib.parse import quote

import httpx
import structlog

from inspections.shared.config import Settings, get_settings
from inspections.shared.exceptions import SharePointError
from inspections.shared.models import StoreItem, UploadResult
from inspections.shared.tools.graph_auth import GraphTokenProvider

log = structlog.get_logger()


def _is_root_path(path: str) -> bool:
    return path in ("", "/")


def _quote_path(path: str) -> str:
    """Percent-encode a drive path, keeping the folder separators."""
    return quote(path.strip("/"), safe="/")


def _parse_item(item: dict) -> StoreItem:
    return StoreItem(
        name=item.get("name", ""),
        is_folder="folder" in item,
        id=item.get("id", ""),
        web_url=item.get("webUrl", ""),
        size=item.get("size"),
    )


class SharePointClient:
    """
    Graph client bound to one SharePoint site and document library.

    Site and drive IDs are looked up on first use and cached for the
    lifetime of the client.

    Usage:
        client = SharePointClient()
        items = client.list_folder("SWPPP/INSPECTIONS/PROJECTS")
        result = client.put_file(folder_path, "01.21.26.pdf", pdf_bytes)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        token_provider: GraphTokenProvider | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http_client or httpx.Client(
            timeout=self._settings.sharepoint_timeout_seconds
        )
        self._tokens = token_provider or GraphTokenProvider(
            self._settings, http_client=self._http
        )
        self._site_id: str | None = None
        self._drive_id: str | None = None

    def _headers(self, **extra: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._tokens.get_token()}", **extra}

    def _url(self, path: str) -> str:
        return f"{self._settings.graph_base_url}{path}"

    def _get(self, url: str, *, operation: str, path: str) -> httpx.Response:
        try:
            response = self._http.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise SharePointError(
                operation=operation, path=path, error_message=str(e)
            ) from e
        if response.status_code != 200:
            raise SharePointError(
                operation=operation,
                path=path,
                status_code=response.status_code,
                error_message=response.text[:500],
            )
        return response

    def get_site_id(self) -> str:
        """Get the configured site's Graph ID."""
        if self._site_id:
            return self._site_id

        site_path = self._settings.sharepoint_site_path.strip("/")
        response = self._get(
            self._url(f"/sites/{self._settings.sharepoint_hostname}:/{site_path}"),
            operation="resolve_site",
            path=site_path,
        )
        self._site_id = response.json()["id"]
        log.debug("sharepoint_site_resolved", site_path=site_path, site_id=self._site_id)
        return self._site_id

    def get_drive_id(self) -> str:
        """Get the document library drive ID for the configured site."""
        if self._drive_id:
            return self._drive_id

        site_id = self.get_site_id()
        response = self._get(
            self._url(f"/sites/{site_id}/drives"),
            operation="resolve_drive",
            path=self._settings.sharepoint_site_path,
        )
        drives = response.json().get("value", [])
        accepted = self._settings.sharepoint_drive_names
        drive = next((d for d in drives if d.get("name") in accepted), None)

        if drive is None:
            raise SharePointError(
                operation="resolve_drive",
                path=self._settings.sharepoint_site_path,
                error_message=(
                    "Default drive not found. Available drives: "
                    f"{', '.join(d.get('name', '') for d in drives)}"
                ),
            )

        self._drive_id = drive["id"]
        log.debug("sharepoint_drive_resolved", drive_name=drive.get("name"))
        return self._drive_id

    def list_folder(self, folder_path: str) -> list[StoreItem]:
        """
        List the items in a folder of the document library.

        A folder that does not exist lists as empty.

        Raises:
            SharePointError: On any other Graph failure
        """
        drive_id = self.get_drive_id()
        if _is_root_path(folder_path):
            url = self._url(f"/drives/{drive_id}/root/children")
        else:
            url = self._url(f"/drives/{drive_id}/root:/{_quote_path(folder_path)}:/children")

        items: list[StoreItem] = []
        while url:
            try:
                response = self._get(url, operation="list", path=folder_path)
            except SharePointError as e:
                if e.is_not_found:
                    log.debug("sharepoint_folder_not_found", folder_path=folder_path)
                    return []
                log.error("sharepoint_list_failed", folder_path=folder_path, error=str(e))
                raise
            data = response.json()
            items.extend(_parse_item(i) for i in data.get("value", []))
            url = data.get("@odata.nextLink")

        log.debug("sharepoint_folder_listed", folder_path=folder_path, count=len(items))
        return items

    def put_file(
        self,
        folder_path: str,
        file_name: str,
        content: bytes,
        *,
        content_type: str = "application/pdf",
    ) -> UploadResult:
        """
        Upload a file into a folder, creating missing folders on the way.

        Raises:
            SharePointError: If Graph rejects the upload
        """
        drive_id = self.get_drive_id()
        file_path = file_name if _is_root_path(folder_path) else f"{folder_path.strip('/')}/{file_name}"
        url = self._url(f"/drives/{drive_id}/root:/{_quote_path(file_path)}:/content")

        log.info(
            "uploading_to_sharepoint",
            file_path=file_path,
            size_bytes=len(content),
        )

        try:
            response = self._http.put(
                url,
                content=content,
                headers=self._headers(**{"Content-Type": content_type}),
            )
        except httpx.HTTPError as e:
            log.error("sharepoint_upload_failed", file_path=file_path, error=str(e))
            raise SharePointError(
                operation="upload", path=file_path, error_message=str(e)
            ) from e

        if response.status_code not in (200, 201):
            log.error(
                "sharepoint_upload_failed",
                file_path=file_path,
                status_code=response.status_code,
            )
            raise SharePointError(
                operation="upload",
                path=file_path,
                status_code=response.status_code,
                error_message=response.text[:500],
            )

        data = response.json()
        result = UploadResult(id=data.get("id", ""), web_url=data.get("webUrl", ""))
        log.info("sharepoint_upload_complete", file_path=file_path, web_url=result.web_url)
        return result
