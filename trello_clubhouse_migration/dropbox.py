"""Dropbox API v2 client for uploading files and managing shared links."""

import json
from datetime import datetime, timezone
from typing import Optional

import requests

from .errors import DropboxError
from .models import ShareLink

API_URL = "https://api.dropboxapi.com/2"
CONTENT_URL = "https://content.dropboxapi.com/2"

DROPBOX_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def parse_dropbox_date(date_string: Optional[str]) -> Optional[datetime]:
    if not date_string:
        return None
    try:
        return datetime.strptime(date_string, DROPBOX_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def share_link_from_api(payload: dict) -> ShareLink:
    url = payload.get("url")
    if not url:
        raise DropboxError(f"Dropbox shared link payload has no url: {payload}")
    return ShareLink(
        url=url,
        canonical_path=payload.get("path_lower") or "",
        expires=parse_dropbox_date(payload.get("expires")),
    )


class DropboxClient:
    def __init__(self, token: str):
        if not token:
            raise ValueError("Dropbox token is required")
        self._auth_header = {"Authorization": f"Bearer {token}"}

    def _rpc(self, endpoint: str, body: dict) -> dict:
        """Call a Dropbox RPC endpoint with a JSON body."""
        try:
            response = requests.post(
                f"{API_URL}/{endpoint}",
                headers=self._auth_header,
                json=body,
                timeout=30,
            )
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as err:
            raise DropboxError(f"Dropbox {endpoint} failed: {_error_summary(err)}") from err

    def upload(
        self,
        path: str,
        data: bytes,
        mode: str = "overwrite",
        autorename: bool = False,
        mute: bool = True,
        client_modified: Optional[str] = None,
    ) -> dict:
        """
        Upload bytes to `path` and return the file metadata
        (path_display, path_lower, id, ...).
        """
        arg = {"path": path, "mode": mode, "autorename": autorename, "mute": mute}
        if client_modified:
            arg["client_modified"] = client_modified

        headers = dict(self._auth_header)
        headers["Dropbox-API-Arg"] = json.dumps(arg)
        headers["Content-Type"] = "application/octet-stream"

        try:
            response = requests.post(
                f"{CONTENT_URL}/files/upload",
                headers=headers,
                data=data,
                timeout=120,
            )
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as err:
            raise DropboxError(f"Dropbox upload of {path} failed: {_error_summary(err)}") from err

    def list_shared_links(self, path: str) -> list:
        """Return the existing shared links for exactly this path."""
        body = self._rpc("sharing/list_shared_links", {"path": path, "direct_only": True})
        return [share_link_from_api(link) for link in body.get("links") or []]

    def create_shared_link(self, path: str) -> ShareLink:
        """Create a public shared link for the file at `path`."""
        body = self._rpc("sharing/create_shared_link_with_settings", {"path": path})
        return share_link_from_api(body)


def _error_summary(err: Exception) -> str:
    # Dropbox puts the useful part in the response body
    response = getattr(err, "response", None)
    if response is not None and response.text:
        return f"{err} ({response.text[:200]})"
    return str(err)
