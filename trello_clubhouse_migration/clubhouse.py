"""Clubhouse (Shortcut) REST API v3 client for stories and linked files."""

import json
from typing import Optional

import requests

from .errors import ClubhouseError

BASE_URL = "https://api.app.shortcut.com/api/v3"


class ClubhouseClient:
    def __init__(self, token: str, base_url: str = BASE_URL):
        if not token:
            raise ValueError("Clubhouse token is required")
        self.base = base_url.rstrip("/")
        self._headers = {"Shortcut-Token": token, "Accept": "application/json"}

    def _request(self, method: str, path: str, *, json_body=None, params=None,
                 expected=(200, 201)) -> Optional[dict]:
        url = f"{self.base}/{path.lstrip('/')}"
        try:
            resp = requests.request(method, url, headers=self._headers,
                                    json=json_body, params=params, timeout=60)
        except requests.exceptions.ConnectionError as err:
            raise ClubhouseError(f"Connection error: {url}") from err
        except requests.exceptions.Timeout as err:
            raise ClubhouseError(f"Timeout: {url}") from err
        except requests.exceptions.RequestException as err:
            raise ClubhouseError(f"Clubhouse {method} {path} failed: {err}") from err
        if resp.status_code == 401:
            raise ClubhouseError("Clubhouse authentication failed (401).")
        if resp.status_code == 204:
            return None
        if resp.status_code not in expected:
            try:
                msg = json.dumps(resp.json())[:400]
            except ValueError:
                msg = resp.text[:400]
            raise ClubhouseError(f"Clubhouse {resp.status_code} {method} {path}: {msg}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as err:
            raise ClubhouseError(f"Clubhouse {method} {path} returned a non-JSON body: {resp.text[:200]}") from err

    def get_current_member(self) -> dict:
        return self._request("GET", "/member")

    def list_members(self) -> list:
        return self._request("GET", "/members") or []

    def list_projects(self) -> list:
        return self._request("GET", "/projects") or []

    def list_workflows(self) -> list:
        return self._request("GET", "/workflows") or []

    def list_stories(self, project_id: int) -> list:
        """Return the stories of a project as [{"id", "name", ...}]."""
        return self._request("GET", f"/projects/{project_id}/stories") or []

    def delete_story(self, story_id: int) -> None:
        self._request("DELETE", f"/stories/{story_id}", expected=(200, 204))

    def create_story(self, request: dict) -> dict:
        return self._request("POST", "/stories", json_body=request)

    def create_linked_file(self, request: dict) -> dict:
        return self._request("POST", "/linked-files", json_body=request)
