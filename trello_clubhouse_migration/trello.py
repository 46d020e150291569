"""Trello API client for fetching board data, card history and attachments."""

from typing import Optional

import requests

from .errors import TrelloError
from .models import TrelloAction, TrelloAttachment, TrelloCard, TrelloChecklist

BASE_URL = "https://api.trello.com/1"


class TrelloClient:
    def __init__(self, api_key: str, api_token: str):
        if not api_key or not api_token:
            raise ValueError("Trello api_key and api_token are required")
        self._auth_params = {"key": api_key, "token": api_token}

    def _get(self, path: str, query_params: Optional[dict] = None):
        """Make an authenticated GET request to the Trello API."""
        # Merge any caller-provided params with the auth credentials
        params = dict(query_params) if query_params else {}
        params.update(self._auth_params)

        try:
            response = requests.get(f"{BASE_URL}{path}", params=params, timeout=30)
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as err:
            raise TrelloError(f"Trello GET {path} failed: {err}") from err

    def get_board(self, board_id: str) -> dict:
        """Get board metadata (name, description, url)."""
        return self._get(f"/boards/{board_id}", {"fields": "name,desc,url"})

    def get_lists(self, board_id: str, include_archived: bool = False) -> list:
        """Get all lists on a board."""
        list_filter = "all" if include_archived else "open"
        return self._get(f"/boards/{board_id}/lists", {"filter": list_filter})

    def get_cards(self, list_id: str, include_archived: bool = False) -> list:
        """Get all cards in a list with the fields the migration needs."""
        card_filter = "all" if include_archived else "open"
        return self._get(
            f"/lists/{list_id}/cards",
            {
                "filter": card_filter,
                "fields": "name,desc,due,labels,closed,pos,shortUrl,idList,idMembers",
            },
        )

    def get_all_cards_on_board(self, board_id: str, include_archived: bool = False):
        """
        Fetch every card across every list on a board.

        Returns a tuple of (lists, cards) where cards are TrelloCard records
        carrying the id and name of the list they came from.
        """
        lists = self.get_lists(board_id, include_archived=include_archived)
        all_cards = []

        for trello_list in lists:
            cards = self.get_cards(trello_list["id"], include_archived=include_archived)

            for card in cards:
                card["listName"] = trello_list["name"]
                card["listId"] = trello_list["id"]
                all_cards.append(TrelloCard.from_api(card))

        return lists, all_cards

    def get_card_actions(self, card_id: str) -> list:
        """Get the creation and comment history of a card, oldest first."""
        actions = self._get(
            f"/cards/{card_id}/actions",
            {"filter": "createCard,commentCard", "limit": 1000},
        )
        # Trello returns newest first
        return [TrelloAction.from_api(action) for action in reversed(actions)]

    def get_card_checklists(self, card_id: str) -> list:
        """Get the checklists of a card with their items."""
        checklists = self._get(f"/cards/{card_id}/checklists", {"checkItems": "all"})
        return [TrelloChecklist.from_api(checklist) for checklist in checklists]

    def get_card_attachments(self, card_id: str) -> list:
        """Get the attachments of a card."""
        attachments = self._get(f"/cards/{card_id}/attachments", {"fields": "name,url"})
        return [TrelloAttachment.from_api(attachment) for attachment in attachments]

    def download_attachment(self, url: str) -> bytes:
        """
        Download a Trello attachment and return its bytes.

        Trello attachment URLs require auth for private boards, so we
        pass credentials as an OAuth header.
        """
        api_key = self._auth_params["key"]
        api_token = self._auth_params["token"]
        headers = {
            "Authorization": f'OAuth oauth_consumer_key="{api_key}", oauth_token="{api_token}"'
        }

        try:
            response = requests.get(url, headers=headers, timeout=60)
            response.raise_for_status()
            return response.content
        except requests.exceptions.RequestException as err:
            raise TrelloError(f"Failed to download {url}: {err}") from err
