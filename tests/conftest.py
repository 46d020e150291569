"""Pytest fixtures shared by the migration tests"""
import pytest

from trello_clubhouse_migration.importer import ClubhouseOptions
from trello_clubhouse_migration.models import (
    Card,
    TrelloAction,
    TrelloAttachment,
    TrelloCard,
    TrelloCheckItem,
    TrelloChecklist,
)
from trello_clubhouse_migration.users import UserMap


class FakeTrello:
    """Stands in for TrelloClient; per-card data keyed by card id."""

    def __init__(self, actions=None, checklists=None, attachments=None, files=None):
        self.actions = actions or {}
        self.checklists = checklists or {}
        self.attachments = attachments or {}
        self.files = files or {}
        self.downloads = []

    def _lookup(self, table, card_id):
        value = table.get(card_id, [])
        if isinstance(value, Exception):
            raise value
        return value

    def get_card_actions(self, card_id):
        return self._lookup(self.actions, card_id)

    def get_card_checklists(self, card_id):
        return self._lookup(self.checklists, card_id)

    def get_card_attachments(self, card_id):
        return self._lookup(self.attachments, card_id)

    def download_attachment(self, url):
        self.downloads.append(url)
        value = self.files[url]
        if isinstance(value, Exception):
            raise value
        return value


def make_card(**overrides) -> TrelloCard:
    base = {
        "id": "card-1",
        "name": "Fix login bug",
        "list_id": "list-1",
        "list_name": "Doing",
        "desc": "Users can't log in",
        "labels": [],
        "due": None,
        "pos": 16384.0,
        "short_url": "https://trello.com/c/abc123",
        "member_ids": [],
    }
    base.update(overrides)
    return TrelloCard(**base)


@pytest.fixture
def trello_card():
    return make_card()


@pytest.fixture
def login_bug_trello():
    """The "Fix login bug" card with one checklist, one comment and a due date."""
    card = make_card(due="2023-05-01T00:00:00.000Z", member_ids=["u1", "u2"])
    client = FakeTrello(
        actions={card.id: [
            TrelloAction(type="createCard", date="2023-04-01T09:30:00.000Z",
                         actor_id="u2", actor_name="Grace"),
            TrelloAction(type="commentCard", text="LGTM", date="2023-04-02T10:00:00.000Z",
                         actor_id="u1", actor_name="Ada"),
        ]},
        checklists={card.id: [
            TrelloChecklist(name="Checklist", items=[
                TrelloCheckItem(name="Tests", state="complete"),
                TrelloCheckItem(name="Docs", state="incomplete"),
            ]),
        ]},
        attachments={card.id: [
            TrelloAttachment(name="My File #1.png", url="https://trello.com/a/1.png"),
        ]},
        files={"https://trello.com/a/1.png": b"png-bytes"},
    )
    return card, client


@pytest.fixture
def options():
    return ClubhouseOptions(
        project_id=7,
        workflow_state_id=500,
        story_type="feature",
        import_member_id="importer-uuid",
        add_comment_with_trello_link=False,
    )


@pytest.fixture
def user_map():
    return UserMap({"u1": "ch-ada", "u2": "ch-grace"})


@pytest.fixture
def card():
    return Card(
        name="Fix login bug",
        description="Users can't log in",
        labels=["bug", "backend"],
        creator_id="u2",
        owner_ids=["u1"],
        source_url="https://trello.com/c/abc123",
    )
