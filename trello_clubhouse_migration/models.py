"""
Data shapes passed between the Trello, Dropbox and Clubhouse steps.

Two families live here:

    Trello*     — raw Trello API payloads parsed into explicit records, so
                  the rest of the code never digs through loose dicts.
    Card & co.  — the intermediate representation written to trello.json
                  between the export and import phases.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

# Trello's fixed wire format, e.g. 2023-05-01T00:00:00.000Z
TRELLO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

COMMENT_ACTION = "commentCard"
CREATE_ACTION = "createCard"
COMPLETE_STATE = "complete"


def parse_trello_date(date_string: Optional[str]) -> Optional[datetime]:
    """
    Parse a Trello timestamp into an aware UTC datetime.
    Returns None if the input is missing or doesn't match the Trello format.
    """
    if not date_string or not isinstance(date_string, str):
        return None

    try:
        parsed = datetime.strptime(date_string, TRELLO_DATE_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def format_trello_date(value: Optional[datetime]) -> Optional[str]:
    """Render a datetime back into Trello's millisecond wire format."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _require(payload: dict, key: str, kind: str):
    if not isinstance(payload, dict):
        raise ValueError(f"Trello {kind} payload must be an object, got {type(payload).__name__}")
    value = payload.get(key)
    if value is None:
        raise ValueError(f"Trello {kind} is missing required field '{key}'")
    return value


# ── Raw Trello payloads ─────────────────────────────────────────────────────


@dataclass
class TrelloAction:
    type: str
    text: str = ""
    date: Optional[str] = None
    actor_id: str = ""
    actor_name: str = ""

    @classmethod
    def from_api(cls, payload: dict) -> "TrelloAction":
        action_type = _require(payload, "type", "action")
        data = payload.get("data") or {}
        member = payload.get("memberCreator") or {}
        return cls(
            type=action_type,
            text=data.get("text") or "",
            date=payload.get("date"),
            actor_id=member.get("id") or payload.get("idMemberCreator") or "",
            actor_name=member.get("fullName") or "",
        )


@dataclass
class TrelloCheckItem:
    name: str
    state: str = ""

    @classmethod
    def from_api(cls, payload: dict) -> "TrelloCheckItem":
        return cls(
            name=_require(payload, "name", "check item"),
            state=payload.get("state") or "",
        )


@dataclass
class TrelloChecklist:
    name: str
    items: list = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: dict) -> "TrelloChecklist":
        name = _require(payload, "name", "checklist")
        items = [TrelloCheckItem.from_api(item) for item in payload.get("checkItems") or []]
        return cls(name=name, items=items)


@dataclass
class TrelloAttachment:
    name: str
    url: str

    @classmethod
    def from_api(cls, payload: dict) -> "TrelloAttachment":
        url = _require(payload, "url", "attachment")
        return cls(name=payload.get("name") or url.rsplit("/", 1)[-1], url=url)


@dataclass
class TrelloCard:
    """The fields of a Trello card that the migration reads."""

    id: str
    name: str
    list_id: str = ""
    list_name: str = ""
    desc: str = ""
    labels: list = field(default_factory=list)
    due: Optional[str] = None
    pos: float = 0.0
    short_url: str = ""
    member_ids: list = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: dict) -> "TrelloCard":
        card_id = _require(payload, "id", "card")
        name = _require(payload, "name", "card")
        labels = [label.get("name") or "" for label in payload.get("labels") or []]
        return cls(
            id=card_id,
            name=name,
            list_id=payload.get("idList") or payload.get("listId") or "",
            list_name=payload.get("listName") or "",
            desc=payload.get("desc") or "",
            labels=labels,
            due=payload.get("due"),
            pos=float(payload.get("pos") or 0.0),
            short_url=payload.get("shortUrl") or payload.get("url") or "",
            member_ids=list(payload.get("idMembers") or []),
        )


# ── Intermediate representation ─────────────────────────────────────────────


@dataclass
class Task:
    completed: bool
    description: str

    def to_dict(self) -> dict:
        return {"completed": self.completed, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(completed=bool(data.get("completed")), description=data.get("description") or "")


@dataclass
class Comment:
    text: str
    author_source_id: str = ""
    author_display_name: str = ""
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "id_creator": self.author_source_id,
            "creator_name": self.author_display_name,
            "created_at": format_trello_date(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        return cls(
            text=data.get("text") or "",
            author_source_id=data.get("id_creator") or "",
            author_display_name=data.get("creator_name") or "",
            created_at=parse_trello_date(data.get("created_at")),
        )


@dataclass
class ShareLink:
    url: str
    canonical_path: str = ""
    expires: Optional[datetime] = None


@dataclass
class Card:
    """
    A Trello card normalized for import.

    source_url is the only field safe to correlate across runs; names may
    collide. position is carried verbatim so Clubhouse ordering can follow
    Trello ordering.
    """

    name: str
    description: str = ""
    labels: list = field(default_factory=list)
    due_date: Optional[datetime] = None
    creator_id: str = ""
    owner_ids: list = field(default_factory=list)
    created_at: Optional[datetime] = None
    comments: list = field(default_factory=list)
    tasks: list = field(default_factory=list)
    position: float = 0.0
    source_url: str = ""
    attachments: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "desc": self.description,
            "labels": list(self.labels),
            "due_date": format_trello_date(self.due_date),
            "id_creator": self.creator_id,
            "id_owners": list(self.owner_ids),
            "created_at": format_trello_date(self.created_at),
            "comments": [comment.to_dict() for comment in self.comments],
            "checklists": [task.to_dict() for task in self.tasks],
            "position": self.position,
            "url": self.source_url,
            "attachments": dict(self.attachments),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Card":
        name = _require(data, "name", "exported card")
        return cls(
            name=name,
            description=data.get("desc") or "",
            labels=list(data.get("labels") or []),
            due_date=parse_trello_date(data.get("due_date")),
            creator_id=data.get("id_creator") or "",
            owner_ids=unique(data.get("id_owners") or []),
            created_at=parse_trello_date(data.get("created_at")),
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            tasks=[Task.from_dict(t) for t in data.get("checklists") or []],
            position=float(data.get("position") or 0.0),
            source_url=data.get("url") or "",
            attachments=dict(data.get("attachments") or {}),
        )


def unique(values) -> list:
    """De-duplicate while keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
