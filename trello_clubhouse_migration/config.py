"""
Configuration structures built from config.json.

Each service client and pipeline step receives the section it needs at
construction time; nothing reads tokens or the time zone from globals.
"""

from dataclasses import dataclass, field
from typing import Optional

from .users import UserMap

DEFAULT_TIMEZONE = "America/Boise"
DEFAULT_EXPORT_FILE = "trello.json"


@dataclass
class TrelloOptions:
    api_key: str
    api_token: str
    board_id: str
    list_filter: list = field(default_factory=list)


@dataclass
class DropboxOptions:
    token: str
    timezone: str = DEFAULT_TIMEZONE
    root: str = "/trello"


@dataclass
class ClubhouseSettings:
    """Clubhouse settings as written in the config, referenced by name."""

    token: str
    project: str
    workflow_state: str
    story_type: str = "feature"
    import_member: str = ""
    add_comment_with_trello_link: bool = True


@dataclass
class MigrationOptions:
    include_archived: bool = False
    process_images: bool = True
    export_file: str = DEFAULT_EXPORT_FILE


@dataclass
class MigrationConfig:
    trello: TrelloOptions
    clubhouse: Optional[ClubhouseSettings] = None
    dropbox: Optional[DropboxOptions] = None
    users: UserMap = field(default_factory=UserMap)
    options: MigrationOptions = field(default_factory=MigrationOptions)

    @classmethod
    def from_dict(cls, config: dict) -> "MigrationConfig":
        """Validate the raw config dict. Raises ValueError on missing keys."""
        trello_config = _section(config, "trello")
        dropbox_config = config.get("dropbox") or {}
        options = config.get("options") or {}

        trello = TrelloOptions(
            api_key=_required(trello_config, "apiKey", "trello"),
            api_token=_required(trello_config, "apiToken", "trello"),
            board_id=_required(trello_config, "boardId", "trello"),
            list_filter=list(trello_config.get("listFilter") or []),
        )
        clubhouse = None
        clubhouse_config = config.get("clubhouse")
        if clubhouse_config:
            clubhouse = ClubhouseSettings(
                token=_required(clubhouse_config, "token", "clubhouse"),
                project=_required(clubhouse_config, "project", "clubhouse"),
                workflow_state=_required(clubhouse_config, "workflowState", "clubhouse"),
                story_type=clubhouse_config.get("storyType", "feature"),
                import_member=clubhouse_config.get("importMember", ""),
                add_comment_with_trello_link=clubhouse_config.get("addCommentWithTrelloLink", True),
            )
        migration_options = MigrationOptions(
            include_archived=options.get("includeArchived", False),
            process_images=options.get("processImages", True),
            export_file=options.get("exportFile", DEFAULT_EXPORT_FILE),
        )

        dropbox = None
        if dropbox_config.get("token"):
            dropbox = DropboxOptions(
                token=dropbox_config["token"],
                timezone=dropbox_config.get("timezone", DEFAULT_TIMEZONE),
                root=dropbox_config.get("root", "/trello"),
            )

        return cls(
            trello=trello,
            clubhouse=clubhouse,
            dropbox=dropbox,
            users=UserMap.from_config(config),
            options=migration_options,
        )


def _section(config: dict, name: str) -> dict:
    section = config.get(name)
    if not isinstance(section, dict):
        raise ValueError(f'Config section "{name}" is missing')
    return section


def _required(section: dict, key: str, section_name: str) -> str:
    value = section.get(key)
    if not value:
        raise ValueError(f'Config value "{section_name}.{key}" is required')
    return value
