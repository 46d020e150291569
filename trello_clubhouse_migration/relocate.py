"""
Moves Trello attachments into Dropbox and resolves public shared links.

Every attachment lands at a deterministic path:

    /trello/<list id>/<card id>/<index>_<sanitized name>

so a re-run overwrites the same file instead of creating a copy, and the
shared link lookup finds the link created by the previous run.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .config import DEFAULT_TIMEZONE
from .errors import MigrationError

SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9_.]+")
CLIENT_MODIFIED_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def sanitize_filename(name: str) -> str:
    """Replace each run of characters outside [A-Za-z0-9_.] with one underscore."""
    return SAFE_FILENAME_RE.sub("_", name)


def attachment_path(list_id: str, card_id: str, index: int, name: str, root: str = "/trello") -> str:
    """Build the Dropbox path for one attachment of a card."""
    return f"{root.rstrip('/')}/{list_id}/{card_id}/{index}_{sanitize_filename(name)}"


def client_modified_timestamp(tz_name: str = DEFAULT_TIMEZONE, now: Optional[datetime] = None) -> str:
    """Render the current wall-clock time in `tz_name` for Dropbox's client_modified."""
    moment = now or datetime.now(ZoneInfo(tz_name))
    if moment.tzinfo is not None:
        moment = moment.astimezone(ZoneInfo(tz_name))
    return moment.strftime(CLIENT_MODIFIED_FORMAT)


@dataclass
class AttachmentFailure:
    name: str
    stage: str
    error: str
    card: str = ""


@dataclass
class RelocationResult:
    """Shared links keyed by sanitized filename, plus what was skipped."""

    links: dict = field(default_factory=dict)
    errors: list = field(default_factory=list)


class AttachmentRelocator:
    def __init__(self, source, storage, timezone: str = DEFAULT_TIMEZONE, root: str = "/trello"):
        """
        `source` downloads attachment bytes (TrelloClient), `storage` uploads
        and shares them (DropboxClient).
        """
        self.source = source
        self.storage = storage
        self.timezone = timezone
        self.root = root
        self.failures = []

    def resolve_share_url(self, path: str) -> str:
        """Reuse the first existing shared link for `path`, otherwise create one."""
        try:
            existing = self.storage.list_shared_links(path)
        except MigrationError as err:
            # Fall through to creating a fresh link
            print(f"  Warning: listing shared links for {path} failed: {err}")
            existing = []

        if existing:
            return existing[0].url
        return self.storage.create_shared_link(path).url

    def relocate(self, card, attachments: list) -> RelocationResult:
        """
        Copy each attachment of `card` (a TrelloCard) to Dropbox.

        A failing attachment is recorded in result.errors (and in
        self.failures, across cards) and left out of result.links; the
        remaining attachments are still processed.
        """
        result = RelocationResult()

        for index, attachment in enumerate(attachments):
            name = sanitize_filename(attachment.name)
            path = attachment_path(card.list_id, card.id, index, attachment.name, root=self.root)

            try:
                data = self.source.download_attachment(attachment.url)
            except MigrationError as err:
                print(f"  Failed to download {attachment.name}: {err}")
                result.errors.append(AttachmentFailure(name, "download", str(err), card.name))
                continue

            try:
                metadata = self.storage.upload(
                    path,
                    data,
                    mode="overwrite",
                    autorename=False,
                    mute=True,
                    client_modified=client_modified_timestamp(self.timezone),
                )
            except MigrationError as err:
                print(f"  Failed to upload {name} to {path}: {err}")
                result.errors.append(AttachmentFailure(name, "upload", str(err), card.name))
                continue

            uploaded_path = metadata.get("path_display") or path
            try:
                url = self.resolve_share_url(uploaded_path)
                if name in result.links:
                    print(f"  Warning: {attachment.name} shares the name {name} with an earlier attachment, "
                          f"keeping the link to {uploaded_path}")
                result.links[name] = url
                print(f"  Uploaded: {uploaded_path}")
            except MigrationError as err:
                print(f"  Failed to share {uploaded_path}, continuing: {err}")
                result.errors.append(AttachmentFailure(name, "share", str(err), card.name))

        self.failures.extend(result.errors)
        return result
