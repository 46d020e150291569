"""
Creates Clubhouse stories from exported Cards.

For every card, in order:

    Pending -> DuplicateCheck -> Deleted | NoMatch -> Submitted -> Success | Failed

Stories in the target project with exactly the card's name are deleted
first, so importing the same board twice leaves one story per card name.
Nothing that goes wrong with one card stops the batch; each card gets one
status line and one ImportResult.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .errors import MigrationError
from .models import format_trello_date

OUTPUT_FORMAT = "%-40s %-17s %s"
LINKED_FILE_TYPE = "dropbox"

# One lock per destination project, kept for the life of the process
_project_locks = {}
_project_locks_guard = threading.Lock()


@contextmanager
def project_lock(project_id):
    """Serialize the duplicate check and story creation per Clubhouse project."""
    with _project_locks_guard:
        lock = _project_locks.setdefault(project_id, threading.Lock())
    with lock:
        yield


class ImportState(Enum):
    PENDING = "Pending"
    DUPLICATE_CHECK = "DuplicateCheck"
    DELETED = "Deleted"
    NO_MATCH = "NoMatch"
    SUBMITTED = "Submitted"
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass
class ClubhouseOptions:
    """Clubhouse ids the stories are created with, resolved from the config names."""

    project_id: int
    workflow_state_id: int
    story_type: str = "feature"
    import_member_id: str = ""
    add_comment_with_trello_link: bool = True


@dataclass
class ImportResult:
    card_name: str
    source_url: str
    state: ImportState = ImportState.PENDING
    story_id: Optional[int] = None
    error: Optional[str] = None
    deleted_story_ids: list = field(default_factory=list)
    linked_file_ids: list = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is ImportState.SUCCESS

    def status_line(self) -> str:
        if self.succeeded:
            detail = f"Story ID: {self.story_id}"
        else:
            detail = self.error or ""
        return format_status_line(self.source_url, self.state.value, detail)


def format_status_line(link: str, status: str, detail) -> str:
    return OUTPUT_FORMAT % (link, status, detail)


def _find_by_name(items: list, name: str, kind: str) -> dict:
    for item in items:
        if item.get("name") == name:
            return item
    raise ValueError(f'Clubhouse {kind} "{name}" not found')


def _find_member(members: list, wanted: str) -> dict:
    for member in members:
        profile = member.get("profile") or {}
        candidates = {
            member.get("id"),
            profile.get("mention_name"),
            profile.get("email_address"),
            profile.get("name"),
        }
        if wanted in candidates:
            return member
    raise ValueError(f'Clubhouse member "{wanted}" not found')


def resolve_clubhouse_options(client, settings) -> ClubhouseOptions:
    """
    Look up the project, workflow state and importing member named in the
    config (a ClubhouseSettings) and return their ids.
    """
    project = _find_by_name(client.list_projects(), settings.project, "project")

    workflows = client.list_workflows()
    project_workflow = project.get("workflow_id")
    # Prefer the project's own workflow when the same state name is reused
    workflows.sort(key=lambda wf: wf.get("id") != project_workflow)
    states = [state for wf in workflows for state in wf.get("states") or []]
    state = _find_by_name(states, settings.workflow_state, "workflow state")

    if settings.import_member:
        member = _find_member(client.list_members(), settings.import_member)
    else:
        member = client.get_current_member()

    return ClubhouseOptions(
        project_id=project["id"],
        workflow_state_id=state["id"],
        story_type=settings.story_type,
        import_member_id=member["id"],
        add_comment_with_trello_link=settings.add_comment_with_trello_link,
    )


# ── Story request construction ──────────────────────────────────────────────


def build_labels(card) -> list:
    # Colour-only Trello labels have no name, and Clubhouse rejects unnamed labels
    return [{"name": label} for label in card.labels if label]


def build_tasks(card) -> list:
    return [{"complete": task.completed, "description": task.description} for task in card.tasks]


def build_comments(card, options: ClubhouseOptions, user_map, now: Optional[datetime] = None) -> list:
    """
    Map card comments 1:1, authors through the user map, plus an optional
    trailing comment linking back to the Trello card.
    """
    comments = []

    for comment in card.comments:
        request = {
            "text": comment.text,
            "author_id": user_map.get_creator(comment.author_source_id, options.import_member_id),
        }
        if comment.created_at is not None:
            request["created_at"] = format_trello_date(comment.created_at)
        comments.append(_without_empty(request, "author_id"))

    if options.add_comment_with_trello_link:
        comments.append({
            "text": f"Card imported from Trello: {card.source_url}",
            "created_at": format_trello_date(now or datetime.now(timezone.utc)),
        })

    return comments


def build_story_request(card, options: ClubhouseOptions, user_map,
                        linked_file_ids: Optional[list] = None) -> dict:
    """Build the body of a Clubhouse create-story call for one card."""
    request = {
        "project_id": options.project_id,
        "workflow_state_id": options.workflow_state_id,
        "story_type": options.story_type,
        "requested_by_id": user_map.get_creator(card.creator_id, options.import_member_id),
        "owner_ids": user_map.map_all(card.owner_ids),
        "follower_ids": [],
        "file_ids": [],
        "name": card.name,
        "description": card.description,
        "deadline": format_trello_date(card.due_date),
        "created_at": format_trello_date(card.created_at),
        "labels": build_labels(card),
        "tasks": build_tasks(card),
        "comments": build_comments(card, options, user_map),
        "linked_file_ids": list(linked_file_ids or []),
    }
    return _without_empty(request, "requested_by_id", "deadline", "created_at")


def _without_empty(request: dict, *keys) -> dict:
    for key in keys:
        if not request.get(key):
            request.pop(key, None)
    return request


# ── Orchestration ───────────────────────────────────────────────────────────


class ImportOrchestrator:
    def __init__(self, client, options: ClubhouseOptions, user_map):
        """`client` is a ClubhouseClient (or anything with the same methods)."""
        self.client = client
        self.options = options
        self.user_map = user_map
        self._stories = None

    def load_existing_stories(self) -> list:
        """Snapshot the project's stories once per run."""
        if self._stories is None:
            try:
                self._stories = list(self.client.list_stories(self.options.project_id))
            except MigrationError as err:
                print(f"  Warning: listing existing stories failed, duplicates won't be removed: {err}")
                self._stories = []
        return self._stories

    def delete_matching_stories(self, card, result: ImportResult) -> None:
        result.state = ImportState.DUPLICATE_CHECK
        stories = self.load_existing_stories()

        for story in [s for s in stories if s.get("name") == card.name]:
            try:
                self.client.delete_story(story["id"])
            except MigrationError as err:
                print(format_status_line(card.source_url, "Delete Failed",
                                         f"Story ID: {story['id']} ({err})"))
                continue
            stories.remove(story)
            result.deleted_story_ids.append(story["id"])
            print(format_status_line(card.source_url, "Deleted Matching", f"Story ID: {story['id']}"))

        result.state = ImportState.DELETED if result.deleted_story_ids else ImportState.NO_MATCH

    def build_linked_files(self, card) -> list:
        """Register each Dropbox link as a Clubhouse linked file; return the new ids."""
        ids = []

        for name, url in card.attachments.items():
            request = {
                "name": name,
                "type": LINKED_FILE_TYPE,
                "url": url,
                "uploader_id": self.options.import_member_id,
            }
            try:
                linked_file = self.client.create_linked_file(request)
                ids.append(linked_file["id"])
            except (MigrationError, KeyError, TypeError) as err:
                print(f"  Failed to create linked file for '{card.name}', Dropbox link: {url}, error: {err}")

        return ids

    def import_card(self, card) -> ImportResult:
        result = ImportResult(card_name=card.name, source_url=card.source_url)

        with project_lock(self.options.project_id):
            self.delete_matching_stories(card, result)

            result.linked_file_ids = self.build_linked_files(card)
            request = build_story_request(card, self.options, self.user_map, result.linked_file_ids)

            result.state = ImportState.SUBMITTED
            try:
                story = self.client.create_story(request)
                result.story_id = story["id"]
            except (MigrationError, KeyError, TypeError) as err:
                result.state = ImportState.FAILED
                result.error = str(err)
                return result

            self.load_existing_stories().append({"id": result.story_id, "name": card.name})
            result.state = ImportState.SUCCESS

        return result

    def import_cards(self, cards: list) -> list:
        """Import every card, printing one status line per card as it finishes."""
        print("Importing trello cards into Clubhouse...")
        print(format_status_line("Trello Card Link", "Import Status", "Error/Story ID") + "\n")
        self.load_existing_stories()

        results = []
        for card in cards:
            result = self.import_card(card)
            print(result.status_line())
            results.append(result)
        return results


def summarize(results: list) -> str:
    succeeded = sum(1 for result in results if result.succeeded)
    return f"{succeeded} succeeded, {len(results) - succeeded} failed"
