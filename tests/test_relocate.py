"""
Unit tests for relocate.py (Trello attachments -> Dropbox shared links)

Run with:
    python -m pytest tests/test_relocate.py -v
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from trello_clubhouse_migration import relocate
from trello_clubhouse_migration.dropbox import DropboxClient
from trello_clubhouse_migration.errors import DropboxError, TrelloError
from trello_clubhouse_migration.models import ShareLink, TrelloAttachment

from conftest import FakeTrello, make_card


class FakeDropbox:
    """In-memory Dropbox: remembers uploads and hands out one link per path."""

    def __init__(self):
        self.files = {}
        self.links = {}
        self.uploads = []
        self.created = []
        self.fail_upload = set()
        self.fail_share = set()

    def upload(self, path, data, mode="overwrite", autorename=False, mute=True, client_modified=None):
        if path in self.fail_upload:
            raise DropboxError("insufficient space")
        self.uploads.append({"path": path, "mode": mode, "autorename": autorename,
                             "mute": mute, "client_modified": client_modified})
        self.files[path] = data
        return {"path_display": path, "path_lower": path.lower()}

    def list_shared_links(self, path):
        if path in self.links:
            return [self.links[path]]
        return []

    def create_shared_link(self, path):
        if path in self.fail_share:
            raise DropboxError("shared_link_already_exists")
        link = ShareLink(url=f"https://www.dropbox.com/s/{len(self.created)}/{path.rsplit('/', 1)[-1]}",
                         canonical_path=path.lower())
        self.links[path] = link
        self.created.append(path)
        return link


# ─────────────────────────────────────────────────────────────────────────────
# 1. Helpers
# ─────────────────────────────────────────────────────────────────────────────

class TestSanitizeFilename:
    def test_replaces_runs_with_single_underscore(self):
        assert relocate.sanitize_filename("My File #1.png") == "My_File_1.png"

    def test_safe_name_unchanged(self):
        assert relocate.sanitize_filename("report_2023.v2.PDF") == "report_2023.v2.PDF"

    def test_non_ascii(self):
        assert relocate.sanitize_filename("résumé (final).doc") == "r_sum_final_.doc"

    def test_leading_and_trailing_runs(self):
        assert relocate.sanitize_filename("  a  ") == "_a_"


class TestAttachmentPath:
    def test_layout(self):
        assert relocate.attachment_path("L1", "C1", 2, "My File #1.png") == "/trello/L1/C1/2_My_File_1.png"

    def test_custom_root(self):
        assert relocate.attachment_path("L", "C", 0, "a.txt", root="/backup/") == "/backup/L/C/0_a.txt"


class TestClientModifiedTimestamp:
    def test_renders_in_configured_zone(self):
        now = datetime(2023, 7, 1, 18, 0, 0, tzinfo=timezone.utc)
        # Boise is UTC-6 in summer
        assert relocate.client_modified_timestamp("America/Boise", now=now) == "2023-07-01T12:00:00Z"

    def test_utc(self):
        now = datetime(2023, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        assert relocate.client_modified_timestamp("UTC", now=now) == "2023-01-01T00:00:00Z"


# ─────────────────────────────────────────────────────────────────────────────
# 2. AttachmentRelocator
# ─────────────────────────────────────────────────────────────────────────────

class TestAttachmentRelocator:
    def _setup(self, *attachments):
        files = {a.url: b"bytes-" + a.name.encode() for a in attachments}
        return FakeTrello(files=files), FakeDropbox()

    def test_uploads_and_shares(self, capsys):
        attachment = TrelloAttachment(name="My File #1.png", url="https://trello.com/a/1")
        source, storage = self._setup(attachment)
        result = relocate.AttachmentRelocator(source, storage).relocate(make_card(), [attachment])

        assert list(result.links) == ["My_File_1.png"]
        assert result.errors == []
        assert storage.files["/trello/list-1/card-1/0_My_File_1.png"] == b"bytes-My File #1.png"

    def test_upload_uses_overwrite_semantics(self, capsys):
        attachment = TrelloAttachment(name="a.txt", url="https://trello.com/a/1")
        source, storage = self._setup(attachment)
        relocate.AttachmentRelocator(source, storage, timezone="UTC").relocate(make_card(), [attachment])

        upload = storage.uploads[0]
        assert upload["mode"] == "overwrite"
        assert upload["autorename"] is False
        assert upload["mute"] is True
        assert upload["client_modified"].endswith("Z")

    def test_index_distinguishes_same_name(self, capsys):
        first = TrelloAttachment(name="shot.png", url="https://trello.com/a/1")
        second = TrelloAttachment(name="shot.png", url="https://trello.com/a/2")
        source, storage = self._setup(first, second)
        relocate.AttachmentRelocator(source, storage).relocate(make_card(), [first, second])
        assert sorted(storage.files) == [
            "/trello/list-1/card-1/0_shot.png",
            "/trello/list-1/card-1/1_shot.png",
        ]

    def test_second_run_reuses_existing_link(self, capsys):
        attachment = TrelloAttachment(name="diagram.svg", url="https://trello.com/a/1")
        source, storage = self._setup(attachment)
        relocator = relocate.AttachmentRelocator(source, storage)

        first = relocator.relocate(make_card(), [attachment])
        second = relocator.relocate(make_card(), [attachment])

        assert first.links == second.links
        assert len(storage.created) == 1
        assert len(storage.uploads) == 2

    def test_download_failure_skips_attachment(self, capsys):
        broken = TrelloAttachment(name="broken.png", url="https://trello.com/a/broken")
        fine = TrelloAttachment(name="fine.png", url="https://trello.com/a/fine")
        source = FakeTrello(files={broken.url: TrelloError("403"), fine.url: b"ok"})
        storage = FakeDropbox()

        result = relocate.AttachmentRelocator(source, storage).relocate(make_card(), [broken, fine])

        assert list(result.links) == ["fine.png"]
        assert [(e.name, e.stage) for e in result.errors] == [("broken.png", "download")]
        assert "Failed to download broken.png" in capsys.readouterr().out

    def test_upload_failure_skips_attachment(self, capsys):
        attachment = TrelloAttachment(name="big.mov", url="https://trello.com/a/1")
        source, storage = self._setup(attachment)
        storage.fail_upload.add("/trello/list-1/card-1/0_big.mov")

        result = relocate.AttachmentRelocator(source, storage).relocate(make_card(), [attachment])
        assert result.links == {}
        assert result.errors[0].stage == "upload"

    def test_share_failure_omits_attachment(self, capsys):
        attachment = TrelloAttachment(name="a.txt", url="https://trello.com/a/1")
        source, storage = self._setup(attachment)
        storage.fail_share.add("/trello/list-1/card-1/0_a.txt")

        result = relocate.AttachmentRelocator(source, storage).relocate(make_card(), [attachment])
        assert result.links == {}
        assert result.errors[0].stage == "share"

    def test_listing_failure_falls_back_to_create(self, capsys):
        attachment = TrelloAttachment(name="a.txt", url="https://trello.com/a/1")
        source, storage = self._setup(attachment)

        def broken_listing(path):
            raise DropboxError("too many requests")
        storage.list_shared_links = broken_listing

        result = relocate.AttachmentRelocator(source, storage).relocate(make_card(), [attachment])
        assert "a.txt" in result.links
        assert storage.created == ["/trello/list-1/card-1/0_a.txt"]

    def test_failures_accumulate_across_cards(self, capsys):
        broken = TrelloAttachment(name="broken.png", url="https://trello.com/a/broken")
        fine = TrelloAttachment(name="fine.png", url="https://trello.com/a/fine")
        source = FakeTrello(files={broken.url: TrelloError("403"), fine.url: b"ok"})
        relocator = relocate.AttachmentRelocator(source, FakeDropbox())

        relocator.relocate(make_card(), [broken])
        relocator.relocate(make_card(id="card-2", name="Second card"), [fine, broken])

        assert [(f.card, f.name) for f in relocator.failures] == [
            ("Fix login bug", "broken.png"),
            ("Second card", "broken.png"),
        ]

    def test_sanitized_name_collision_warns(self, capsys):
        first = TrelloAttachment(name="a b.png", url="https://trello.com/a/1")
        second = TrelloAttachment(name="a#b.png", url="https://trello.com/a/2")
        source, storage = self._setup(first, second)

        result = relocate.AttachmentRelocator(source, storage).relocate(make_card(), [first, second])

        assert list(result.links) == ["a_b.png"]
        assert result.links["a_b.png"].endswith("/1_a_b.png")
        assert "a#b.png shares the name a_b.png" in capsys.readouterr().out


# ─────────────────────────────────────────────────────────────────────────────
# 3. AttachmentRelocator with the real DropboxClient (HTTP mocked)
# ─────────────────────────────────────────────────────────────────────────────

def _dropbox_post(url, **kwargs):
    resp = MagicMock()
    resp.status_code = 200
    if url.endswith("/files/upload"):
        path = json.loads(kwargs["headers"]["Dropbox-API-Arg"])["path"]
        resp.json.return_value = {"path_display": path, "path_lower": path.lower()}
    else:
        # Sharing endpoints answer with a proxy error page
        resp.text = "<html>"
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    return resp


@patch("trello_clubhouse_migration.dropbox.requests.post", side_effect=_dropbox_post)
def test_unreadable_share_response_skips_each_attachment(mock_post, capsys):
    first = TrelloAttachment(name="a.png", url="https://trello.com/a/1")
    second = TrelloAttachment(name="b.png", url="https://trello.com/a/2")
    source = FakeTrello(files={first.url: b"one", second.url: b"two"})
    relocator = relocate.AttachmentRelocator(source, DropboxClient("tok"))

    result = relocator.relocate(make_card(), [first, second])

    assert result.links == {}
    assert [(e.name, e.stage) for e in result.errors] == [("a.png", "share"), ("b.png", "share")]
    assert len(relocator.failures) == 2


@pytest.mark.parametrize("name", ["plain.txt", "under_score.md", "A1.b2.c3"])
def test_safe_names_round_trip(name):
    assert relocate.sanitize_filename(name) == name
