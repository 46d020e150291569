"""
CLI entry point for Trello -> Clubhouse migration.

Usage:
    python -m trello_clubhouse_migration                      # export, then import
    python -m trello_clubhouse_migration export               # write trello.json only
    python -m trello_clubhouse_migration import               # import an existing trello.json
    python -m trello_clubhouse_migration import --dry-run     # preview stories without writing
    python -m trello_clubhouse_migration --config other.json --workers 4
"""

import argparse
import json
import sys

from .clubhouse import ClubhouseClient
from .config import MigrationConfig
from .dropbox import DropboxClient
from .errors import MigrationError
from .export import read_cards, write_cards
from .importer import ImportOrchestrator, build_story_request, resolve_clubhouse_options, summarize
from .relocate import AttachmentRelocator
from .transform import transform_cards
from .trello import TrelloClient


def load_config(path: str) -> dict:
    """Load and parse the JSON config file."""
    try:
        with open(path, encoding="utf-8") as config_file:
            return json.load(config_file)
    except FileNotFoundError:
        print(f"Config file not found: {path}", file=sys.stderr)
        print("Copy config.example.json to config.json and fill in your credentials.", file=sys.stderr)
        sys.exit(1)


def export_cards(config: MigrationConfig, export_file: str, workers: int = 1):
    """
    Fetch the board, normalize every card and write them to export_file.

    Returns (cards, skipped attachments as AttachmentFailure records).
    """
    trello_config = config.trello
    print(f"Connecting to Trello board: {trello_config.board_id}")

    client = TrelloClient(api_key=trello_config.api_key, api_token=trello_config.api_token)

    board = client.get_board(trello_config.board_id)
    print(f'Board: "{board["name"]}"')

    lists, cards = client.get_all_cards_on_board(
        trello_config.board_id,
        include_archived=config.options.include_archived,
    )
    print(f"Found {len(lists)} lists, {len(cards)} cards")

    relocator = None
    if config.options.process_images:
        if config.dropbox is None:
            raise ValueError('"dropbox.token" is required when options.processImages is on')
        print(f"\nAttachments will be copied to Dropbox under {config.dropbox.root}")
        relocator = AttachmentRelocator(
            source=client,
            storage=DropboxClient(config.dropbox.token),
            timezone=config.dropbox.timezone,
            root=config.dropbox.root,
        )

    exported = transform_cards(
        client,
        cards,
        list_filter=trello_config.list_filter,
        relocator=relocator,
        workers=workers,
    )
    write_cards(exported, export_file)
    print(f"\nExported {len(exported)} cards to: {export_file}")

    skipped = relocator.failures if relocator is not None else []
    if skipped:
        print(f"Skipped {len(skipped)} attachment(s):")
        for failure in skipped:
            print(f"  {failure.card}: {failure.name} ({failure.stage}: {failure.error})")
    return exported, skipped


def import_cards(config: MigrationConfig, cards: list, dry_run: bool = False) -> list:
    """Create one Clubhouse story per card. Returns the ImportResults."""
    if config.clubhouse is None:
        raise ValueError('Config section "clubhouse" is required to import')

    client = ClubhouseClient(config.clubhouse.token)
    options = resolve_clubhouse_options(client, config.clubhouse)
    user_map = config.users

    if dry_run:
        print("\n--- DRY RUN ---")
        print(f"Would create {len(cards)} Clubhouse stories in project {options.project_id}.")
        if cards:
            print("\nSample story:")
            print(json.dumps(build_story_request(cards[0], options, user_map), indent=2))
        return []

    orchestrator = ImportOrchestrator(client, options, user_map)
    return orchestrator.import_cards(cards)


def main(argv=None) -> int:
    # -- Parse command-line arguments --
    parser = argparse.ArgumentParser(
        description="Migrate Trello cards to Clubhouse stories"
    )
    parser.add_argument("command", nargs="?", default="migrate",
                        choices=["export", "import", "migrate"],
                        help="Phase to run (default: migrate = export + import)")
    parser.add_argument("--config", default="config.json", help="Path to config file")
    parser.add_argument("--export-file", default=None,
                        help="Path of the exported cards JSON (default: trello.json)")
    parser.add_argument("--workers", type=int, default=1,
                        help="Cards exported in parallel")
    parser.add_argument("--dry-run", action="store_true", help="Preview without creating stories")
    args = parser.parse_args(argv)

    # -- Load config --
    try:
        config = MigrationConfig.from_dict(load_config(args.config))
    except ValueError as err:
        print(f"Invalid config: {err}", file=sys.stderr)
        return 1
    export_file = args.export_file or config.options.export_file

    try:
        # -- Export from Trello --
        if args.command in ("export", "migrate"):
            cards, skipped = export_cards(config, export_file, workers=args.workers)
        else:
            cards, skipped = read_cards(export_file), []
            print(f"Loaded {len(cards)} cards from: {export_file}")

        if args.command == "export":
            return 1 if skipped else 0

        # -- Import into Clubhouse --
        results = import_cards(config, cards, dry_run=args.dry_run)
    except (MigrationError, ValueError, OSError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    if args.dry_run:
        return 1 if skipped else 0

    summary = summarize(results)
    if skipped:
        summary += f", {len(skipped)} attachment(s) skipped"
    print(f"\n{summary}")
    return 0 if all(result.succeeded for result in results) and not skipped else 1


if __name__ == "__main__":
    sys.exit(main())
