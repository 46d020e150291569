"""Reads and writes the exported cards file shared by the export and import phases."""

import json
import os

from .config import DEFAULT_EXPORT_FILE
from .models import Card


def write_cards(cards: list, path: str = DEFAULT_EXPORT_FILE) -> str:
    """Write cards as a JSON array and return the path written."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8") as export_file:
        json.dump([card.to_dict() for card in cards], export_file, indent=2, ensure_ascii=False)

    return path


def read_cards(path: str = DEFAULT_EXPORT_FILE) -> list:
    """Load cards previously written by write_cards()."""
    with open(path, encoding="utf-8") as export_file:
        data = json.load(export_file)

    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of cards")
    return [Card.from_dict(item) for item in data]
