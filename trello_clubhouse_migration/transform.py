"""
Transforms Trello cards into the intermediate Card representation.

Mapping:
    card name / desc      -> Card.name / Card.description
    card labels           -> Card.labels (display names, order and duplicates kept)
    card due              -> Card.due_date (None when missing or malformed)
    createCard action     -> Card.creator_id / Card.created_at (last one wins)
    commentCard actions   -> Card.comments (empty texts dropped)
    checklists            -> Card.tasks ("<checklist> - <item>")
    card pos / shortUrl   -> Card.position / Card.source_url
    card idMembers        -> Card.owner_ids
    attachments           -> Card.attachments, via the AttachmentRelocator

Fetching actions, checklists or attachments for one card can fail without
affecting the rest of that card or the batch: the failure is printed and
that part of the card is left empty.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .errors import MigrationError
from .models import (
    COMMENT_ACTION,
    COMPLETE_STATE,
    CREATE_ACTION,
    Card,
    Comment,
    Task,
    TrelloCard,
    parse_trello_date,
    unique,
)


def find_card_creator(actions: list):
    """
    Fold over the action log looking for the createCard event.

    Returns (creator_id, created_at). With several createCard events the
    last one wins; with none the result is ("", None).
    """
    creator_id = ""
    created_at = None

    for action in actions:
        if action.type == CREATE_ACTION:
            creator_id = action.actor_id
            created_at = parse_trello_date(action.date)

    return creator_id, created_at


def collect_comments(actions: list) -> list:
    """Turn every commentCard action with text into a Comment, in log order."""
    comments = []

    for action in actions:
        # Edited or cleared comments surface with an empty body
        if action.type != COMMENT_ACTION or not action.text:
            continue
        comments.append(Comment(
            text=action.text,
            author_source_id=action.actor_id,
            author_display_name=action.actor_name,
            created_at=parse_trello_date(action.date),
        ))

    return comments


def build_tasks(checklists: list) -> list:
    """Flatten checklists into one Task per check item."""
    tasks = []
    for checklist in checklists:
        for item in checklist.items:
            tasks.append(Task(
                completed=item.state == COMPLETE_STATE,
                description=f"{checklist.name} - {item.name}",
            ))
    return tasks


def _fetch(fetch, card: TrelloCard, what: str) -> list:
    try:
        return fetch(card.id)
    except (MigrationError, ValueError) as err:
        print(f"  Warning: querying {what} for '{card.name}' failed, ignoring: {err}")
        return []


def card_to_model(client, card: TrelloCard, relocator=None) -> Card:
    """
    Convert a single Trello card to a Card.

    `client` needs get_card_actions/get_card_checklists/get_card_attachments.
    When a relocator is given, the card's attachments are moved to Dropbox
    and Card.attachments holds their shared links.
    """
    actions = _fetch(client.get_card_actions, card, "actions")
    checklists = _fetch(client.get_card_checklists, card, "checklists")
    creator_id, created_at = find_card_creator(actions)

    model = Card(
        name=card.name,
        description=card.desc,
        labels=list(card.labels),
        due_date=parse_trello_date(card.due),
        creator_id=creator_id,
        owner_ids=unique(card.member_ids),
        created_at=created_at,
        comments=collect_comments(actions),
        tasks=build_tasks(checklists),
        position=card.pos,
        source_url=card.short_url,
    )

    if relocator is not None:
        attachments = _fetch(client.get_card_attachments, card, "attachments")
        if attachments:
            result = relocator.relocate(card, attachments)
            model.attachments = result.links

    return model


def transform_cards(
    client,
    cards: list,
    list_filter: Optional[list] = None,
    relocator=None,
    workers: int = 1,
) -> list:
    """
    Transform a list of TrelloCards into Cards, keeping their order.

    If list_filter is provided, only cards from those list names are included
    (case-insensitive match). Cards are independent of each other, so with
    workers > 1 they are processed on a thread pool.
    """
    cards_to_convert = cards

    if list_filter:
        allowed_lists = {name.lower() for name in list_filter}
        cards_to_convert = [
            card for card in cards
            if card.list_name.lower() in allowed_lists
        ]

    if workers <= 1:
        return [card_to_model(client, card, relocator=relocator) for card in cards_to_convert]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda card: card_to_model(client, card, relocator=relocator),
                             cards_to_convert))
