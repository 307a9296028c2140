"""Board and card mutations.

Every function here is pure: the input document is never modified, and
the result is either a new document or, when nothing applies, the input
itself. The sync controller relies on this to keep the pre-mutation
document for rollback.
"""

from typing import Any

from ..models.document import Board, BoardDocument, Card

# Fields set once at creation
_FROZEN_CARD_FIELDS = {"id", "createdBy", "createdAt"}


def _replace_boards(document: BoardDocument, boards: list[Board]) -> BoardDocument:
    return document.model_copy(update={"boards": boards})


def _with_cards(board: Board, cards: list[Card]) -> Board:
    return board.model_copy(update={"cards": cards})


def add_card(document: BoardDocument, board_id: int, card: Card) -> BoardDocument:
    """Append a card to a board. No-op for an unknown board or a taken card id."""
    if document.find_board(board_id) is None:
        return document
    if card.id in document.card_ids():
        return document

    boards = [
        _with_cards(board, [*board.cards, card]) if board.id == board_id else board
        for board in document.boards
    ]
    return _replace_boards(document, boards)


def delete_card(document: BoardDocument, board_id: int, card_id: int) -> BoardDocument:
    """Remove a card from a board. No-op if it is not there."""
    board = document.find_board(board_id)
    if board is None or all(card.id != card_id for card in board.cards):
        return document

    boards = [
        _with_cards(b, [c for c in b.cards if c.id != card_id]) if b.id == board_id else b
        for b in document.boards
    ]
    return _replace_boards(document, boards)


def move_card(
    document: BoardDocument, card_id: int, from_board_id: int, to_board_id: int
) -> BoardDocument:
    """Move a card to the end of another board, unchanged."""
    if from_board_id == to_board_id:
        return document

    source = document.find_board(from_board_id)
    target = document.find_board(to_board_id)
    if source is None or target is None:
        return document

    moving = next((card for card in source.cards if card.id == card_id), None)
    if moving is None:
        return document

    boards = []
    for board in document.boards:
        if board.id == from_board_id:
            board = _with_cards(board, [c for c in board.cards if c.id != card_id])
        elif board.id == to_board_id:
            board = _with_cards(board, [*board.cards, moving])
        boards.append(board)
    return _replace_boards(document, boards)


def _wire_key(name: str) -> str:
    """Map a Python attribute name to its wire alias, if it has one."""
    field = Card.model_fields.get(name)
    if field is not None and field.alias:
        return field.alias
    return name


def edit_card(
    document: BoardDocument, board_id: int, card_id: int, fields: dict[str, Any]
) -> BoardDocument:
    """Shallow-merge ``fields`` into a card.

    Keys may use wire or attribute names. Identity and provenance fields are
    ignored. Raises ``pydantic.ValidationError`` if the merged card is
    invalid (for example an empty title).
    """
    changes = {_wire_key(key): value for key, value in fields.items()}
    changes = {key: value for key, value in changes.items() if key not in _FROZEN_CARD_FIELDS}
    if not changes:
        return document

    board = document.find_board(board_id)
    if board is None:
        return document
    current = next((card for card in board.cards if card.id == card_id), None)
    if current is None:
        return document

    merged = Card.model_validate({**current.model_dump(by_alias=True), **changes})
    boards = [
        _with_cards(b, [merged if c.id == card_id else c for c in b.cards]) if b.id == board_id else b
        for b in document.boards
    ]
    return _replace_boards(document, boards)


def add_board(document: BoardDocument, board: Board) -> BoardDocument:
    """Append a board. No-op if its id, or one of its card ids, is taken."""
    if board.id in document.board_ids():
        return document
    existing_cards = set(document.card_ids())
    if any(card.id in existing_cards for card in board.cards):
        return document

    return _replace_boards(document, [*document.boards, board])


def delete_board(document: BoardDocument, board_id: int) -> BoardDocument:
    """Remove a board together with its cards."""
    if document.find_board(board_id) is None:
        return document

    return _replace_boards(document, [b for b in document.boards if b.id != board_id])
