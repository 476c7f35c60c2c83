"""In-memory projection of a book's canvas: nodes and edges."""

from dataclasses import dataclass

from common.constants import (
    CARD_STAGGER_X,
    CARD_STAGGER_Y,
    DEFAULT_CARD_HEIGHT,
    DEFAULT_CARD_ORIGIN,
    DEFAULT_CARD_WIDTH,
    NODE_KEY_PREFIX,
)
from store.models import Annotation, Card, Direction, NoteConnection, Position


def to_node_key(card_id: str) -> str:
    return f"{NODE_KEY_PREFIX}{card_id}"


def from_node_key(key: str) -> str:
    """Card id named by a node key.

    Raises:
        ValueError: If ``key`` is not of the form ``card-<card id>``
    """
    if not key.startswith(NODE_KEY_PREFIX) or len(key) == len(NODE_KEY_PREFIX):
        raise ValueError(f"Not a card node key: {key!r}")
    return key[len(NODE_KEY_PREFIX) :]


def staggered_position(index: int) -> Position:
    """Default position of the ``index``-th card placed without geometry."""
    x, y = DEFAULT_CARD_ORIGIN
    return Position(x=x + CARD_STAGGER_X * index, y=y + CARD_STAGGER_Y * index)


@dataclass
class Node:
    """A card joined with its annotation, as the canvas renders it."""

    key: str
    card_id: str
    annotation_id: str
    annotation: Annotation
    position: Position
    width: float = DEFAULT_CARD_WIDTH
    height: float = DEFAULT_CARD_HEIGHT

    @classmethod
    def from_card(cls, card: Card, annotation: Annotation, index: int) -> "Node":
        """Project a stored card; missing geometry falls back to the staggered default."""
        width, height = card.size
        return cls(
            key=to_node_key(card.id),
            card_id=card.id,
            annotation_id=annotation.id,
            annotation=annotation,
            position=card.position or staggered_position(index),
            width=width,
            height=height,
        )

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """``(left, top, right, bottom)`` of the card."""
        x, y = self.position.x, self.position.y
        return x, y, x + self.width, y + self.height

    def overlaps(self, other: "Node") -> bool:
        """True if the two cards share some area; touching edges do not count."""
        left, top, right, bottom = self.bounds
        o_left, o_top, o_right, o_bottom = other.bounds
        return left < o_right and o_left < right and top < o_bottom and o_top < bottom


@dataclass
class Edge:
    """A connection as the canvas renders it, between two node keys."""

    id: str
    source: str
    target: str
    direction: Direction = Direction.NONE
    description: str | None = None

    @classmethod
    def from_connection(cls, connection: NoteConnection) -> "Edge":
        return cls(
            id=connection.id,
            source=to_node_key(connection.from_card_id),
            target=to_node_key(connection.to_card_id),
            direction=connection.direction,
            description=connection.description,
        )

    def touches(self, key: str) -> bool:
        return key in (self.source, self.target)
