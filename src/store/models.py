"""Data models for books, annotations, cards and connections."""

from dataclasses import dataclass, field
from enum import Enum

from common.constants import (
    DEFAULT_CARD_HEIGHT,
    DEFAULT_CARD_WIDTH,
    DEFAULT_COLOR_CATEGORY,
    DEFAULT_COLOR_RGBA,
)

from .db.types import Row
from .ids import to_millis


class Direction(str, Enum):
    """How a connection between two cards is drawn."""

    NONE = "none"
    BIDIRECTIONAL = "bidirectional"
    FORWARD = "unidirectional-forward"
    BACKWARD = "unidirectional-backward"

    @classmethod
    def parse(cls, value: "str | Direction | None") -> "Direction":
        """Read a stored direction, treating unknown values as undirected."""
        try:
            return cls(value or cls.NONE.value)
        except ValueError:
            return cls.NONE


class AnnotationColor(str, Enum):
    """Highlight palette offered by the reader."""

    HIGHLIGHT_YELLOW = "rgba(255, 255, 0, 0.4)"
    MINT_GREEN = "rgba(0, 255, 127, 0.4)"
    SKY_BLUE = "rgba(135, 206, 235, 0.4)"
    LIGHT_PINK = "rgba(255, 192, 203, 0.4)"
    LAVENDER = "rgba(230, 230, 250, 0.6)"
    LIGHT_ORANGE = "rgba(255, 165, 0, 0.4)"
    CYAN = "rgba(0, 255, 255, 0.4)"
    PEACH = "rgba(255, 218, 185, 0.6)"
    CREAM = "rgba(255, 253, 208, 0.6)"


@dataclass(frozen=True)
class Position:
    """Top-left corner of a card on the canvas."""

    x: float
    y: float


@dataclass(frozen=True)
class Color:
    """Highlight color and the category the user filed it under."""

    rgba: str = DEFAULT_COLOR_RGBA
    category: str = DEFAULT_COLOR_CATEGORY


@dataclass
class Book:
    """A book on the shelf."""

    id: str
    title: str
    file_path: str
    cover_path: str | None = None
    author: str | None = None
    description: str | None = None
    topic: str | None = None
    reading_progress: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> "Book":
        return cls(
            id=row["id"],
            title=row["title"],
            file_path=row["file_path"],
            cover_path=row.get("cover_path"),
            author=row.get("author"),
            description=row.get("description"),
            topic=row.get("topic"),
            reading_progress=row.get("reading_progress") or None,
        )


@dataclass
class BookDraft:
    """Fields supplied when a book is imported. The id is always generated."""

    title: str
    file_path: str
    cover_path: str | None = None
    author: str | None = None
    description: str | None = None
    topic: str | None = None
    reading_progress: str | None = None


@dataclass
class Annotation:
    """A highlight anchored to a document range.

    ``cfi_range`` and ``text`` are the snapshot of what was selected and are
    never rewritten; ``title``, ``note`` and ``color`` are user-editable.
    """

    id: str
    book_id: str
    cfi_range: str
    text: str
    title: str = ""
    note: str = ""
    color: Color = field(default_factory=Color)
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def from_row(cls, row: Row) -> "Annotation":
        return cls(
            id=row["id"],
            book_id=row["book_id"],
            cfi_range=row["cfi_range"],
            text=row["text"],
            title=row.get("title") or "",
            note=row.get("note") or "",
            color=Color(
                rgba=row.get("color_rgba") or DEFAULT_COLOR_RGBA,
                category=row.get("color_category") or DEFAULT_COLOR_CATEGORY,
            ),
            created_at=to_millis(row.get("created_at")),
            updated_at=to_millis(row.get("updated_at")),
        )


@dataclass
class AnnotationDraft:
    """Fields supplied when the reader creates a highlight."""

    cfi_range: str
    text: str
    title: str = ""
    note: str = ""
    color: Color = field(default_factory=Color)


@dataclass
class Card:
    """Placement of one annotation on the notes canvas."""

    id: str
    annotation_id: str
    position: Position | None = None
    width: float | None = None
    height: float | None = None

    @classmethod
    def from_row(cls, row: Row) -> "Card":
        position = None
        if row.get("position_x") is not None and row.get("position_y") is not None:
            position = Position(x=row["position_x"], y=row["position_y"])
        return cls(
            id=row["id"],
            annotation_id=row["annotation_id"],
            position=position,
            width=row.get("width"),
            height=row.get("height"),
        )

    @property
    def size(self) -> tuple[float, float]:
        return (
            self.width if self.width is not None else DEFAULT_CARD_WIDTH,
            self.height if self.height is not None else DEFAULT_CARD_HEIGHT,
        )


@dataclass
class CardDraft:
    """Geometry supplied for a card; missing values get defaults.

    ``id`` is only a hint for ``batch_update`` inserts; the owning
    ``annotation_id`` is what identifies the card.
    """

    annotation_id: str
    position: Position | None = None
    width: float | None = None
    height: float | None = None
    id: str | None = None


@dataclass
class NoteConnection:
    """A user-drawn edge between two cards of the same book."""

    id: str
    book_id: str
    from_card_id: str
    to_card_id: str
    direction: Direction = Direction.NONE
    description: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> "NoteConnection":
        return cls(
            id=row["id"],
            book_id=row["book_id"],
            from_card_id=row["from_card_id"],
            to_card_id=row["to_card_id"],
            direction=Direction.parse(row.get("direction")),
            description=row.get("description"),
        )


@dataclass
class ConnectionDraft:
    """Fields supplied when two cards are connected."""

    book_id: str
    from_card_id: str
    to_card_id: str
    direction: Direction = Direction.NONE
    description: str | None = None
    id: str | None = None


@dataclass
class BatchFailure:
    """One entry a batch operation skipped, and why."""

    id: str
    reason: str


@dataclass
class BatchResult:
    """Outcome of a best-effort batch write.

    ``success`` means the batch committed. Entries that could not be written
    are listed in ``failed`` and did not roll back the others.
    """

    succeeded: list[str] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)
    success: bool = True

    @property
    def warnings(self) -> list[str]:
        return [f"{failure.id}: {failure.reason}" for failure in self.failed]
