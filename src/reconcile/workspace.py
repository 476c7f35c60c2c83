"""Workspace: the book that is currently open, and switching between books."""

from common.logger import get_logger
from store.store import Store

from .canvas import CanvasSession
from .debounce import SessionToken
from .reader import ReaderSession, RenderHighlights

logger = get_logger(__name__)


class Workspace:
    """Owns the reader and canvas sessions of the open book.

    Opening another book closes the current sessions first: pending writes
    are flushed and the old session token is cancelled, so timers armed for
    the previous book cannot write once the new one is open.

    Example:
        >>> workspace = Workspace(store, render_highlights=viewer.paint)
        >>> workspace.open_book(book_id)
        >>> workspace.reader.on_selection(cfi, "selected text")
    """

    def __init__(self, store: Store, render_highlights: RenderHighlights | None = None, **delays):
        """Initialize the workspace.

        Args:
            store: Open store
            render_highlights: Viewer callback passed to every reader session
            **delays: Debounce overrides passed to every ``CanvasSession``
        """
        self.store = store
        self.render_highlights = render_highlights
        self.delays = delays
        self.token: SessionToken | None = None
        self.canvas: CanvasSession | None = None
        self.reader: ReaderSession | None = None

    @property
    def book_id(self) -> str | None:
        return self.canvas.book_id if self.canvas else None

    def open_book(self, book_id: str) -> CanvasSession:
        """Close the current book and open ``book_id``.

        Raises:
            KeyError: If the book does not exist
        """
        self.close_book()
        if self.store.books.get_by_id(book_id) is None:
            raise KeyError(f"Book {book_id} not found")

        self.token = SessionToken(book_id)
        self.canvas = CanvasSession(self.store, book_id, token=self.token, **self.delays)
        self.canvas.load()
        self.reader = ReaderSession(
            self.store, book_id, render_highlights=self.render_highlights, canvas=self.canvas
        )
        self.reader.load()
        logger.debug("Opened book %s", book_id)
        return self.canvas

    def close_book(self) -> None:
        """Flush and cancel the sessions of the open book, if any."""
        if self.canvas is not None:
            self.canvas.close()
            logger.debug("Closed book %s", self.canvas.book_id)
        self.canvas = None
        self.reader = None
        self.token = None
