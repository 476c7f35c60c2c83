"""Reader session: the document viewer's side of an open book."""

from collections.abc import Callable

from common.logger import get_logger
from store.db import DatabaseError
from store.models import Annotation, AnnotationDraft, CardDraft, Color
from store.store import Store

from .canvas import CanvasSession
from .projection import staggered_position

logger = get_logger(__name__)

RenderHighlights = Callable[[list[Annotation]], None]


class ReaderSession:
    """Turns viewer events into annotation writes and repaints highlights.

    ``render_highlights`` is the viewer's callback; it receives the full
    annotation list of the book whenever that list changes. When a canvas is
    attached it is kept in step with the same list.
    """

    def __init__(
        self,
        store: Store,
        book_id: str,
        render_highlights: RenderHighlights | None = None,
        canvas: CanvasSession | None = None,
    ):
        self.store = store
        self.book_id = book_id
        self.render_highlights = render_highlights
        self.canvas = canvas
        self.annotations: list[Annotation] = []

    def load(self) -> list[Annotation]:
        self.annotations = self.store.annotations.get_by_book_id(self.book_id)
        self._render()
        return self.annotations

    def _render(self) -> None:
        if self.render_highlights is not None:
            self.render_highlights(list(self.annotations))

    def _changed(self) -> None:
        self._render()
        if self.canvas is not None:
            self.canvas.sync_annotations(self.annotations)

    def on_selection(
        self,
        cfi_range: str,
        text: str,
        title: str = "",
        note: str = "",
        color: Color | None = None,
    ) -> Annotation | None:
        """Store a highlight for the selected range, with its card.

        The annotation and its card are written in one transaction, the card
        at the next staggered slot, so the canvas never sees an annotation
        without a card.

        Returns:
            The new annotation, or None if it could not be saved
        """
        draft = AnnotationDraft(
            cfi_range=cfi_range, text=text, title=title, note=note, color=color or Color()
        )
        try:
            with self.store.adapter.transaction():
                annotation = self.store.annotations.create(self.book_id, draft)
                self.store.cards.create(
                    annotation.id,
                    CardDraft(
                        annotation_id=annotation.id,
                        position=staggered_position(len(self.annotations)),
                    ),
                )
        except DatabaseError as e:
            logger.warning("Could not save highlight in %s: %s", self.book_id, e)
            return None

        self.annotations.append(annotation)
        self._changed()
        return annotation

    def update_annotation(
        self,
        annotation_id: str,
        note: str | None = None,
        title: str | None = None,
        color: Color | None = None,
    ) -> bool:
        """Edit a highlight's note, title or color.

        Returns:
            False if the highlight does not exist or could not be saved
        """
        try:
            updated = self.store.annotations.update(
                annotation_id, note=note, title=title, color=color
            )
            fresh = self.store.annotations.get_by_id(annotation_id) if updated else None
        except DatabaseError as e:
            logger.warning("Could not update highlight %s: %s", annotation_id, e)
            return False
        if fresh is None:
            logger.debug("Highlight %s not found", annotation_id)
            return False

        self.annotations = [fresh if a.id == annotation_id else a for a in self.annotations]
        self._changed()
        return True

    def delete_annotation(self, annotation_id: str) -> bool:
        """Delete a highlight together with its card and edges."""
        if self.canvas is not None:
            deleted = self.canvas.delete_annotation(annotation_id)
        else:
            try:
                deleted = self.store.annotations.delete(annotation_id)
            except DatabaseError as e:
                logger.warning("Could not delete highlight %s: %s", annotation_id, e)
                return False

        if deleted:
            self.annotations = [a for a in self.annotations if a.id != annotation_id]
            self._changed()
        return deleted

    def on_relocate(self, location: str) -> bool:
        """Remember where the reader is. Failures are logged, never raised."""
        try:
            saved = self.store.books.update_reading_progress(self.book_id, location)
        except DatabaseError as e:
            logger.warning("Could not save reading progress of %s: %s", self.book_id, e)
            return False
        if not saved:
            logger.warning("Book %s is gone; reading progress not saved", self.book_id)
        return saved
