"""Tests for the reader side of an open book."""

import pytest

from reconcile.canvas import CanvasSession
from reconcile.projection import staggered_position
from reconcile.reader import ReaderSession
from store.db import DatabaseError
from store.models import AnnotationColor, Color


def fail(*args, **kwargs):
    raise DatabaseError("database is locked")


@pytest.fixture
def painted():
    """Every annotation list handed to the viewer."""
    return []


@pytest.fixture
def reader(store, book, painted):
    session = ReaderSession(store, book.id, render_highlights=painted.append)
    session.load()
    return session


class TestSelection:
    """Tests for turning a selection into a highlight."""

    def test_selection_creates_annotation_and_card(self, store, book, reader, painted):
        """Test that a highlight is stored with its card and painted."""
        annotation = reader.on_selection("epubcfi(/6/4!/4/2,/1:0,/1:5)", "Call me")

        assert store.annotations.get_by_id(annotation.id) == annotation
        (card,) = store.cards.get_by_annotation_ids([annotation.id])
        assert card.position == staggered_position(0)
        assert [a.id for a in painted[-1]] == [annotation.id]

    def test_cards_staggered(self, store, reader):
        reader.on_selection("c1", "one")
        second = reader.on_selection("c2", "two")

        (card,) = store.cards.get_by_annotation_ids([second.id])
        assert card.position == staggered_position(1)

    def test_selection_with_color(self, reader):
        facts = Color(AnnotationColor.MINT_GREEN.value, "facts")
        annotation = reader.on_selection("c", "t", color=facts)
        assert annotation.color.category == "facts"

    def test_selection_failure(self, store, reader, monkeypatch):
        """Test that a failed card write leaves no annotation behind."""
        monkeypatch.setattr(store.cards, "create", fail)

        assert reader.on_selection("c", "t") is None

        assert reader.annotations == []
        assert store.annotations.get_by_book_id(reader.book_id) == []

    def test_selection_reaches_canvas(self, store, book, painted):
        canvas = CanvasSession(store, book.id, card_wait=0.01, card_max_wait=0.02)
        canvas.load()
        session = ReaderSession(store, book.id, render_highlights=painted.append, canvas=canvas)

        annotation = session.on_selection("c", "t")

        assert canvas.node_for_annotation(annotation.id) is not None
        canvas.close()


class TestEdits:
    """Tests for editing and deleting highlights."""

    def test_update_note(self, store, reader, painted):
        annotation = reader.on_selection("c", "t")

        assert reader.update_annotation(annotation.id, note="remember") is True

        assert reader.annotations[0].note == "remember"
        assert painted[-1][0].note == "remember"

    def test_update_missing(self, reader):
        assert reader.update_annotation("missing", note="x") is False

    def test_delete(self, store, reader, painted):
        annotation = reader.on_selection("c", "t")

        assert reader.delete_annotation(annotation.id) is True

        assert reader.annotations == []
        assert painted[-1] == []
        assert store.cards.get_by_annotation_ids([annotation.id]) == []

    def test_delete_failure(self, store, reader, monkeypatch):
        annotation = reader.on_selection("c", "t")
        monkeypatch.setattr(store.annotations, "delete", fail)

        assert reader.delete_annotation(annotation.id) is False
        assert len(reader.annotations) == 1


class TestRelocate:
    """Tests for saving reading progress."""

    def test_progress_saved(self, store, book, reader):
        assert reader.on_relocate("epubcfi(/6/12)") is True
        assert store.books.get_by_id(book.id).reading_progress == "epubcfi(/6/12)"

    def test_progress_failure_not_raised(self, store, reader, monkeypatch, caplog):
        monkeypatch.setattr(store.books, "update_reading_progress", fail)
        assert reader.on_relocate("epubcfi(/6/12)") is False
        assert "reading progress" in caplog.text

    def test_progress_for_deleted_book(self, store, book, reader):
        store.books.delete(book.id)
        assert reader.on_relocate("x") is False
