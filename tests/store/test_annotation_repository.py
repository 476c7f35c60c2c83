"""Tests for the annotation repository."""

import pytest

from store.db import ReferentialIntegrityError
from store.models import AnnotationColor, AnnotationDraft, CardDraft, Color, ConnectionDraft


class TestAnnotationCreate:
    """Tests for creating annotations."""

    def test_create_and_read_back(self, store, book):
        """Test that every field round-trips."""
        draft = AnnotationDraft(
            cfi_range="epubcfi(/6/4!/4/2,/1:0,/1:12)",
            text="It is a truth",
            title="Opening",
            note="famous",
            color=Color(AnnotationColor.SKY_BLUE.value, "quotes"),
        )

        created = store.annotations.create(book.id, draft)
        stored = store.annotations.get_by_id(created.id)

        assert stored == created
        assert stored.color == Color("rgba(135, 206, 235, 0.4)", "quotes")
        assert stored.created_at == stored.updated_at > 0

    def test_default_color(self, store, make_annotation):
        """Test that highlights default to yellow in the default category."""
        annotation = make_annotation()
        assert annotation.color == Color("rgba(255, 255, 0, 0.4)", "default")

    def test_id_format(self, make_annotation):
        """Test that ids are timestamp plus random suffix."""
        millis, suffix = make_annotation().id.split("_")
        assert millis.isdigit()
        assert suffix.isalnum()

    def test_create_for_missing_book(self, store):
        """Test that a highlight needs an existing book."""
        with pytest.raises(ReferentialIntegrityError):
            store.annotations.create("missing", AnnotationDraft(cfi_range="c", text="t"))

    def test_get_by_book_id_oldest_first(self, store, book):
        """Test that annotations come back in creation order."""
        for text, created_at in (("second", 2000), ("first", 1000), ("third", 3000)):
            store.annotations.create(
                book.id, AnnotationDraft(cfi_range=text, text=text), created_at=created_at
            )

        texts = [a.text for a in store.annotations.get_by_book_id(book.id)]
        assert texts == ["first", "second", "third"]

    def test_exists(self, store, make_annotation):
        annotation = make_annotation()
        assert store.annotations.exists(annotation.id)
        assert not store.annotations.exists("missing")


class TestAnnotationUpdate:
    """Tests for updating annotations."""

    def test_update_note_only(self, store, make_annotation):
        """Test that only the note changes."""
        annotation = make_annotation()
        store.annotations.update(annotation.id, title="Title")

        assert store.annotations.update(annotation.id, note="new note") is True

        stored = store.annotations.get_by_id(annotation.id)
        assert stored.note == "new note"
        assert stored.title == "Title"
        assert stored.cfi_range == annotation.cfi_range
        assert stored.text == annotation.text

    def test_update_color(self, store, make_annotation):
        annotation = make_annotation()
        ideas = Color(AnnotationColor.LAVENDER.value, "ideas")
        store.annotations.update(annotation.id, color=ideas)
        assert store.annotations.get_by_id(annotation.id).color.category == "ideas"

    def test_update_bumps_updated_at(self, store, book):
        """Test that any update refreshes updated_at."""
        annotation = store.annotations.create(
            book.id, AnnotationDraft(cfi_range="c", text="t"), created_at=1000
        )

        store.annotations.update(annotation.id, note="n")

        stored = store.annotations.get_by_id(annotation.id)
        assert stored.created_at == 1000
        assert stored.updated_at > 1000

    def test_update_missing(self, store):
        """Test that updating a missing annotation reports not found."""
        assert store.annotations.update("missing", note="n") is False


class TestAnnotationDelete:
    """Tests for deleting annotations."""

    def test_delete_removes_card_and_connections(self, store, book, make_annotation):
        """Test that the card and every touching connection go too."""
        first, second, third = (make_annotation(text) for text in ("one", "two", "three"))
        cards = {
            a.id: store.cards.create(a.id, CardDraft(annotation_id=a.id))
            for a in (first, second, third)
        }
        for source, target in ((first, second), (third, first), (second, third)):
            store.connections.create(
                ConnectionDraft(
                    book_id=book.id,
                    from_card_id=cards[source.id].id,
                    to_card_id=cards[target.id].id,
                )
            )

        assert store.annotations.delete(first.id) is True

        assert store.cards.get_by_annotation_ids([first.id]) == []
        remaining = store.connections.get_by_book_id(book.id)
        assert [(c.from_card_id, c.to_card_id) for c in remaining] == [
            (cards[second.id].id, cards[third.id].id)
        ]

    def test_delete_missing(self, store):
        """Test that deleting a missing annotation reports not found."""
        assert store.annotations.delete("missing") is False
