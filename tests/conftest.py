"""Shared fixtures: one fresh store per test."""

import pytest

from store.models import AnnotationDraft, BookDraft
from store.store import Store


@pytest.fixture
def store(tmp_path):
    """An initialized store in a temporary directory."""
    store = Store(tmp_path / "books.db")
    store.open()
    yield store
    store.close()


@pytest.fixture
def book(store):
    """A stored book."""
    return store.books.create(BookDraft(title="Middlemarch", file_path="/books/middlemarch.epub"))


@pytest.fixture
def make_annotation(store, book):
    """Factory for stored annotations of ``book``."""

    def make(text: str = "a highlight", cfi_range: str | None = None, book_id: str | None = None):
        draft = AnnotationDraft(cfi_range=cfi_range or f"epubcfi(/6/4!/{text})", text=text)
        return store.annotations.create(book_id or book.id, draft)

    return make
