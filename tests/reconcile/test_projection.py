"""Tests for node keys and the node/edge projection."""

import pytest

from reconcile.projection import Edge, Node, from_node_key, staggered_position, to_node_key
from store.models import Annotation, Card, Direction, NoteConnection, Position


def annotation(annotation_id="a1"):
    return Annotation(id=annotation_id, book_id="b1", cfi_range="c", text="t")


def node_at(x, y, width=200, height=120, key="card-x"):
    return Node(
        key=key,
        card_id=key[len("card-") :],
        annotation_id="a",
        annotation=annotation(),
        position=Position(x, y),
        width=width,
        height=height,
    )


class TestNodeKeys:
    """Tests for card node keys."""

    def test_key_round_trip(self):
        assert to_node_key("c1") == "card-c1"
        assert from_node_key("card-c1") == "c1"

    def test_card_id_with_separator(self):
        assert from_node_key("card-1700000000000_abc") == "1700000000000_abc"

    @pytest.mark.parametrize("key", ["c1", "note-c1", "card-", ""])
    def test_invalid_keys(self, key):
        with pytest.raises(ValueError):
            from_node_key(key)


class TestStaggeredPosition:
    """Tests for default card placement."""

    def test_first_slots(self):
        assert staggered_position(0) == Position(50, 50)
        assert staggered_position(1) == Position(250, 200)
        assert staggered_position(3) == Position(650, 500)


class TestNode:
    """Tests for projecting cards into nodes."""

    def test_from_card(self):
        card = Card(id="c1", annotation_id="a1", position=Position(10, 20), width=300, height=90)

        node = Node.from_card(card, annotation(), index=4)

        assert node.key == "card-c1"
        assert node.position == Position(10, 20)
        assert (node.width, node.height) == (300, 90)

    def test_from_card_without_geometry(self):
        """Test that a card with no stored placement uses its staggered slot."""
        node = Node.from_card(Card(id="c1", annotation_id="a1"), annotation(), index=2)

        assert node.position == Position(450, 350)
        assert (node.width, node.height) == (200, 120)

    def test_overlap(self):
        assert node_at(0, 0).overlaps(node_at(150, 100))
        assert not node_at(0, 0).overlaps(node_at(300, 0))

    def test_touching_edges_do_not_overlap(self):
        assert not node_at(0, 0).overlaps(node_at(200, 0))
        assert not node_at(0, 0).overlaps(node_at(0, 120))


class TestEdge:
    """Tests for projecting connections into edges."""

    def test_from_connection(self):
        connection = NoteConnection(
            id="e1",
            book_id="b1",
            from_card_id="c1",
            to_card_id="c2",
            direction=Direction.FORWARD,
            description="leads to",
        )

        edge = Edge.from_connection(connection)

        assert (edge.source, edge.target) == ("card-c1", "card-c2")
        assert edge.direction is Direction.FORWARD
        assert edge.touches("card-c2")
        assert not edge.touches("card-c3")
