"""Canvas session: keeps the notes canvas of one book in step with the store.

UI events arrive here as plain method calls. Each one updates the in-memory
projection first and then persists:

* card geometry goes through one debounced writer shared by every card of
  the book, which merges pending updates per annotation and calls
  ``CardRepository.batch_update``;
* single edge changes (connect, update, disconnect) are immediate per-item
  repository calls;
* full edge replacement goes through a second debounced writer that calls
  ``ConnectionRepository.batch_replace``.

Storage failures are logged and never raised out of the UI handlers; where a
change could not be saved the previous local state is restored.
"""

from dataclasses import replace

from common.env import env
from common.logger import get_logger
from store.db import DatabaseError
from store.models import Annotation, Card, CardDraft, ConnectionDraft, Direction, Position
from store.store import Store

from .debounce import DebouncedWriter, SessionToken
from .projection import Edge, Node, from_node_key, staggered_position, to_node_key

logger = get_logger(__name__)


def merge_card_updates(
    pending: dict[str, CardDraft], update: dict[str, CardDraft]
) -> dict[str, CardDraft]:
    """Fold card updates keyed by annotation id; the latest per card wins."""
    return {**pending, **update}


class CanvasSession:
    """Nodes and edges of one book's notes canvas."""

    def __init__(
        self,
        store: Store,
        book_id: str,
        token: SessionToken | None = None,
        card_wait: float | None = None,
        card_max_wait: float | None = None,
        connection_wait: float | None = None,
        connection_max_wait: float | None = None,
    ):
        """Initialize the session.

        Args:
            store: Open store
            book_id: Book whose canvas this is
            token: Cancellation token of the open book
            card_wait: Card save debounce (default MARGINALIA_CARD_SAVE_DELAY)
            card_max_wait: Card save ceiling (default MARGINALIA_CARD_SAVE_MAX_WAIT)
            connection_wait: Edge replacement debounce
                (default MARGINALIA_CONNECTION_SAVE_DELAY)
            connection_max_wait: Edge replacement ceiling
                (default MARGINALIA_CONNECTION_SAVE_MAX_WAIT)
        """
        self.store = store
        self.book_id = book_id
        self.token = token or SessionToken(book_id)
        self.nodes: dict[str, Node] = {}
        self.edges: dict[str, Edge] = {}
        self.connections_loaded = False

        self._card_writer: DebouncedWriter[dict[str, CardDraft]] = DebouncedWriter(
            self._write_cards,
            wait=env.card_save_delay() if card_wait is None else card_wait,
            max_wait=env.card_save_max_wait() if card_max_wait is None else card_max_wait,
            token=self.token,
            merge=merge_card_updates,
            name=f"cards[{book_id}]",
        )
        self._connection_writer: DebouncedWriter[list[ConnectionDraft]] = DebouncedWriter(
            self._write_connections,
            wait=env.connection_save_delay() if connection_wait is None else connection_wait,
            max_wait=(
                env.connection_save_max_wait()
                if connection_max_wait is None
                else connection_max_wait
            ),
            token=self.token,
            name=f"connections[{book_id}]",
        )

    # Loading and reconciliation

    def load(self) -> None:
        """Build the projection from the store.

        Annotations without a card get one at their staggered default slot,
        saved right away so every node key is a real card id. Stored
        connections touching a card that is not on the canvas are left out.

        Raises:
            DatabaseError: If the store cannot be read
        """
        annotations = self.store.annotations.get_by_book_id(self.book_id)
        self.nodes = self._project(annotations, {})

        self.edges = {}
        for connection in self.store.connections.get_by_book_id(self.book_id):
            edge = Edge.from_connection(connection)
            if edge.source in self.nodes and edge.target in self.nodes:
                self.edges[edge.id] = edge
            else:
                logger.debug("Leaving out edge %s with an endpoint off the canvas", edge.id)
        self.connections_loaded = True

        logger.debug(
            "Loaded canvas of %s: %d node(s), %d edge(s)",
            self.book_id,
            len(self.nodes),
            len(self.edges),
        )

    def _materialize(self, annotation: Annotation, index: int) -> Card | None:
        try:
            return self.store.cards.create(
                annotation.id,
                CardDraft(annotation_id=annotation.id, position=staggered_position(index)),
            )
        except DatabaseError as e:
            logger.warning("Could not place annotation %s on the canvas: %s", annotation.id, e)
            return None

    def _project(
        self, annotations: list[Annotation], existing: dict[str, Node]
    ) -> dict[str, Node]:
        """Nodes for ``annotations`` in display order, reusing ``existing`` by annotation id."""
        missing = [a.id for a in annotations if a.id not in existing]
        cards = {
            card.annotation_id: card for card in self.store.cards.get_by_annotation_ids(missing)
        }

        nodes: dict[str, Node] = {}
        for index, annotation in enumerate(annotations):
            node = existing.get(annotation.id)
            if node is not None:
                node.annotation = annotation
                nodes[node.key] = node
                continue

            card = cards.get(annotation.id) or self._materialize(annotation, index)
            if card is None:
                continue
            node = Node.from_card(card, annotation, index)
            nodes[node.key] = node
        return nodes

    def sync_annotations(self, annotations: list[Annotation]) -> list[Node]:
        """Reconcile the nodes with the current annotation list of the book.

        New annotations get a node (and a card, if they have none yet).
        Nodes of annotations that are gone are removed together with their
        edges; the store already cascaded the rows.

        Returns:
            Nodes that were added
        """
        live = {annotation.id for annotation in annotations}
        for node in list(self.nodes.values()):
            if node.annotation_id not in live:
                self._drop_node(node.key)

        existing = {node.annotation_id: node for node in self.nodes.values()}
        try:
            self.nodes = self._project(annotations, existing)
        except DatabaseError as e:
            logger.warning("Could not load cards of new annotations: %s", e)
            return []
        return [node for node in self.nodes.values() if node.annotation_id not in existing]

    def _drop_node(self, key: str) -> None:
        self.nodes.pop(key, None)
        for edge_id in [edge.id for edge in self.edges.values() if edge.touches(key)]:
            del self.edges[edge_id]

    # Lookups

    def node(self, key: str) -> Node:
        """Live node for ``key``.

        Raises:
            ValueError: If ``key`` is not a card node key
            KeyError: If no card with that key is on the canvas
        """
        from_node_key(key)
        try:
            return self.nodes[key]
        except KeyError:
            raise KeyError(f"No card {key} on the canvas of {self.book_id}") from None

    def node_for_annotation(self, annotation_id: str) -> Node | None:
        for node in self.nodes.values():
            if node.annotation_id == annotation_id:
                return node
        return None

    def overlapping_nodes(self, key: str) -> list[Node]:
        """Nodes whose card intersects the card of ``key``."""
        node = self.node(key)
        return [
            other for other in self.nodes.values() if other.key != key and node.overlaps(other)
        ]

    # Card geometry

    def _schedule_card(self, node: Node) -> None:
        draft = CardDraft(
            annotation_id=node.annotation_id,
            position=node.position,
            width=node.width,
            height=node.height,
            id=node.card_id,
        )
        self._card_writer.schedule({node.annotation_id: draft})

    def move_node(self, key: str, position: Position) -> Node:
        node = self.node(key)
        node.position = position
        self._schedule_card(node)
        return node

    def resize_node(self, key: str, width: float, height: float) -> Node:
        if width <= 0 or height <= 0:
            raise ValueError(f"Card size must be positive, got {width}x{height}")
        node = self.node(key)
        node.width = width
        node.height = height
        self._schedule_card(node)
        return node

    def _write_cards(self, updates: dict[str, CardDraft]) -> None:
        live = {node.annotation_id for node in self.nodes.values()}
        drafts = [draft for annotation_id, draft in updates.items() if annotation_id in live]
        if not drafts:
            return
        result = self.store.cards.batch_update(drafts)
        for message in result.warnings:
            logger.warning("Card not saved: %s", message)

        failed = {failure.id for failure in result.failed}
        saved = [draft for draft in drafts if draft.annotation_id not in failed]
        for draft, card_id in zip(saved, result.succeeded):
            self._rekey(draft.annotation_id, card_id)

    def _rekey(self, annotation_id: str, card_id: str) -> None:
        """Point the node of ``annotation_id`` at ``card_id`` if its card was replaced."""
        node = self.node_for_annotation(annotation_id)
        if node is None or node.card_id == card_id:
            return

        old_key, new_key = node.key, to_node_key(card_id)
        logger.warning(
            "Card of annotation %s was recreated as %s; re-keying its node", annotation_id, card_id
        )
        # The store removed the old card's connections together with it
        for edge_id in [edge.id for edge in self.edges.values() if edge.touches(old_key)]:
            del self.edges[edge_id]
        node.card_id = card_id
        node.key = new_key
        self.nodes = {(new_key if key == old_key else key): n for key, n in self.nodes.items()}

    # Edges

    def _flush_replacement(self) -> None:
        # A pending full replacement would undo the single edge change
        if self._connection_writer.pending:
            self._connection_writer.flush()

    def _find_edge(self, source: str, target: str) -> Edge | None:
        for edge in self.edges.values():
            if edge.source == source and edge.target == target:
                return edge
        return None

    def connect(
        self,
        source: str,
        target: str,
        direction: Direction | str = Direction.NONE,
        description: str | None = None,
    ) -> Edge | None:
        """Draw an edge from ``source`` to ``target``.

        An existing edge between the same ordered pair is returned as is.

        Returns:
            The edge, or None if it could not be saved

        Raises:
            KeyError: If an endpoint is not a card on the canvas
            ValueError: If both endpoints are the same card
        """
        from_node = self.node(source)
        to_node = self.node(target)
        if from_node.key == to_node.key:
            raise ValueError(f"Cannot connect {source} to itself")

        existing = self._find_edge(from_node.key, to_node.key)
        if existing:
            return existing

        self._flush_replacement()
        try:
            connection = self.store.connections.create(
                ConnectionDraft(
                    book_id=self.book_id,
                    from_card_id=from_node.card_id,
                    to_card_id=to_node.card_id,
                    direction=Direction.parse(direction),
                    description=description,
                )
            )
        except DatabaseError as e:
            logger.warning("Could not connect %s to %s: %s", source, target, e)
            return None

        edge = Edge.from_connection(connection)
        self.edges[edge.id] = edge
        return edge

    def drop_node(
        self,
        key: str,
        position: Position | None = None,
        overlapping: list[str] | None = None,
    ) -> list[Edge]:
        """Finish a drag: save the position and connect what the card landed on.

        Every overlapping node gets an edge pointing at the dropped node.

        Args:
            key: Node that was dropped
            position: Final position, if it still has to be applied
            overlapping: Keys the UI reports as overlapping; computed from the
                projection when omitted
        """
        if position is not None:
            self.move_node(key, position)
        if overlapping is None:
            overlapping = [node.key for node in self.overlapping_nodes(key)]

        edges = []
        for other in overlapping:
            if other == key:
                continue
            edge = self.connect(other, key)
            if edge is not None:
                edges.append(edge)
        return edges

    def update_edge(
        self,
        edge_id: str,
        direction: Direction | str | None = None,
        description: str | None = None,
    ) -> bool:
        """Change an edge's direction and/or label.

        Returns:
            False if nothing changed; the local edge is then as it was
        """
        edge = self.edges.get(edge_id)
        if edge is None:
            logger.warning("No edge %s on the canvas of %s", edge_id, self.book_id)
            return False
        if direction is None and description is None:
            return False

        snapshot = replace(edge)
        if direction is not None:
            edge.direction = Direction.parse(direction)
        if description is not None:
            edge.description = description

        self._flush_replacement()
        try:
            updated = self.store.connections.update(
                edge_id,
                direction=edge.direction if direction is not None else None,
                description=description,
            )
        except DatabaseError as e:
            logger.warning("Could not update edge %s: %s", edge_id, e)
            updated = False
        if not updated:
            logger.warning("Edge %s not saved, restoring it", edge_id)
            self.edges[edge_id] = snapshot
        return updated

    def disconnect(self, edge_id: str) -> bool:
        """Remove an edge.

        Returns:
            False if the edge is unknown or could not be deleted
        """
        edge = self.edges.pop(edge_id, None)
        if edge is None:
            return False

        self._flush_replacement()
        try:
            deleted = self.store.connections.delete(edge_id)
        except DatabaseError as e:
            logger.warning("Could not delete edge %s, restoring it: %s", edge_id, e)
            self.edges[edge_id] = edge
            return False
        if not deleted:
            logger.debug("Edge %s was already gone from the store", edge_id)
        return deleted

    def replace_edges(self, edges: list[Edge], allow_empty: bool = False) -> bool:
        """Replace every edge of the book, saved through the debounced writer.

        Ignored until the stored connections have been loaded. Replacing a
        non-empty edge set with nothing also needs ``allow_empty=True``.
        Edges with an endpoint off the canvas, self-loops and repeated
        pairs are left out.

        Returns:
            True if the replacement was accepted
        """
        if not self.connections_loaded:
            logger.warning("Ignoring edge replacement for %s before load", self.book_id)
            return False
        if not edges and self.edges and not allow_empty:
            logger.warning(
                "Ignoring empty edge replacement over %d edge(s) of %s",
                len(self.edges),
                self.book_id,
            )
            return False

        kept: dict[str, Edge] = {}
        pairs: set[tuple[str, str]] = set()
        for edge in edges:
            pair = (edge.source, edge.target)
            if edge.source not in self.nodes or edge.target not in self.nodes:
                logger.warning("Dropping edge %s with an endpoint off the canvas", edge.id)
                continue
            if edge.source == edge.target or pair in pairs:
                logger.warning("Dropping self-loop or repeated edge %s", edge.id)
                continue
            pairs.add(pair)
            kept[edge.id] = edge

        self.edges = kept
        self._connection_writer.schedule(
            [
                ConnectionDraft(
                    book_id=self.book_id,
                    from_card_id=from_node_key(edge.source),
                    to_card_id=from_node_key(edge.target),
                    direction=edge.direction,
                    description=edge.description,
                    id=edge.id,
                )
                for edge in kept.values()
            ]
        )
        return True

    def _write_connections(self, drafts: list[ConnectionDraft]) -> None:
        result = self.store.connections.batch_replace(self.book_id, drafts)
        for message in result.warnings:
            logger.warning("Connection not saved: %s", message)

    # Annotations

    def delete_annotation(self, annotation_id: str) -> bool:
        """Delete an annotation; its card and edges go with it.

        Returns:
            False if the annotation was not deleted
        """
        self._flush_replacement()
        try:
            deleted = self.store.annotations.delete(annotation_id)
        except DatabaseError as e:
            logger.warning("Could not delete annotation %s, keeping it: %s", annotation_id, e)
            return False

        node = self.node_for_annotation(annotation_id)
        if node is not None:
            self._drop_node(node.key)
        return deleted

    # Lifecycle

    def flush(self) -> None:
        """Write pending card and edge changes now."""
        self._card_writer.flush()
        self._connection_writer.flush()

    def close(self) -> None:
        """Flush, then cancel the session so late timers do nothing."""
        self.flush()
        self.token.cancel()
        self._card_writer.cancel()
        self._connection_writer.cancel()
