# zyra/client/graph_store.py
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Union

from zyra.models.graph import GraphEdge, GraphNode

logger = logging.getLogger(__name__)

NodesUpdate = Union[Sequence[GraphNode], Callable[[tuple[GraphNode, ...]], Sequence[GraphNode]]]
EdgesUpdate = Union[Sequence[GraphEdge], Callable[[tuple[GraphEdge, ...]], Sequence[GraphEdge]]]
Listener = Callable[["GraphState", "GraphState"], None]


@dataclass(frozen=True)
class GraphState:
    canvas_id: str = ""
    nodes: tuple[GraphNode, ...] = field(default_factory=tuple)
    edges: tuple[GraphEdge, ...] = field(default_factory=tuple)

    def node(self, node_id: str) -> GraphNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def nodes_payload(self) -> list[dict[str, Any]]:
        return [n.model_dump(mode="json", exclude_none=True) for n in self.nodes]

    def edges_payload(self) -> list[dict[str, Any]]:
        return [e.model_dump(mode="json", exclude_none=True) for e in self.edges]


def set_canvas_id(state: GraphState, canvas_id: str) -> GraphState:
    return replace(state, canvas_id=canvas_id)


def set_nodes(state: GraphState, update: NodesUpdate) -> GraphState:
    nodes = update(state.nodes) if callable(update) else update
    return replace(state, nodes=tuple(nodes))


def set_edges(state: GraphState, update: EdgesUpdate) -> GraphState:
    edges = update(state.edges) if callable(update) else update
    return replace(state, edges=tuple(edges))


def delete_node(state: GraphState, node_id: str) -> GraphState:
    """Removes the node and every edge that has it as source or target."""
    return replace(
        state,
        nodes=tuple(n for n in state.nodes if n.id != node_id),
        edges=tuple(e for e in state.edges if e.source != node_id and e.target != node_id),
    )


def delete_edge(state: GraphState, edge_id: str) -> GraphState:
    return replace(state, edges=tuple(e for e in state.edges if e.id != edge_id))


def reset(state: GraphState) -> GraphState:
    return GraphState()


class GraphStore:
    def __init__(self, state: GraphState | None = None):
        self._state = state or GraphState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> GraphState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, reducer: Callable[..., GraphState], *args: Any) -> GraphState:
        previous = self._state
        self._state = reducer(previous, *args)
        if self._state != previous:
            for listener in list(self._listeners):
                listener(previous, self._state)
        return self._state

    def set_canvas_id(self, canvas_id: str) -> GraphState:
        return self.dispatch(set_canvas_id, canvas_id)

    def set_nodes(self, update: NodesUpdate) -> GraphState:
        return self.dispatch(set_nodes, update)

    def set_edges(self, update: EdgesUpdate) -> GraphState:
        return self.dispatch(set_edges, update)

    def delete_node(self, node_id: str) -> GraphState:
        return self.dispatch(delete_node, node_id)

    def delete_edge(self, edge_id: str) -> GraphState:
        return self.dispatch(delete_edge, edge_id)

    def reset(self) -> GraphState:
        return self.dispatch(reset)
