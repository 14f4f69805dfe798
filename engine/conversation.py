"""Pathway graph container, edge construction and structural checks."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict

from .nodes import Node, NodeBuilder, NodeType

logger = logging.getLogger("voicepath.graph")


class PathwayInvariantError(ValueError):
    """Raised when a built graph violates a structural invariant."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class Edge(BaseModel):
    """A labeled transition between two nodes."""

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    target: str
    label: str = ""
    name: Optional[str] = None
    description: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label or "",
        }
        if self.name is not None or self.description is not None:
            payload["data"] = {"name": self.name or "", "description": self.description or ""}
        return payload


@dataclass
class PathwayGraph:
    """A complete pathway: ordered nodes and edges."""

    name: str
    description: str
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def node(self, node_id: str) -> Node:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(f"Node {node_id} not found")

    def find(self, name: str) -> Node:
        for node in self.nodes:
            if node.name == name:
                return node
        raise KeyError(f"Node named {name!r} not found")

    @property
    def start(self) -> Node:
        starts = [n for n in self.nodes if n.is_start]
        if len(starts) != 1:
            raise PathwayInvariantError([f"expected exactly one start node, found {len(starts)}"])
        return starts[0]

    def outgoing(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def incoming(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def of_type(self, node_type: NodeType) -> List[Node]:
        return [n for n in self.nodes if n.type is node_type]

    def reachable_from(self, node_id: str) -> Set[str]:
        """Return ids reachable from ``node_id`` by following edges forward."""

        adjacency: Dict[str, List[str]] = {}
        for edge in self.edges:
            adjacency.setdefault(edge.source, []).append(edge.target)
        seen = {node_id}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for target in adjacency.get(current, []):
                if target not in seen:
                    seen.add(target)
                    queue.append(target)
        return seen

    def traverse(self, labels: Iterable[str]) -> List[str]:
        """Follow edges from the start node by label and collect node names.

        Traversal stops at the first label with no matching outgoing edge.
        """

        names: List[str] = []
        node: Optional[Node] = self.start
        for label in labels:
            if node is None:
                break
            names.append(node.name)
            edge = next((e for e in self.outgoing(node.id) if e.label == label), None)
            node = self.node(edge.target) if edge else None
        if node is not None:
            names.append(node.name)
        return names

    def problems(self) -> List[str]:
        problems: List[str] = []
        ids = [n.id for n in self.nodes]
        seen: Set[str] = set()
        for node_id in ids:
            if node_id in seen:
                problems.append(f"duplicate node id {node_id}")
            seen.add(node_id)

        edge_ids: Set[str] = set()
        for edge in self.edges:
            if edge.id in edge_ids:
                problems.append(f"duplicate edge id {edge.id}")
            edge_ids.add(edge.id)
            for end in (edge.source, edge.target):
                if end not in seen:
                    problems.append(f"edge {edge.id} references unknown node {end}")

        starts = [n.id for n in self.nodes if n.is_start]
        if len(starts) != 1:
            problems.append(f"expected exactly one start node, found {len(starts)}")
        if not self.of_type(NodeType.END_CALL):
            problems.append("graph has no End Call node")

        for node in self.nodes:
            missing = node.missing_payload()
            if missing:
                problems.append(f"{node.type.value} node {node.id} is missing its {missing}")

        if len(starts) == 1:
            reachable = self.reachable_from(starts[0])
            for node in self.nodes:
                if node.id not in reachable and not node.is_global:
                    problems.append(f"node {node.id} is unreachable from the start node")
        return problems

    def validate(self) -> "PathwayGraph":
        problems = self.problems()
        if problems:
            raise PathwayInvariantError(problems)
        return self

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "nodes": [n.to_payload() for n in self.nodes],
            "edges": [e.to_payload() for e in self.edges],
        }


class PathwayBuilder:
    """Allocates node and edge ids for one graph and collects the results.

    Counters are per instance; two builders never share ids or records.
    """

    def __init__(self) -> None:
        self._nodes: List[Node] = []
        self._edges: List[Edge] = []
        self._node_ids: Set[str] = set()
        self._node_count = 0
        self._edge_count = 0

    def node(self, name: str, node_id: Optional[str] = None) -> NodeBuilder:
        if node_id is None:
            self._node_count += 1
            node_id = f"node_{self._node_count}"
        return NodeBuilder(node_id=node_id, name=name)

    def add(self, builder: NodeBuilder) -> str:
        node = builder.build()
        if node.id in self._node_ids:
            raise PathwayInvariantError([f"duplicate node id {node.id}"])
        self._node_ids.add(node.id)
        self._nodes.append(node)
        return node.id

    def connect(
        self,
        source: str,
        target: str,
        label: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        self._edge_count += 1
        edge_id = f"edge_{self._edge_count}"
        self._edges.append(
            Edge(id=edge_id, source=source, target=target, label=label or "", name=name, description=description)
        )
        return edge_id

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def build(self, name: str, description: str) -> PathwayGraph:
        graph = PathwayGraph(name=name, description=description, nodes=list(self._nodes), edges=list(self._edges))
        graph.validate()
        logger.debug("Built pathway %r: %d nodes, %d edges", name, len(graph.nodes), len(graph.edges))
        return graph


__all__ = ["Edge", "PathwayBuilder", "PathwayGraph", "PathwayInvariantError"]
