import yaml
from typing import (
    Any,
    Collection,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Sized,
    Tuple,
)
from dataclasses import dataclass, field

from flowstruct.core.datastructures.ast_nodes import (
    AstNode,
    BasicBlock,
    Seq,
    ast_node_types,
)
from flowstruct.core.datastructures.conditions import (
    And,
    Condition,
    Not,
    Or,
    Simple,
    SwitchCase,
)
from flowstruct.core.datastructures.block_names import (
    BASIC,
    EMPTY,
    STRUCTURED,
    block_types,
)
from flowstruct.core.errors import MalformedInput


@dataclass(frozen=True)
class NodeIndex:
    """Generation checked handle of a node in a ControlFlowGraph.

    Attributes
    ----------
    index: int
        The arena slot of the node.
    generation: int
        The generation of the slot when the node was created. A handle
        whose generation no longer matches its slot is stale.
    """

    index: int
    generation: int = 0


@dataclass(frozen=True)
class EdgeIndex:
    """Generation checked handle of an edge in a ControlFlowGraph."""

    index: int
    generation: int = 0


@dataclass
class _NodeSlot:
    generation: int = 0
    occupied: bool = False
    payload: Optional[AstNode] = None
    outgoing: List[EdgeIndex] = field(default_factory=list)
    incoming: List[EdgeIndex] = field(default_factory=list)


@dataclass
class _EdgeSlot:
    generation: int = 0
    occupied: bool = False
    source: Optional[NodeIndex] = None
    target: Optional[NodeIndex] = None
    condition: Optional[Condition] = None


def _as_payload(value: Any) -> AstNode:
    if isinstance(value, ast_node_types):
        return value  # type: ignore
    return BasicBlock(value)


def _as_condition(label: Any) -> Optional[Condition]:
    if label is None:
        return None
    if isinstance(label, (Simple, And, Or, Not)):
        return label
    return Simple(label)


@dataclass(eq=False)
class ControlFlowGraph(Sized):
    """Mutable control flow graph with stable node and edge identities.

    Nodes and edges live in arenas addressed by generation checked
    indices. Removing a node or an edge only invalidates its own index,
    every other index stays valid, and a freed slot that is reused gets a
    new generation so that stale indices are detected instead of silently
    addressing the newcomer.

    Each node carries an AstNode payload, each edge an optional Condition
    where ``None`` stands for an unconditional transfer.

    Attributes
    ----------
    entry: NodeIndex, optional
        The distinguished entry node.
    """

    entry: Optional[NodeIndex] = None

    _nodes: List[_NodeSlot] = field(
        default_factory=list, init=False, repr=False
    )
    _edges: List[_EdgeSlot] = field(
        default_factory=list, init=False, repr=False
    )
    _free_nodes: List[int] = field(
        default_factory=list, init=False, repr=False
    )
    _free_edges: List[int] = field(
        default_factory=list, init=False, repr=False
    )
    _node_count: int = field(default=0, init=False, repr=False)
    _edge_count: int = field(default=0, init=False, repr=False)

    @staticmethod
    def from_parts(
        blocks: Sequence[Any],
        edges: Iterable[Tuple[int, int, Any]],
        entry: int,
    ) -> "Tuple[ControlFlowGraph, List[NodeIndex]]":
        """Create a graph from caller supplied parts.

        Parameters
        ----------
        blocks: Sequence
            The node payloads. A value that already is an AstNode is used
            as is, anything else is wrapped in a BasicBlock.
        edges: Iterable[Tuple[int, int, Any]]
            ``(source, target, label)`` triples indexing into `blocks`. A
            ``None`` label is an unconditional edge.
        entry: int
            The index of the entry block.

        Return
        ------
        cfg: ControlFlowGraph
            The new graph.
        nodes: List[NodeIndex]
            The node index of each block, in the order of `blocks`.
        """
        cfg = ControlFlowGraph()
        nodes = [cfg.add_node(_as_payload(block)) for block in blocks]
        dangling = []
        for source, target, label in edges:
            if not (0 <= source < len(nodes) and 0 <= target < len(nodes)):
                dangling.append((source, target))
                continue
            cfg.add_edge(nodes[source], nodes[target], _as_condition(label))
        if dangling:
            raise MalformedInput(
                f"edges with dangling endpoints: {dangling}", dangling
            )
        if not 0 <= entry < len(nodes):
            raise MalformedInput(f"entry {entry} is not a block", (entry,))
        cfg.entry = nodes[entry]
        return cfg, nodes

    def _node_slot(self, node: NodeIndex) -> _NodeSlot:
        if 0 <= node.index < len(self._nodes):
            slot = self._nodes[node.index]
            if slot.occupied and slot.generation == node.generation:
                return slot
        raise KeyError(node)

    def _edge_slot(self, edge: EdgeIndex) -> _EdgeSlot:
        if 0 <= edge.index < len(self._edges):
            slot = self._edges[edge.index]
            if slot.occupied and slot.generation == edge.generation:
                return slot
        raise KeyError(edge)

    def __getitem__(self, node: NodeIndex) -> AstNode:
        """Access the payload of a node.

        Parameters
        ----------
        node: NodeIndex
            The node whose payload is to be accessed.

        Returns
        -------
        payload: AstNode
            The requested payload.
        """
        payload = self._node_slot(node).payload
        assert payload is not None
        return payload

    def __contains__(self, node: object) -> bool:
        """Checks if the given index addresses a live node of this graph."""
        if not isinstance(node, NodeIndex):
            return False
        try:
            self._node_slot(node)
        except KeyError:
            return False
        return True

    def __len__(self) -> int:
        """
        Returns
        -------
        Number of nodes in the graph
        """
        return self._node_count

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def node_indices(self) -> List[NodeIndex]:
        """Returns the live nodes, ordered by arena slot."""
        return [
            NodeIndex(i, slot.generation)
            for i, slot in enumerate(self._nodes)
            if slot.occupied
        ]

    def edge_indices(self) -> List[EdgeIndex]:
        """Returns the live edges, ordered by arena slot."""
        return [
            EdgeIndex(i, slot.generation)
            for i, slot in enumerate(self._edges)
            if slot.occupied
        ]

    def add_node(self, payload: AstNode) -> NodeIndex:
        """Adds a node holding `payload` and returns its index."""
        if self._free_nodes:
            i = self._free_nodes.pop()
            slot = self._nodes[i]
        else:
            i = len(self._nodes)
            slot = _NodeSlot()
            self._nodes.append(slot)
        slot.occupied = True
        slot.payload = payload
        self._node_count += 1
        return NodeIndex(i, slot.generation)

    def remove_node(self, node: NodeIndex) -> AstNode:
        """Removes a node together with all of its incident edges.

        Parameters
        ----------
        node: NodeIndex
            The node to be removed.

        Returns
        -------
        payload: AstNode
            The payload the node was holding.
        """
        slot = self._node_slot(node)
        for edge in list(slot.outgoing) + list(slot.incoming):
            # self loops appear in both lists
            if self.has_edge(edge):
                self.remove_edge(edge)
        payload = slot.payload
        assert payload is not None
        slot.payload = None
        slot.occupied = False
        slot.generation += 1
        self._free_nodes.append(node.index)
        self._node_count -= 1
        if self.entry == node:
            self.entry = None
        return payload

    def replace_payload(self, node: NodeIndex, payload: AstNode) -> AstNode:
        """Swaps the payload of `node`, leaving all of its edges untouched.

        Returns
        -------
        payload: AstNode
            The previous payload.
        """
        slot = self._node_slot(node)
        old = slot.payload
        assert old is not None
        slot.payload = payload
        return old

    def has_edge(self, edge: EdgeIndex) -> bool:
        try:
            self._edge_slot(edge)
        except KeyError:
            return False
        return True

    def add_edge(
        self,
        source: NodeIndex,
        target: NodeIndex,
        condition: Optional[Condition] = None,
    ) -> EdgeIndex:
        """Adds an edge from `source` to `target` guarded by `condition`.

        Parameters
        ----------
        source: NodeIndex
            The node the edge leaves.
        target: NodeIndex
            The node the edge enters.
        condition: Condition, optional
            The branch condition, ``None`` for an unconditional edge.

        Returns
        -------
        edge: EdgeIndex
            The index of the new edge.
        """
        source_slot = self._node_slot(source)
        target_slot = self._node_slot(target)
        if self._free_edges:
            i = self._free_edges.pop()
            slot = self._edges[i]
        else:
            i = len(self._edges)
            slot = _EdgeSlot()
            self._edges.append(slot)
        slot.occupied = True
        slot.source = source
        slot.target = target
        slot.condition = condition
        edge = EdgeIndex(i, slot.generation)
        source_slot.outgoing.append(edge)
        target_slot.incoming.append(edge)
        self._edge_count += 1
        return edge

    def remove_edge(self, edge: EdgeIndex) -> Optional[Condition]:
        """Removes an edge and returns its condition."""
        slot = self._edge_slot(edge)
        assert slot.source is not None and slot.target is not None
        self._node_slot(slot.source).outgoing.remove(edge)
        self._node_slot(slot.target).incoming.remove(edge)
        condition = slot.condition
        slot.source = slot.target = slot.condition = None
        slot.occupied = False
        slot.generation += 1
        self._free_edges.append(edge.index)
        self._edge_count -= 1
        return condition

    def edge_endpoints(self, edge: EdgeIndex) -> Tuple[NodeIndex, NodeIndex]:
        slot = self._edge_slot(edge)
        assert slot.source is not None and slot.target is not None
        return slot.source, slot.target

    def edge_source(self, edge: EdgeIndex) -> NodeIndex:
        return self.edge_endpoints(edge)[0]

    def edge_target(self, edge: EdgeIndex) -> NodeIndex:
        return self.edge_endpoints(edge)[1]

    def edge_condition(self, edge: EdgeIndex) -> Optional[Condition]:
        return self._edge_slot(edge).condition

    def out_edges(self, node: NodeIndex) -> List[EdgeIndex]:
        """Returns the outgoing edges of `node` in insertion order."""
        return list(self._node_slot(node).outgoing)

    def in_edges(self, node: NodeIndex) -> List[EdgeIndex]:
        """Returns the incoming edges of `node` in insertion order."""
        return list(self._node_slot(node).incoming)

    def successors(self, node: NodeIndex) -> List[NodeIndex]:
        """Returns the distinct successors of `node` in edge order."""
        out: List[NodeIndex] = []
        for edge in self._node_slot(node).outgoing:
            target = self.edge_target(edge)
            if target not in out:
                out.append(target)
        return out

    def predecessors(self, node: NodeIndex) -> List[NodeIndex]:
        """Returns the distinct predecessors of `node` in edge order."""
        out: List[NodeIndex] = []
        for edge in self._node_slot(node).incoming:
            source = self.edge_source(edge)
            if source not in out:
                out.append(source)
        return out

    def successors_of_set(
        self, nodes: Collection[NodeIndex]
    ) -> Set[NodeIndex]:
        """Returns the union of the successors of each node in `nodes`."""
        ret: Set[NodeIndex] = set()
        for node in nodes:
            ret.update(self.successors(node))
        return ret

    def check_invariants(self) -> None:
        """Assert the structural consistency of the graph.

        Every edge must connect two live nodes and appear in their adjacency
        lists, and no node may be left without incident edges unless it is
        the only node of the graph.
        """
        live_edges = set(self.edge_indices())
        assert len(live_edges) == self._edge_count
        for edge in live_edges:
            source, target = self.edge_endpoints(edge)
            assert edge in self._node_slot(source).outgoing
            assert edge in self._node_slot(target).incoming
        nodes = self.node_indices()
        assert len(nodes) == self._node_count
        for node in nodes:
            slot = self._node_slot(node)
            for edge in slot.outgoing + slot.incoming:
                assert edge in live_edges, f"dangling {edge} at {node}"
            if len(nodes) > 1:
                assert (
                    slot.outgoing or slot.incoming
                ), f"{node} has no incident edges"
        if self.entry is not None:
            assert self.entry in self

    def structure_whole(self) -> AstNode:
        """Reduce this graph to a single structured AstNode.

        See also
        --------
        flowstruct.core.structuring.structure_whole
        """
        # Avoid cyclic imports
        from flowstruct.core.structuring import structure_whole

        return structure_whole(self)

    def view(self, name: Optional[str] = None) -> None:
        """View the current graph as an external PDF file.

        This method internally creates a CFGRenderer corresponding to the
        current state of the graph and calls its view method to view the
        graph as a graphviz generated external PDF file.

        Parameters
        ----------
        name: str
            Name to be given to the external graphviz generated PDF file.
        """
        from flowstruct.rendering.rendering import CFGRenderer

        CFGRenderer(self).view(name)

    def render(self) -> None:
        """Alias for view()."""
        self.view()

    @staticmethod
    def from_yaml(
        yaml_string: str,
    ) -> "Tuple[ControlFlowGraph, Dict[str, NodeIndex]]":
        """Static method that creates a graph from a YAML representation.

        Internally forwards the `yaml_string` to `CFGIO.from_yaml()`.

        See also
        --------
        flowstruct.core.datastructures.cfg.CFGIO.from_yaml()
        """
        return CFGIO.from_yaml(yaml_string)

    @staticmethod
    def from_dict(
        graph_dict: Dict[str, Any],
    ) -> "Tuple[ControlFlowGraph, Dict[str, NodeIndex]]":
        """Static method that creates a graph from a dictionary
        representation.

        See also
        --------
        flowstruct.core.datastructures.cfg.CFGIO.from_dict()
        """
        return CFGIO.from_dict(graph_dict)

    def to_yaml(self) -> str:
        """Converts the graph to a YAML string representation.

        See also
        --------
        flowstruct.core.datastructures.cfg.CFGIO.to_yaml()
        """
        return CFGIO.to_yaml(self)

    def to_dict(self) -> Dict[str, Any]:
        """Converts the graph to a dictionary representation.

        See also
        --------
        flowstruct.core.datastructures.cfg.CFGIO.to_dict()
        """
        return CFGIO.to_dict(self)


class CFGIO:
    """Helper class for `ControlFlowGraph` conversion to and from YAML and
    dictionaries.

    The dictionary form is::

        entry: 'H'
        blocks:
            'H': {type: basic}
            'E': {type: empty}
        edges:
            'H': ['A', 'B']
        conditions:
            'H': ['c', '!c']
            'S': [{switch: x, values: [1, 2]}, {switch: x}]

    `conditions` is optional and parallel to `edges`, a missing or null
    entry is an unconditional edge. A ``switch`` mapping without ``values``
    is the default edge of a dispatch. Conditions built while structuring
    are written as nested ``and``, ``or`` and ``not`` mappings.
    """

    @staticmethod
    def from_yaml(
        yaml_string: str,
    ) -> "Tuple[ControlFlowGraph, Dict[str, NodeIndex]]":
        """Static helper method that creates a graph from a YAML
        representation.

        Parameters
        ----------
        yaml_string: str
            The input YAML string from which the graph is to be constructed.

        Return
        ------
        cfg: ControlFlowGraph
            The corresponding graph.
        block_dict: Dict[str, NodeIndex]
            The node index of every block name in the YAML string.
        """
        data = yaml.safe_load(yaml_string)
        return CFGIO.from_dict(data)

    @staticmethod
    def from_dict(
        graph_dict: Dict[str, Any],
    ) -> "Tuple[ControlFlowGraph, Dict[str, NodeIndex]]":
        """Static helper method that creates a graph from a dictionary
        representation.

        Parameters
        ----------
        graph_dict: dict
            The input dictionary from which the graph is to be constructed.

        Return
        ------
        cfg: ControlFlowGraph
            The corresponding graph.
        block_dict: Dict[str, NodeIndex]
            The node index of every block name in the dictionary.
        """
        blocks = graph_dict["blocks"]
        edges = graph_dict.get("edges") or {}
        conditions = graph_dict.get("conditions") or {}

        cfg = ControlFlowGraph()
        block_dict: Dict[str, NodeIndex] = {}
        for name, block in blocks.items():
            block = block or {}
            block_type = block.get("type", BASIC)
            if block_type not in block_types:
                raise MalformedInput(
                    f"unknown block type {block_type!r} of {name!r}", (name,)
                )
            if block_type == EMPTY:
                payload: AstNode = Seq(())
            else:
                payload = BasicBlock(block.get("label", name))
            block_dict[name] = cfg.add_node(payload)

        dangling = []
        for name, targets in edges.items():
            targets = targets or []
            labels = conditions.get(name) or [None] * len(targets)
            if name not in block_dict:
                dangling.append(name)
                continue
            if len(labels) != len(targets):
                raise MalformedInput(
                    f"{name!r} has {len(targets)} edges but "
                    f"{len(labels)} conditions",
                    (name,),
                )
            for target, label in zip(targets, labels):
                if target not in block_dict:
                    dangling.append(target)
                    continue
                cfg.add_edge(
                    block_dict[name],
                    block_dict[target],
                    CFGIO.load_condition(label),
                )
        if dangling:
            raise MalformedInput(
                f"edges with dangling endpoints: {dangling}", dangling
            )

        entry = graph_dict.get("entry")
        if entry is None:
            entry = CFGIO.find_head(cfg, block_dict)
        if entry not in block_dict:
            raise MalformedInput(f"entry {entry!r} is not a block", (entry,))
        cfg.entry = block_dict[entry]
        return cfg, block_dict

    @staticmethod
    def find_head(
        cfg: ControlFlowGraph, block_dict: Dict[str, NodeIndex]
    ) -> str:
        """Finds the only block that no other block is pointing to."""
        heads = [
            name
            for name, node in block_dict.items()
            if not cfg.in_edges(node)
        ]
        if len(heads) != 1:
            raise MalformedInput(
                f"no entry given and {len(heads)} candidate heads", heads
            )
        return heads[0]

    @staticmethod
    def load_condition(raw: Any) -> Optional[Condition]:
        """Read an edge condition back from its dictionary form.

        Composite conditions are single key mappings, ``{and: [...]}``,
        ``{or: [...]}`` and ``{not: ...}``; anything else that is not a
        switch case is an opaque label.
        """
        if raw is None:
            return None
        if isinstance(raw, dict) and len(raw) == 1:
            if "and" in raw:
                return And(CFGIO._load_operands(raw["and"]))
            if "or" in raw:
                return Or(CFGIO._load_operands(raw["or"]))
            if "not" in raw:
                (operand,) = CFGIO._load_operands([raw["not"]])
                return Not(operand)
        if isinstance(raw, dict) and "switch" in raw:
            values = raw.get("values")
            return Simple(
                SwitchCase(
                    raw["switch"],
                    None if values is None else frozenset(values),
                )
            )
        return Simple(raw)

    @staticmethod
    def _load_operands(raw: List[Any]) -> Tuple[Condition, ...]:
        operands = []
        for item in raw:
            cond = CFGIO.load_condition(item)
            if cond is None:
                raise MalformedInput(f"empty operand in condition {raw!r}")
            operands.append(cond)
        if not operands:
            raise MalformedInput(f"condition without operands: {raw!r}")
        return tuple(operands)

    @staticmethod
    def dump_condition(cond: Optional[Condition]) -> Any:
        if cond is None:
            return None
        if isinstance(cond, Simple):
            if isinstance(cond.label, SwitchCase):
                case: Dict[str, Any] = {"switch": cond.label.variable}
                if cond.label.values is not None:
                    case["values"] = sorted(cond.label.values, key=str)
                return case
            return cond.label
        if isinstance(cond, And):
            return {"and": [CFGIO.dump_condition(c) for c in cond.operands]}
        if isinstance(cond, Or):
            return {"or": [CFGIO.dump_condition(c) for c in cond.operands]}
        return {"not": CFGIO.dump_condition(cond.operand)}

    @staticmethod
    def node_names(cfg: ControlFlowGraph) -> Dict[NodeIndex, str]:
        """Name every node: basic blocks by label, everything else by its
        kind and arena slot."""
        labels: Dict[Hashable, int] = {}
        for node in cfg.node_indices():
            payload = cfg[node]
            if isinstance(payload, BasicBlock):
                labels[payload.label] = labels.get(payload.label, 0) + 1
        names = {}
        for node in cfg.node_indices():
            payload = cfg[node]
            if isinstance(payload, BasicBlock):
                if labels[payload.label] == 1:
                    names[node] = str(payload.label)
                else:
                    names[node] = f"{payload.label}_{node.index}"
            elif payload == Seq(()):
                names[node] = f"{EMPTY}_{node.index}"
            else:
                names[node] = f"{STRUCTURED}_{node.index}"
        return names

    @staticmethod
    def to_dict(cfg: ControlFlowGraph) -> Dict[str, Any]:
        """Helper method to convert the graph to a dictionary
        representation.

        Parameters
        ----------
        cfg: ControlFlowGraph
            The graph to be converted.

        Returns
        -------
        graph_dict: Dict[str, Any]
            A dictionary representing the graph.
        """
        names = CFGIO.node_names(cfg)
        blocks: Dict[str, Any] = {}
        edges: Dict[str, List[str]] = {}
        conditions: Dict[str, List[Any]] = {}
        for node in cfg.node_indices():
            name = names[node]
            payload = cfg[node]
            if isinstance(payload, BasicBlock):
                blocks[name] = {"type": BASIC}
                if str(payload.label) != name:
                    blocks[name]["label"] = payload.label
            elif payload == Seq(()):
                blocks[name] = {"type": EMPTY}
            else:
                blocks[name] = {"type": STRUCTURED}
            out = cfg.out_edges(node)
            edges[name] = [names[cfg.edge_target(e)] for e in out]
            labels = [CFGIO.dump_condition(cfg.edge_condition(e)) for e in out]
            if any(label is not None for label in labels):
                conditions[name] = labels

        graph_dict: Dict[str, Any] = {
            "entry": None if cfg.entry is None else names[cfg.entry],
            "blocks": blocks,
            "edges": edges,
        }
        if conditions:
            graph_dict["conditions"] = conditions
        return graph_dict

    @staticmethod
    def to_yaml(cfg: ControlFlowGraph) -> str:
        """Helper method to convert the graph to a YAML string
        representation.

        Parameters
        ----------
        cfg: ControlFlowGraph
            The graph to be converted.

        Returns
        -------
        yaml: str
            A YAML string representing the graph.
        """
        return yaml.safe_dump(
            CFGIO.to_dict(cfg), sort_keys=False, default_flow_style=None
        )
