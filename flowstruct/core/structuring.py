from typing import Any, Iterable, Sequence, Tuple

from flowstruct.core.datastructures.ast_nodes import AstNode, describe
from flowstruct.core.datastructures.cfg import ControlFlowGraph
from flowstruct.core.datastructures.conditions import (
    Complements,
    find_complements,
)
from flowstruct.core.dominance import dominators
from flowstruct.core.errors import MalformedInput, StructuringStuck
from flowstruct.core.regions import (
    find_acyclic_region,
    find_loop_region,
    find_switch_region,
    reducible_loops,
)
from flowstruct.core.traversal import classify
from flowstruct.core.transformations import (
    collapse_acyclic,
    collapse_loop,
    collapse_switch,
)
from flowstruct.core.utils import _logger, _LogWrap


def branch_complements(cfg: ControlFlowGraph) -> Complements:
    """Pair up the labels on the two out-edges of every two-way branch."""
    pairs = []
    for node in cfg.node_indices():
        edges = cfg.out_edges(node)
        if len(edges) == 2:
            pairs.append(
                (cfg.edge_condition(edges[0]), cfg.edge_condition(edges[1]))
            )
    return find_complements(pairs)


def structure_pass(cfg: ControlFlowGraph, complements: Complements) -> bool:
    """Collapse the first structurable region found in post-order.

    Loop headers are only ever structured as loops. Any other node is
    tried as the head of a switch, then as the header of an acyclic
    region.

    Returns
    -------
    collapsed: bool
        Whether a region was collapsed.
    """
    backedges, postorder = classify(cfg)
    if len(postorder) != len(cfg):
        unreachable = sorted(
            set(cfg.node_indices()) - set(postorder), key=lambda n: n.index
        )
        raise MalformedInput(
            f"{len(unreachable)} nodes are unreachable from the entry",
            unreachable,
        )
    doms = dominators(cfg)
    loops = reducible_loops(cfg, backedges, doms)

    for node in postorder:
        if node in backedges:
            loop = find_loop_region(cfg, node, doms, backedges, postorder)
            if loop is not None:
                collapse_loop(cfg, loop, complements)
                return True
            continue
        switch = find_switch_region(cfg, node, doms, backedges, loops)
        if switch is not None:
            collapse_switch(cfg, switch)
            return True
        region = find_acyclic_region(cfg, node, doms, backedges, loops)
        if region is not None:
            collapse_acyclic(cfg, region)
            return True
    return False


def structure_whole(
    cfg: ControlFlowGraph, check_invariants: bool = True
) -> AstNode:
    """Reduce `cfg` to a single structured AstNode.

    The graph is rewritten in place, one region at a time, until a single
    node without edges is left. Its payload is the result.

    Parameters
    ----------
    cfg: ControlFlowGraph
        The graph to be structured. Every node must be reachable from its
        entry.
    check_invariants: bool
        Check the consistency of the graph after every collapse.

    Returns
    -------
    result: AstNode
        The structured program.

    Raises
    ------
    MalformedInput
        If the graph has no entry or some nodes are unreachable.
    StructuringStuck
        If a whole pass finds nothing to collapse while more than one node
        is left. The partially structured graph is attached to the error.
    """
    if cfg.entry is None:
        raise MalformedInput("the graph has no entry")
    complements = branch_complements(cfg)
    while True:
        if len(cfg) == 1 and cfg.edge_count == 0:
            return cfg[cfg.entry]
        progress = (len(cfg), cfg.edge_count)
        if not structure_pass(cfg, complements):
            _logger.info(
                "structuring stuck with %d nodes left: %s",
                len(cfg),
                _LogWrap(
                    lambda: ", ".join(
                        describe(cfg[n]) for n in cfg.node_indices()
                    )
                ),
            )
            raise StructuringStuck(
                f"no structurable region among {len(cfg)} nodes", cfg
            )
        assert (len(cfg), cfg.edge_count) < progress, "no progress"
        if check_invariants:
            cfg.check_invariants()


def structure(
    blocks: Sequence[Any],
    edges: Iterable[Tuple[int, int, Any]],
    entry: int,
) -> AstNode:
    """Structure a graph given as blocks, labelled edges and an entry.

    See also
    --------
    flowstruct.core.datastructures.cfg.ControlFlowGraph.from_parts
    """
    cfg, _ = ControlFlowGraph.from_parts(blocks, edges, entry)
    return structure_whole(cfg)
