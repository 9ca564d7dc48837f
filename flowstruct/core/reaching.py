from typing import Collection, Dict, List, Optional, Sequence

from flowstruct.core.datastructures.cfg import ControlFlowGraph, NodeIndex
from flowstruct.core.datastructures.conditions import (
    Condition,
    conjunction,
    disjunction,
)
from flowstruct.core.dominance import imm_doms, region_dominators

ReachingConditions = Dict[NodeIndex, Optional[Condition]]


def always_reaches(
    cfg: ControlFlowGraph,
    start: NodeIndex,
    target: NodeIndex,
    header: NodeIndex,
    members: Collection[NodeIndex],
) -> bool:
    """Checks whether every path leaving `start` reaches `target` before
    it leaves the region, ends in a sink, or returns to `header`.

    `target` may be a member of the region or its exit.
    """
    todo = [start]
    seen = {start}
    while todo:
        node = todo.pop()
        edges = cfg.out_edges(node)
        if not edges:
            return False
        for edge in edges:
            succ = cfg.edge_target(edge)
            if succ == target:
                continue
            if succ not in members or succ == header:
                return False
            if succ not in seen:
                seen.add(succ)
                todo.append(succ)
    return True


def reaching_conditions(
    cfg: ControlFlowGraph,
    header: NodeIndex,
    members: Collection[NodeIndex],
    order: Sequence[NodeIndex],
) -> ReachingConditions:
    """Compute the condition under which each region member is reached
    from the header.

    Parameters
    ----------
    cfg: ControlFlowGraph
        The graph holding the region.
    header: NodeIndex
        The only entry of the region; its reaching condition is "true".
    members: Collection[NodeIndex]
        The nodes of the region, the header included.
    order: Sequence[NodeIndex]
        The members in a topological order of the region DAG, header first.

    Returns
    -------
    rc: Dict[NodeIndex, Optional[Condition]]
        The reaching condition of every member, ``None`` meaning "true".

    Notes
    -----
    A node that is always reached once its immediate dominator is reached
    inherits the dominator's condition. Any other node gets the
    disjunction, over its in-region predecessors ``p``, of the reaching
    condition of ``p`` and the condition on the edge from ``p``.
    """
    assert order and order[0] == header
    idoms = imm_doms(region_dominators(cfg, header, members))
    rc: ReachingConditions = {header: None}
    for node in order[1:]:
        idom = idoms[node]
        if always_reaches(cfg, idom, node, header, members):
            rc[node] = rc[idom]
            continue
        terms: List[Optional[Condition]] = []
        for edge in cfg.in_edges(node):
            pred = cfg.edge_source(edge)
            if pred not in members:
                continue
            terms.append(conjunction(rc[pred], cfg.edge_condition(edge)))
        rc[node] = disjunction(*terms)
    return rc


def exit_condition(
    cfg: ControlFlowGraph,
    header: NodeIndex,
    members: Collection[NodeIndex],
    succ: NodeIndex,
    rc: ReachingConditions,
) -> Optional[Condition]:
    """The condition under which control leaves the region for `succ`.

    This is "true" when every path from the header ends up in `succ`.
    """
    if always_reaches(cfg, header, succ, header, members):
        return None
    terms: List[Optional[Condition]] = []
    for edge in cfg.in_edges(succ):
        pred = cfg.edge_source(edge)
        if pred in members:
            terms.append(conjunction(rc[pred], cfg.edge_condition(edge)))
    return disjunction(*terms)
