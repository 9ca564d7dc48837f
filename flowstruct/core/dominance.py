import functools
from collections import defaultdict
from typing import Collection, Dict, List, Optional, Set

from flowstruct.core.datastructures.cfg import ControlFlowGraph, NodeIndex

Dominators = Dict[NodeIndex, Set[NodeIndex]]


def find_dominators(
    entries: Set[NodeIndex],
    nodes: List[NodeIndex],
    preds_table: Dict[NodeIndex, Set[NodeIndex]],
    succs_table: Dict[NodeIndex, Set[NodeIndex]],
) -> Dominators:
    # See theoretical description in
    # http://en.wikipedia.org/wiki/Dominator_%28graph_theory%29
    # The algorithm implemented here uses a todo-list as described
    # in http://pages.cs.wisc.edu/~fischer/cs701.f08/finding.loops.html
    if not entries:
        raise RuntimeError(
            "no entry points: dominator algorithm cannot be seeded"
        )

    doms = {}
    for e in entries:
        doms[e] = {e}

    todo = []
    for n in nodes:
        if n not in entries:
            doms[n] = set(nodes)
            todo.append(n)

    while todo:
        n = todo.pop()
        if n in entries:
            continue
        new_doms = {n}
        preds = preds_table[n]
        if preds:
            new_doms |= functools.reduce(
                set.intersection, [doms[p] for p in preds]  # type: ignore
            )
        if new_doms != doms[n]:
            assert len(new_doms) < len(doms[n])
            doms[n] = new_doms
            todo.extend(succs_table[n])
    return doms


def dominators(cfg: ControlFlowGraph) -> Dominators:
    """Compute the dominators of every node of `cfg` from its entry.

    The result reflects the current snapshot of the graph only and has to
    be recomputed after every rewrite.

    Returns
    -------
    doms: Dict[NodeIndex, Set[NodeIndex]]
        Maps each node to the set of nodes dominating it, itself included.
    """
    assert cfg.entry is not None, "dominance needs an entry"
    preds_table = defaultdict(set)
    succs_table = defaultdict(set)
    for edge in cfg.edge_indices():
        src, dst = cfg.edge_endpoints(edge)
        preds_table[dst].add(src)
        succs_table[src].add(dst)
    return find_dominators(
        {cfg.entry}, cfg.node_indices(), preds_table, succs_table
    )


def region_dominators(
    cfg: ControlFlowGraph, header: NodeIndex, members: Collection[NodeIndex]
) -> Dominators:
    """Dominators inside a region seen as a DAG rooted at `header`.

    Only edges between members are considered, and edges entering the
    header (loop continuations) are ignored.
    """
    preds_table = defaultdict(set)
    succs_table = defaultdict(set)
    for node in members:
        for succ in cfg.successors(node):
            if succ in members and succ != header:
                preds_table[succ].add(node)
                succs_table[node].add(succ)
    return find_dominators(
        {header}, list(members), preds_table, succs_table
    )


def dominates_set(
    cfg: ControlFlowGraph,
    header: NodeIndex,
    doms: Optional[Dominators] = None,
) -> Set[NodeIndex]:
    """Returns the nodes dominated by `header`, `header` included."""
    if doms is None:
        doms = dominators(cfg)
    return {node for node, ds in doms.items() if header in ds}


def imm_doms(doms: Dominators) -> Dict[NodeIndex, NodeIndex]:
    """Reduce a dominator relation to immediate dominators.

    The roots of the relation have no entry in the result.
    """
    idoms = {k: v - {k} for k, v in doms.items()}
    changed = True
    while changed:
        changed = False
        for k, vs in idoms.items():
            nstart = len(vs)
            for v in list(vs):
                vs -= idoms[v]
            if len(vs) < nstart:
                changed = True
    # fix output
    out = {}
    for k, vs in idoms.items():
        if vs:
            [v] = vs
            out[k] = v
    return out
