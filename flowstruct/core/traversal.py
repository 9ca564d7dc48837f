from collections import defaultdict
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from flowstruct.core.datastructures.cfg import (
    ControlFlowGraph,
    EdgeIndex,
    NodeIndex,
)

EdgeFilter = Callable[[EdgeIndex], bool]


def classify(
    cfg: ControlFlowGraph,
) -> Tuple[Dict[NodeIndex, List[EdgeIndex]], List[NodeIndex]]:
    """Depth first walk from the entry of `cfg` that records back edges.

    An edge is a back edge when its target is discovered but not yet
    finished, i.e. it is still on the current traversal path. Forward and
    cross edges are not recorded. The walk uses an explicit stack, so its
    depth is not bounded by the interpreter's recursion limit.

    Parameters
    ----------
    cfg: ControlFlowGraph
        The graph to be walked. Its entry must be set.

    Returns
    -------
    backedges: Dict[NodeIndex, List[EdgeIndex]]
        The back edges keyed by their target, in discovery order.
    postorder: List[NodeIndex]
        The reachable nodes in the order they were finished.
    """
    assert cfg.entry is not None, "classification needs an entry"
    backedges: Dict[NodeIndex, List[EdgeIndex]] = defaultdict(list)
    postorder: List[NodeIndex] = []
    discovered: Set[NodeIndex] = {cfg.entry}
    finished: Set[NodeIndex] = set()

    stack: List[Tuple[NodeIndex, Iterator[EdgeIndex]]] = [
        (cfg.entry, iter(cfg.out_edges(cfg.entry)))
    ]
    while stack:
        node, edges = stack[-1]
        for edge in edges:
            target = cfg.edge_target(edge)
            if target not in discovered:
                discovered.add(target)
                stack.append((target, iter(cfg.out_edges(target))))
                break
            elif target not in finished:
                backedges[target].append(edge)
        else:
            stack.pop()
            finished.add(node)
            postorder.append(node)
    return dict(backedges), postorder


def dfs_postorder(
    cfg: ControlFlowGraph,
    start: NodeIndex,
    follow: Optional[EdgeFilter] = None,
    reverse: bool = False,
) -> List[NodeIndex]:
    """Post-order of the nodes reachable from `start`.

    Parameters
    ----------
    cfg: ControlFlowGraph
        The graph to be walked.
    start: NodeIndex
        The root of the walk.
    follow: Callable[[EdgeIndex], bool], optional
        Only edges accepted by this predicate are taken. Used to bound the
        walk to a region.
    reverse: bool
        Explore the out-edges of each node last to first. The reverse of
        such a post-order lists the branch targets of a node in edge order.
    """

    def children(node: NodeIndex) -> Iterator[NodeIndex]:
        edges = cfg.out_edges(node)
        if reverse:
            edges.reverse()
        for edge in edges:
            if follow is None or follow(edge):
                yield cfg.edge_target(edge)

    postorder: List[NodeIndex] = []
    seen: Set[NodeIndex] = {start}
    stack = [(start, children(start))]
    while stack:
        node, succs = stack[-1]
        for succ in succs:
            if succ not in seen:
                seen.add(succ)
                stack.append((succ, children(succ)))
                break
        else:
            stack.pop()
            postorder.append(node)
    return postorder


def reverse_reachable(
    cfg: ControlFlowGraph, sources: List[NodeIndex], stop: NodeIndex
) -> Set[NodeIndex]:
    """Nodes reaching any of `sources` without passing through `stop`.

    The result includes `sources` and `stop`.
    """
    found: Set[NodeIndex] = {stop}
    todo = [s for s in sources if s != stop]
    found.update(todo)
    while todo:
        node = todo.pop()
        for pred in cfg.predecessors(node):
            if pred not in found:
                found.add(pred)
                todo.append(pred)
    return found
