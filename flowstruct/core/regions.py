from dataclasses import dataclass
from typing import (
    Any,
    Dict,
    FrozenSet,
    Hashable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
)

from flowstruct.core.datastructures.cfg import (
    ControlFlowGraph,
    EdgeIndex,
    NodeIndex,
)
from flowstruct.core.datastructures.conditions import switch_case_of
from flowstruct.core.dominance import Dominators, dominates_set
from flowstruct.core.traversal import reverse_reachable
from flowstruct.core.utils import _logger

BackEdges = Mapping[NodeIndex, List[EdgeIndex]]
LoopBodies = Mapping[NodeIndex, Set[NodeIndex]]


@dataclass(frozen=True)
class AcyclicRegion:
    """A single entry, at most single exit, region without cycles.

    Attributes
    ----------
    header: NodeIndex
        The only entry of the region.
    members: FrozenSet[NodeIndex]
        All nodes of the region, the header included.
    exit: NodeIndex, optional
        The only node outside the region that is a successor of a member.
        ``None`` when the region ends in sinks only.
    """

    header: NodeIndex
    members: FrozenSet[NodeIndex]
    exit: Optional[NodeIndex]


@dataclass(frozen=True)
class LoopRegion:
    """A natural loop, possibly enlarged by absorbed exit nodes.

    Attributes
    ----------
    header: NodeIndex
        The target of every back edge of the loop.
    members: FrozenSet[NodeIndex]
        The loop body, the header included.
    latches: Tuple[NodeIndex, ...]
        The sources of the back edges.
    exits: Tuple[NodeIndex, ...]
        The loop successors in reverse post-order, empty for a loop that
        is never left.
    """

    header: NodeIndex
    members: FrozenSet[NodeIndex]
    latches: Tuple[NodeIndex, ...]
    exits: Tuple[NodeIndex, ...]


@dataclass(frozen=True)
class SwitchRegion:
    """A multi-way dispatch and its case bodies.

    Attributes
    ----------
    header: NodeIndex
        The node dispatching on `variable`.
    variable: Hashable
        The discriminant.
    cases: Tuple[Tuple[Any, Optional[NodeIndex]], ...]
        The value set of every case and the first node of its body,
        ``None`` for a case that jumps straight to the join.
    default: NodeIndex, optional
        The first node of the default body, if it has one.
    bodies: Mapping[NodeIndex, FrozenSet[NodeIndex]]
        The nodes of each body keyed by its first node.
    members: FrozenSet[NodeIndex]
        The header and every body node.
    exit: NodeIndex, optional
        The join node following the dispatch.
    """

    header: NodeIndex
    variable: Hashable
    cases: Tuple[Tuple[Any, Optional[NodeIndex]], ...]
    default: Optional[NodeIndex]
    bodies: Mapping[NodeIndex, FrozenSet[NodeIndex]]
    members: FrozenSet[NodeIndex]
    exit: Optional[NodeIndex]


def natural_loop(
    cfg: ControlFlowGraph, header: NodeIndex, latches: List[NodeIndex]
) -> Set[NodeIndex]:
    """The header plus every node reaching a latch without passing
    through the header."""
    return reverse_reachable(cfg, latches, header)


def reducible_loops(
    cfg: ControlFlowGraph, backedges: BackEdges, doms: Dominators
) -> Dict[NodeIndex, Set[NodeIndex]]:
    """Natural loop bodies of every header dominating all of its latches."""
    loops = {}
    for header, edges in backedges.items():
        latches = [cfg.edge_source(e) for e in edges]
        if all(header in doms[latch] for latch in latches):
            loops[header] = natural_loop(cfg, header, latches)
    return loops


def _has_cycle(
    cfg: ControlFlowGraph,
    backedges: BackEdges,
    members: Set[NodeIndex],
    allowed: Optional[NodeIndex] = None,
) -> bool:
    for target, edges in backedges.items():
        if target == allowed or target not in members:
            continue
        for edge in edges:
            if cfg.edge_source(edge) in members:
                return True
    return False


def _escapes_loop(
    header: NodeIndex, region: Set[NodeIndex], loops: LoopBodies
) -> bool:
    for loop_header, body in loops.items():
        if loop_header != header and header in body and not region <= body:
            return True
    return False


def find_acyclic_region(
    cfg: ControlFlowGraph,
    header: NodeIndex,
    doms: Dominators,
    backedges: BackEdges,
    loops: LoopBodies,
) -> Optional[AcyclicRegion]:
    """Checks whether `header` roots a structurable acyclic region.

    The candidate region is the set of nodes dominated by `header`. It is
    accepted when it holds more than one node, has at most one successor
    outside of it, contains no cycle, and does not reach out of a loop
    body that `header` belongs to.

    Returns
    -------
    region: AcyclicRegion, optional
        The region, or ``None`` when `header` is not a region header in
        the current state of the graph.
    """
    region = dominates_set(cfg, header, doms)
    if len(region) <= 1:
        return None
    exits = cfg.successors_of_set(region) - region
    if len(exits) > 1:
        return None
    if _has_cycle(cfg, backedges, region):
        _logger.debug("region at %s contains a cycle", header)
        return None
    if _escapes_loop(header, region, loops):
        _logger.debug("region at %s leaves its enclosing loop", header)
        return None
    exit = next(iter(exits)) if exits else None
    return AcyclicRegion(header, frozenset(region), exit)


def find_loop_region(
    cfg: ControlFlowGraph,
    header: NodeIndex,
    doms: Dominators,
    backedges: BackEdges,
    postorder: List[NodeIndex],
) -> Optional[LoopRegion]:
    """Checks whether the back edge target `header` heads a structurable
    loop.

    The body starts as the natural loop of `header`. While it has more
    than one exit, an exit node that is entered from the body only and
    leads to other exits only is absorbed into the body. Exits not
    entered from the header are absorbed first, then the deepest ones in
    post-order. Exits left over after that are kept; the collapsed loop
    dispatches to them.

    Returns
    -------
    region: LoopRegion, optional
        The loop, or ``None`` if it is irreducible or still contains an
        unstructured inner cycle.
    """
    latches = [cfg.edge_source(e) for e in backedges[header]]
    if not all(header in doms[latch] for latch in latches):
        _logger.debug("irreducible loop at %s", header)
        return None
    body = natural_loop(cfg, header, latches)
    exits = cfg.successors_of_set(body) - body
    post_index = {node: i for i, node in enumerate(postorder)}
    while len(exits) > 1:
        candidates = []
        for node in exits:
            preds = cfg.predecessors(node)
            succs = cfg.successors(node)
            if all(p in body for p in preds) and all(
                s in exits and s != node for s in succs
            ):
                candidates.append(node)
        if not candidates:
            break
        absorbed = min(
            candidates,
            key=lambda n: (header in cfg.predecessors(n), post_index[n]),
        )
        body.add(absorbed)
        exits = cfg.successors_of_set(body) - body
    if _has_cycle(cfg, backedges, body, allowed=header):
        _logger.debug("loop at %s contains an inner cycle", header)
        return None
    if len(exits) > 1:
        _logger.debug(
            "loop at %s keeps %d exits: %s", header, len(exits), exits
        )
    ordered = sorted(exits, key=lambda n: post_index[n], reverse=True)
    return LoopRegion(
        header, frozenset(body), tuple(latches), tuple(ordered)
    )


def find_switch_region(
    cfg: ControlFlowGraph,
    header: NodeIndex,
    doms: Dominators,
    backedges: BackEdges,
    loops: LoopBodies,
) -> Optional[SwitchRegion]:
    """Checks whether `header` dispatches on a single variable into
    structurable case bodies.

    Every out-edge of `header` has to carry a ``SwitchCase`` label over
    the same variable, with at most one default edge. Edges to the same
    target merge their value sets and values routed to the default target
    are folded into the default. A target entered from `header` only
    starts a case body, made of the nodes it dominates; every other
    target has to be the one join node of the dispatch.
    """
    edges = cfg.out_edges(header)
    if len(edges) < 2:
        return None
    variable = None
    default: Optional[NodeIndex] = None
    values: Dict[NodeIndex, Any] = {}
    for edge in edges:
        case = switch_case_of(cfg.edge_condition(edge))
        if case is None:
            return None
        if variable is None:
            variable = case.variable
        elif case.variable != variable:
            return None
        target = cfg.edge_target(edge)
        if case.is_default:
            if default is not None:
                return None
            default = target
        elif target in values:
            values[target] = values[target] | case.values
        else:
            values[target] = case.values
    if default is not None:
        values.pop(default, None)

    targets = list(values)
    for i, first in enumerate(targets):
        for second in targets[i + 1 :]:
            if values[first] & values[second]:
                _logger.debug("overlapping cases at %s", header)
                return None

    bodies: Dict[NodeIndex, FrozenSet[NodeIndex]] = {}
    joins: Set[NodeIndex] = set()
    for target in targets + ([default] if default is not None else []):
        if target != header and cfg.predecessors(target) == [header]:
            bodies[target] = frozenset(dominates_set(cfg, target, doms))
        else:
            joins.add(target)
    if len(joins) > 1:
        return None

    region = {header}
    for body in bodies.values():
        region |= body
    exits = cfg.successors_of_set(region) - region
    if len(exits | joins) > 1:
        return None
    if _has_cycle(cfg, backedges, region):
        _logger.debug("switch at %s contains a cycle", header)
        return None
    if _escapes_loop(header, region, loops):
        return None

    join = next(iter(exits | joins)) if exits | joins else None
    cases = tuple(
        (values[t], t if t in bodies else None) for t in targets
    )
    return SwitchRegion(
        header,
        variable,
        cases,
        default if default in bodies else None,
        bodies,
        frozenset(region),
        join,
    )
