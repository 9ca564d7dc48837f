from typing import Collection, Dict, List, Optional, Tuple

from flowstruct.core.datastructures.ast_nodes import (
    AstNode,
    Break,
    Cond,
    Continue,
    Endless,
    Loop,
    LoopType,
    PostChecked,
    PreChecked,
    Seq,
    Switch,
    describe,
    guard,
    make_seq,
)
from flowstruct.core.datastructures.cfg import (
    ControlFlowGraph,
    EdgeIndex,
    NodeIndex,
)
from flowstruct.core.datastructures.conditions import (
    Complements,
    Condition,
    assume,
    conjunction,
    negation,
)
from flowstruct.core.reaching import (
    ReachingConditions,
    exit_condition,
    reaching_conditions,
)
from flowstruct.core.regions import AcyclicRegion, LoopRegion, SwitchRegion
from flowstruct.core.traversal import dfs_postorder
from flowstruct.core.utils import _logger, _LogWrap


def region_order(
    cfg: ControlFlowGraph, header: NodeIndex, members: Collection[NodeIndex]
) -> List[NodeIndex]:
    """Topological order of a region DAG rooted at `header`.

    Edges leaving the region and edges back to the header are not
    followed. Branch targets come out in the order of the branch edges.
    """

    def internal(edge: EdgeIndex) -> bool:
        target = cfg.edge_target(edge)
        return target in members and target != header

    postorder = dfs_postorder(cfg, header, follow=internal, reverse=True)
    assert len(postorder) == len(members), "region not reachable from header"
    return postorder[::-1]


def _take_payloads(
    cfg: ControlFlowGraph, header: NodeIndex, order: List[NodeIndex]
) -> Dict[NodeIndex, AstNode]:
    # The header keeps its identity and its incoming edges, every other
    # member is removed along with its edges.
    payloads = {}
    for node in order:
        if node == header:
            payloads[node] = cfg.replace_payload(node, Seq(()))
        else:
            payloads[node] = cfg.remove_node(node)
    for edge in cfg.out_edges(header):
        cfg.remove_edge(edge)
    return payloads


def _install(
    cfg: ControlFlowGraph,
    header: NodeIndex,
    payload: AstNode,
    succ: Optional[NodeIndex],
    condition: Optional[Condition] = None,
) -> None:
    cfg.replace_payload(header, payload)
    if succ is not None:
        cfg.add_edge(header, succ, condition)


def collapse_acyclic(cfg: ControlFlowGraph, region: AcyclicRegion) -> None:
    """Replace an acyclic region by a single sequence at its header.

    Every member is guarded by its reaching condition and the members are
    laid out in topological order. The header keeps its incoming edges and
    gets one edge to the region exit, guarded by the condition under which
    the region is left.
    """
    header, members, succ = region.header, region.members, region.exit
    incoming = cfg.in_edges(header)
    order = region_order(cfg, header, members)
    rc = reaching_conditions(cfg, header, members, order)
    exit_cond = None
    if succ is not None:
        exit_cond = exit_condition(cfg, header, members, succ, rc)

    payloads = _take_payloads(cfg, header, order)
    seq = make_seq(guard(rc[node], payloads[node]) for node in order)
    _install(cfg, header, seq, succ, exit_cond)
    assert cfg.in_edges(header) == incoming

    _logger.debug(
        "collapsed acyclic region at %s (%d nodes, exit %s): %s",
        header,
        len(members),
        succ,
        _LogWrap(lambda: describe(seq)),
    )


def _loop_items(
    cfg: ControlFlowGraph,
    region: LoopRegion,
    order: List[NodeIndex],
    rc: ReachingConditions,
) -> List[AstNode]:
    header, members = region.header, region.members
    items: List[AstNode] = []
    for node in order:
        items.append(guard(rc[node], cfg[node]))
        edges = cfg.out_edges(node)
        for edge in edges:
            if cfg.edge_target(edge) not in members:
                cond = conjunction(rc[node], cfg.edge_condition(edge))
                items.append(guard(cond, Break()))
        for edge in edges:
            if cfg.edge_target(edge) == header:
                cond = conjunction(rc[node], cfg.edge_condition(edge))
                items.append(guard(cond, Continue()))
    return items


def refine_loop_body(
    items: List[AstNode], complements: Optional[Complements] = None
) -> List[AstNode]:
    """Simplify the guards of a flat loop body.

    Once control passed a guarded ``Break`` or ``Continue`` the negation
    of its guard holds for the rest of the iteration. Guards that become
    "true" under these facts are dropped and trailing continues, which
    are implicit at the end of a loop body, are removed.
    """
    facts: List[Condition] = []
    refined: List[AstNode] = []
    for item in items:
        if isinstance(item, Cond):
            cond = assume(item.condition, facts)
            if cond is None:
                refined.extend(make_seq([item.then]).nodes)
                continue
            if isinstance(item.then, (Break, Continue)):
                facts.append(negation(cond, complements))
            item = Cond(cond, item.then, item.otherwise)
        refined.append(item)
    refined = list(make_seq(refined).nodes)
    while refined and _is_continue(refined[-1]):
        refined.pop()
    return refined


def _is_continue(node: AstNode) -> bool:
    if isinstance(node, Continue):
        return True
    return isinstance(node, Cond) and isinstance(node.then, Continue)


def _breaking_condition(node: AstNode) -> Optional[Condition]:
    if (
        isinstance(node, Cond)
        and isinstance(node.then, Break)
        and node.otherwise is None
    ):
        return node.condition
    return None


def loop_type_of(
    items: List[AstNode], complements: Optional[Complements] = None
) -> Tuple[LoopType, List[AstNode]]:
    """Pick the loop type of a refined loop body.

    A leading guarded ``Break`` becomes a pre-checked loop condition, else
    a trailing one becomes a post-checked condition, else the loop is
    endless. A ``Continue`` jumps to the check of a post-checked loop, so
    a body that still continues somewhere is never post-checked.

    Returns
    -------
    loop_type: LoopType
        The type of the loop.
    body: List[AstNode]
        The body items left once the exit test is taken out.
    """
    loop_type: LoopType
    if items:
        first = _breaking_condition(items[0])
        if first is not None:
            loop_type = PreChecked(negation(first, complements))
            return loop_type, items[1:]
        last = _breaking_condition(items[-1])
        if last is not None and not any(map(_is_continue, items)):
            loop_type = PostChecked(negation(last, complements))
            return loop_type, items[:-1]
    return Endless(), items


def collapse_loop(
    cfg: ControlFlowGraph,
    region: LoopRegion,
    complements: Optional[Complements] = None,
) -> None:
    """Replace a loop region by a single ``Loop`` at its header.

    The body is laid out as a DAG rooted at the header. Every edge leaving
    the body becomes a guarded ``Break`` and every edge back to the header
    a guarded ``Continue``, both placed right after their source. The
    header keeps its incoming edges, minus the back edges. A loop with a
    single exit gets one unconditional edge to it; a loop with several
    exits gets one edge to each, guarded by the condition under which the
    loop is left for that exit.
    """
    header, members, exits = region.header, region.members, region.exits
    order = region_order(cfg, header, members)
    rc = reaching_conditions(cfg, header, members, order)
    items = refine_loop_body(_loop_items(cfg, region, order, rc), complements)
    loop_type, body = loop_type_of(items, complements)
    loop = Loop(loop_type, make_seq(body))
    exit_conds: List[Optional[Condition]] = [None]
    if len(exits) > 1:
        exit_conds = [
            exit_condition(cfg, header, members, succ, rc) for succ in exits
        ]

    _take_payloads(cfg, header, order)
    cfg.replace_payload(header, loop)
    for succ, cond in zip(exits, exit_conds):
        cfg.add_edge(header, succ, cond)
    assert all(
        cfg.edge_source(e) not in members for e in cfg.in_edges(header)
    ), "back edge survived loop collapse"

    _logger.debug(
        "collapsed loop at %s (%d nodes, %d latches, exits %s): %s",
        header,
        len(members),
        len(region.latches),
        exits,
        _LogWrap(lambda: describe(loop)),
    )


def collapse_switch(cfg: ControlFlowGraph, region: SwitchRegion) -> None:
    """Replace a dispatch and its case bodies by a ``Switch``.

    Each case body is structured as an acyclic region rooted at its first
    node. The header payload is followed by the ``Switch`` and the header
    gets one unconditional edge to the join node.
    """
    header, succ = region.header, region.exit
    incoming = cfg.in_edges(header)

    built: Dict[NodeIndex, AstNode] = {}
    for start, body in region.bodies.items():
        order = region_order(cfg, start, body)
        rc = reaching_conditions(cfg, start, body, order)
        built[start] = make_seq(guard(rc[node], cfg[node]) for node in order)

    def case_body(start: Optional[NodeIndex]) -> AstNode:
        if start is None:
            return Seq(())
        return built[start]

    switch = Switch(
        region.variable,
        tuple((values, case_body(start)) for values, start in region.cases),
        case_body(region.default),
    )
    for body in region.bodies.values():
        for node in body:
            cfg.remove_node(node)
    for edge in cfg.out_edges(header):
        cfg.remove_edge(edge)
    payload = make_seq([cfg[header], switch])
    _install(cfg, header, payload, succ)
    assert cfg.in_edges(header) == incoming

    _logger.debug(
        "collapsed switch at %s (%d cases, exit %s): %s",
        header,
        len(region.cases),
        succ,
        _LogWrap(lambda: describe(switch)),
    )
