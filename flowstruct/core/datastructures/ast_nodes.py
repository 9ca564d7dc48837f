from typing import (
    Any,
    Hashable,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)
from dataclasses import dataclass

from flowstruct.core.datastructures.conditions import Condition


@dataclass(frozen=True)
class BasicBlock:
    """Unstructured leaf supplied by the caller.

    Attributes
    ----------
    label: Hashable
        Opaque identification of the block; never interpreted.
    """

    label: Hashable


@dataclass(frozen=True)
class Seq:
    """Sequential composition of its nodes."""

    nodes: Tuple["AstNode", ...] = ()


@dataclass(frozen=True)
class Cond:
    """Conditional execution.

    Attributes
    ----------
    condition: Condition
        The guard.
    then: AstNode
        Executed when the guard holds.
    otherwise: AstNode, optional
        Executed when it doesn't.
    """

    condition: Condition
    then: "AstNode"
    otherwise: Optional["AstNode"] = None


@dataclass(frozen=True)
class PreChecked:
    """The loop condition is checked before each iteration."""

    condition: Condition


@dataclass(frozen=True)
class PostChecked:
    """The loop condition is checked after each iteration."""

    condition: Condition


@dataclass(frozen=True)
class Endless:
    """No syntactic exit test, the body leaves through ``Break``."""


LoopType = Union[PreChecked, PostChecked, Endless]


@dataclass(frozen=True)
class Loop:
    loop_type: LoopType
    body: "AstNode"


@dataclass(frozen=True)
class Switch:
    """Multi-way dispatch on `variable`.

    Attributes
    ----------
    variable: Hashable
        The opaque discriminant.
    cases: Tuple[Tuple[ValueSet, AstNode], ...]
        The cases in dispatch order, each with the value set selecting it.
    default: AstNode
        Executed when no case matches.
    """

    variable: Hashable
    cases: Tuple[Tuple[Any, "AstNode"], ...]
    default: "AstNode"


@dataclass(frozen=True)
class Break:
    """Leave the innermost enclosing loop."""


@dataclass(frozen=True)
class Continue:
    """Start the next iteration of the innermost enclosing loop."""


AstNode = Union[BasicBlock, Seq, Cond, Loop, Switch, Break, Continue]

ast_node_types = (BasicBlock, Seq, Cond, Loop, Switch, Break, Continue)


def guard(cond: Optional[Condition], node: AstNode) -> AstNode:
    """Wrap `node` in a ``Cond`` unless `cond` is "true" (``None``)."""
    if cond is None:
        return node
    return Cond(cond, node, None)


def make_seq(items: Iterable[AstNode]) -> Seq:
    """Build a ``Seq`` from `items`, splicing nested sequences.

    A nested ``Seq`` is always unconditional, so its nodes can be inlined
    into the enclosing sequence. Empty sequences disappear.
    """
    nodes: List[AstNode] = []
    for item in items:
        if isinstance(item, Seq):
            nodes.extend(item.nodes)
        else:
            nodes.append(item)
    return Seq(tuple(nodes))


def iter_basic_blocks(node: AstNode) -> Iterator[Hashable]:
    """Yield the labels of every ``BasicBlock`` in `node`, in tree order."""
    if isinstance(node, BasicBlock):
        yield node.label
    elif isinstance(node, Seq):
        for child in node.nodes:
            yield from iter_basic_blocks(child)
    elif isinstance(node, Cond):
        yield from iter_basic_blocks(node.then)
        if node.otherwise is not None:
            yield from iter_basic_blocks(node.otherwise)
    elif isinstance(node, Loop):
        yield from iter_basic_blocks(node.body)
    elif isinstance(node, Switch):
        for _, case in node.cases:
            yield from iter_basic_blocks(case)
        yield from iter_basic_blocks(node.default)
    elif isinstance(node, (Break, Continue)):
        return
    else:
        raise TypeError(f"not an AstNode: {node!r}")


def describe(node: AstNode) -> str:
    """One line summary of `node`, used for logging and rendering."""
    if isinstance(node, BasicBlock):
        return str(node.label)
    elif isinstance(node, Seq):
        return "Seq[" + ", ".join(describe(n) for n in node.nodes) + "]"
    elif isinstance(node, Cond):
        if node.otherwise is None:
            return f"Cond({node.condition}, {describe(node.then)})"
        return (
            f"Cond({node.condition}, {describe(node.then)}, "
            f"{describe(node.otherwise)})"
        )
    elif isinstance(node, Loop):
        loop_type = node.loop_type
        if isinstance(loop_type, Endless):
            kind = "Endless"
        elif isinstance(loop_type, PreChecked):
            kind = f"PreChecked({loop_type.condition})"
        elif isinstance(loop_type, PostChecked):
            kind = f"PostChecked({loop_type.condition})"
        else:
            raise TypeError(f"not a LoopType: {loop_type!r}")
        return f"Loop({kind}, {describe(node.body)})"
    elif isinstance(node, Switch):
        cases = ", ".join(
            f"{sorted(values, key=str)}: {describe(case)}"
            for values, case in node.cases
        )
        return (
            f"Switch({node.variable}, [{cases}], "
            f"default: {describe(node.default)})"
        )
    elif isinstance(node, Break):
        return "Break"
    elif isinstance(node, Continue):
        return "Continue"
    else:
        raise TypeError(f"not an AstNode: {node!r}")
