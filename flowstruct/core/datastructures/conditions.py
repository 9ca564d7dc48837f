from typing import (
    Any,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)
from dataclasses import dataclass


@dataclass(frozen=True)
class SwitchCase:
    """Opaque edge label of a multi-way dispatch edge.

    Attributes
    ----------
    variable: Hashable
        The discriminant the dispatch is performed on.
    values: FrozenSet, optional
        The values that select this edge. ``None`` marks the default edge.
    """

    variable: Hashable
    values: Optional[FrozenSet[Any]] = None

    @property
    def is_default(self) -> bool:
        return self.values is None

    def __str__(self) -> str:
        if self.values is None:
            return f"{self.variable}: default"
        values = ", ".join(sorted(str(v) for v in self.values))
        return f"{self.variable} in {{{values}}}"


@dataclass(frozen=True)
class Simple:
    """Atomic condition wrapping the opaque label of a single edge."""

    label: Hashable

    def __str__(self) -> str:
        return str(self.label)


@dataclass(frozen=True)
class And:
    """Conjunction of at least one condition."""

    operands: Tuple["Condition", ...]

    def __post_init__(self) -> None:
        assert len(self.operands) > 0, "And without operands"

    def __str__(self) -> str:
        return "(" + " && ".join(str(op) for op in self.operands) + ")"


@dataclass(frozen=True)
class Or:
    """Disjunction of at least one condition."""

    operands: Tuple["Condition", ...]

    def __post_init__(self) -> None:
        assert len(self.operands) > 0, "Or without operands"

    def __str__(self) -> str:
        return "(" + " || ".join(str(op) for op in self.operands) + ")"


@dataclass(frozen=True)
class Not:
    """Negation of a condition."""

    operand: "Condition"

    def __str__(self) -> str:
        return "!" + str(self.operand)


Condition = Union[Simple, And, Or, Not]

# Maps a simple condition to the label on the other edge of the same
# two-way branch.
Complements = Mapping[Simple, Simple]


def _compose(
    kind: type, conds: Iterable["Condition"]
) -> Optional["Condition"]:
    operands: List[Condition] = []
    for cond in conds:
        if isinstance(cond, kind):
            nested = cond.operands  # type: ignore
        else:
            nested = (cond,)
        for op in nested:
            if op not in operands:
                operands.append(op)
    if not operands:
        return None
    if len(operands) == 1:
        return operands[0]
    return kind(tuple(operands))  # type: ignore


def conjunction(*conds: Optional["Condition"]) -> Optional["Condition"]:
    """Build the conjunction of the given conditions.

    ``None`` stands for "true" and is dropped. Nested conjunctions are
    flattened and repeated operands are removed, so a conjunction with a
    single remaining operand is that operand.

    Returns
    -------
    cond: Condition, optional
        The conjunction, or ``None`` if every operand was "true".
    """
    return _compose(And, (c for c in conds if c is not None))


def disjunction(*conds: Optional["Condition"]) -> Optional["Condition"]:
    """Build the disjunction of the given conditions.

    A "true" (``None``) operand makes the whole disjunction "true". Nested
    disjunctions are flattened and repeated operands are removed.
    """
    assert conds, "disjunction of nothing"
    if any(c is None for c in conds):
        return None
    return _compose(Or, conds)  # type: ignore


def negation(
    cond: "Condition", complements: Optional[Complements] = None
) -> "Condition":
    """Negate `cond`.

    Double negations cancel. A simple condition with a known complementary
    label (the other edge of the same two-way branch) is replaced by that
    label instead of being wrapped in ``Not``.
    """
    assert cond is not None, "negation of true"
    if isinstance(cond, Not):
        return cond.operand
    if complements and isinstance(cond, Simple) and cond in complements:
        return complements[cond]
    return Not(cond)


def assume(
    cond: Optional["Condition"], facts: Iterable["Condition"]
) -> Optional["Condition"]:
    """Simplify `cond` under the assumption that every fact holds.

    Operands equal to a fact become "true": they are dropped from a
    conjunction and make a disjunction "true".
    """
    facts = tuple(facts)
    if cond is None or not facts:
        return cond
    if cond in facts:
        return None
    if isinstance(cond, And):
        return conjunction(*(assume(op, facts) for op in cond.operands))
    if isinstance(cond, Or):
        return disjunction(*(assume(op, facts) for op in cond.operands))
    return cond


def find_complements(
    branches: Iterable[Tuple[Optional["Condition"], Optional["Condition"]]]
) -> Dict[Simple, Simple]:
    """Collect complementary labels from the out-edge pairs of two-way
    branches.

    Each pair of distinct simple, non switch, conditions is recorded in
    both directions. The first pairing seen for a label wins.
    """
    complements: Dict[Simple, Simple] = {}
    for first, second in branches:
        if not (isinstance(first, Simple) and isinstance(second, Simple)):
            continue
        if first == second:
            continue
        if isinstance(first.label, SwitchCase) or isinstance(
            second.label, SwitchCase
        ):
            continue
        complements.setdefault(first, second)
        complements.setdefault(second, first)
    return complements


def switch_case_of(cond: Optional["Condition"]) -> Optional[SwitchCase]:
    """Return the SwitchCase label of a switch edge condition, if any."""
    if isinstance(cond, Simple) and isinstance(cond.label, SwitchCase):
        return cond.label
    return None
