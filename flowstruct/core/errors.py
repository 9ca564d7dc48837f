from typing import Any, Iterable, Tuple


class StructuringError(Exception):
    """Base class for all failures reported by the structuring engine."""


class MalformedInput(StructuringError):
    """The caller supplied a graph that can not be structured as given.

    Raised for dangling edge endpoints, an out-of-range entry and for nodes
    that are not reachable from the entry.

    Attributes
    ----------
    nodes: Tuple
        The offending node names, indices or NodeIndex objects.
    """

    def __init__(self, message: str, nodes: Iterable[Any] = ()) -> None:
        super().__init__(message)
        self.nodes: Tuple[Any, ...] = tuple(nodes)


class StructuringStuck(StructuringError):
    """A full pass over the graph found no region to collapse.

    The partially structured graph is kept on the exception so that a
    caller can fall back to a goto based rendering of what is left.

    Attributes
    ----------
    cfg: ControlFlowGraph
        The graph as it was when the driver gave up.
    """

    def __init__(self, message: str, cfg: Any) -> None:
        super().__init__(message)
        self.cfg = cfg
