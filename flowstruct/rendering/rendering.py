from typing import Dict, Optional, Set

from graphviz import Digraph

from flowstruct.core.datastructures.ast_nodes import (
    AstNode,
    BasicBlock,
    Seq,
    describe,
)
from flowstruct.core.datastructures.cfg import (
    CFGIO,
    ControlFlowGraph,
    EdgeIndex,
    NodeIndex,
)
from flowstruct.core.traversal import classify

node_style_kwargs = {"shape": "rect", "style": "rounded"}
entry_style_kwargs = {"penwidth": "2"}
backedge_style_kwargs = {"style": "dashed", "color": "grey"}


class CFGRenderer:
    """The `CFGRenderer` class is used to render the visual representation
    of the current state of a `ControlFlowGraph`.

    Nodes are named the way `CFGIO` names them and labelled with a short
    summary of their payload. Edges are labelled with their condition and
    back edges, as found from the entry, are drawn dashed.

    Attributes
    ----------
    g: Digraph
        The graphviz Digraph object that represents the entire graph upon
        which the current ControlFlowGraph is to be rendered.
    """

    def __init__(self, cfg: ControlFlowGraph):
        self.g = Digraph()
        names = CFGIO.node_names(cfg)
        backedges: Set[EdgeIndex] = set()
        if cfg.entry is not None:
            found, _ = classify(cfg)
            for edges in found.values():
                backedges.update(edges)
        # render nodes
        for node in cfg.node_indices():
            self.render_node(names[node], cfg[node], node == cfg.entry)
        self.render_edges(cfg, names, backedges)

    def render_node(self, name: str, payload: AstNode, entry: bool) -> None:
        if isinstance(payload, BasicBlock) or payload == Seq(()):
            label = name
        else:
            label = rf"{name}\n{describe(payload)}"
        kwargs = dict(node_style_kwargs)
        if entry:
            kwargs.update(entry_style_kwargs)
        self.g.node(name, label=label, **kwargs)

    def render_edges(
        self,
        cfg: ControlFlowGraph,
        names: Dict[NodeIndex, str],
        backedges: Set[EdgeIndex],
    ) -> None:
        for edge in cfg.edge_indices():
            src, dst = cfg.edge_endpoints(edge)
            kwargs = {}
            cond = cfg.edge_condition(edge)
            if cond is not None:
                kwargs["label"] = str(cond)
            if edge in backedges:
                kwargs.update(backedge_style_kwargs)
                kwargs["constraint"] = "0"
            self.g.edge(names[src], names[dst], **kwargs)

    def render_cfg(self) -> Digraph:
        """Return the graphviz Digraph that contains the rendered graph."""
        return self.g

    def view(self, name: Optional[str] = None) -> None:
        """Method used to view the current graph as an external graphviz
        generated PDF file.

        Parameters
        ----------
        name: str
            Name to be given to the external graphviz generated PDF file.
        """
        self.g.view(name)


def render_cfg(cfg: ControlFlowGraph, name: Optional[str] = None) -> None:
    """Render `cfg` and display it as a document called `name`."""
    CFGRenderer(cfg).view(name)
