# flake8: noqa
# mypy: ignore-errors

from flowstruct.core.datastructures.cfg import ControlFlowGraph
from flowstruct.core.structuring import branch_complements, structure_pass
from flowstruct.rendering.rendering import CFGRenderer
from flowstruct.tests.test_utils import diamond, while_loop

expected_diamond = r"""digraph {
	H [label=H penwidth=2 shape=rect style=rounded]
	A [label=A shape=rect style=rounded]
	B [label=B shape=rect style=rounded]
	S [label=S shape=rect style=rounded]
	H -> A [label=c]
	H -> B [label="!c"]
	A -> S
	B -> S
}"""


def test_diamond():
    cfg, _ = ControlFlowGraph.from_yaml(diamond)
    dot = str(CFGRenderer(cfg).render_cfg()).strip()
    assert expected_diamond == dot


def test_backedges_are_dashed():
    cfg, _ = ControlFlowGraph.from_yaml(while_loop)
    dot = str(CFGRenderer(cfg).render_cfg())
    assert "Bd -> empty_1 [color=grey constraint=0 style=dashed]" in dot
    assert dot.count("style=dashed") == 1
    assert "empty_1 [label=empty_1" in dot


def test_structured_nodes():
    cfg, _ = ControlFlowGraph.from_yaml(while_loop)
    structure_pass(cfg, branch_complements(cfg))
    dot = str(CFGRenderer(cfg).render_cfg())
    assert "structured_1" in dot
    assert "Loop(PreChecked(c), Seq[Bd])" in dot
    assert "structured_1 -> X" in dot
    assert "style=dashed" not in dot
