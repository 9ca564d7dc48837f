# mypy: ignore-errors

from unittest import TestCase, main

from flowstruct.core.datastructures.cfg import ControlFlowGraph
from flowstruct.core.regions import (
    AcyclicRegion,
    LoopRegion,
    find_acyclic_region,
    find_loop_region,
    find_switch_region,
    natural_loop,
)
from flowstruct.tests.test_utils import (
    analyse,
    diamond,
    guarded_exit,
    irreducible,
    loop_with_return,
    switch,
    while_loop,
)


def acyclic_at(cfg, header):
    backedges, _, doms, loops = analyse(cfg)
    return find_acyclic_region(cfg, header, doms, backedges, loops)


def loop_at(cfg, header):
    backedges, postorder, doms, _ = analyse(cfg)
    return find_loop_region(cfg, header, doms, backedges, postorder)


def switch_at(cfg, header):
    backedges, _, doms, loops = analyse(cfg)
    return find_switch_region(cfg, header, doms, backedges, loops)


class TestAcyclicRegion(TestCase):
    def test_whole_graph_without_exit(self):
        cfg, blocks = ControlFlowGraph.from_yaml(diamond)
        region = acyclic_at(cfg, blocks["H"])
        self.assertEqual(
            region,
            AcyclicRegion(blocks["H"], frozenset(blocks.values()), None),
        )

    def test_single_exit(self):
        cfg, blocks = ControlFlowGraph.from_yaml(guarded_exit)
        region = acyclic_at(cfg, blocks["H"])
        members = frozenset(blocks[n] for n in ("H", "A", "R"))
        self.assertEqual(
            region, AcyclicRegion(blocks["H"], members, blocks["S"])
        )

    def test_single_node(self):
        cfg, blocks = ControlFlowGraph.from_yaml(diamond)
        self.assertIsNone(acyclic_at(cfg, blocks["A"]))

    def test_two_exits(self):
        cfg, blocks = ControlFlowGraph.from_yaml(
            """
            blocks:
                'E': {type: basic}
                'H': {type: basic}
                'A': {type: basic}
                'B': {type: basic}
                'J': {type: basic}
                'K': {type: basic}
            edges:
                'E': ['H', 'J', 'K']
                'H': ['A', 'B']
                'A': ['J']
                'B': ['K']
                'J': []
                'K': []
            """
        )
        self.assertIsNone(acyclic_at(cfg, blocks["H"]))

    def test_cycle(self):
        cfg, blocks = ControlFlowGraph.from_yaml(irreducible)
        self.assertIsNone(acyclic_at(cfg, blocks["E"]))

    def test_region_stays_in_loop(self):
        # 'A' dominates the returning block 'R' outside the loop body
        cfg, blocks = ControlFlowGraph.from_yaml(loop_with_return)
        self.assertIsNone(acyclic_at(cfg, blocks["A"]))


class TestLoopRegion(TestCase):
    def test_natural_loop(self):
        cfg, blocks = ControlFlowGraph.from_yaml(loop_with_return)
        body = natural_loop(cfg, blocks["H"], [blocks["A"]])
        self.assertEqual(body, {blocks["H"], blocks["A"]})

    def test_while(self):
        cfg, blocks = ControlFlowGraph.from_yaml(while_loop)
        region = loop_at(cfg, blocks["H"])
        self.assertEqual(
            region,
            LoopRegion(
                blocks["H"],
                frozenset({blocks["H"], blocks["Bd"]}),
                (blocks["Bd"],),
                (blocks["X"],),
            ),
        )

    def test_absorb_returning_exit(self):
        cfg, blocks = ControlFlowGraph.from_yaml(loop_with_return)
        region = loop_at(cfg, blocks["H"])
        members = frozenset(blocks[n] for n in ("H", "A", "R"))
        self.assertEqual(region.members, members)
        self.assertEqual(region.exits, (blocks["X"],))

    def test_exits_in_program_order(self):
        cfg, blocks = ControlFlowGraph.from_yaml(
            """
            blocks:
                'E': {type: basic}
                'H': {type: basic}
                'A': {type: basic}
                'X': {type: basic}
                'Y': {type: basic}
                'Z': {type: basic}
            edges:
                'E': ['H']
                'H': ['A', 'X']
                'A': ['H', 'Y']
                'X': ['Z']
                'Y': ['Z']
                'Z': []
            """
        )
        region = loop_at(cfg, blocks["H"])
        self.assertEqual(
            region.members, frozenset({blocks["H"], blocks["A"]})
        )
        self.assertEqual(region.exits, (blocks["X"], blocks["Y"]))

    def test_irreducible(self):
        cfg, blocks = ControlFlowGraph.from_yaml(irreducible)
        self.assertIsNone(loop_at(cfg, blocks["A"]))

    def test_inner_cycle(self):
        cfg, blocks = ControlFlowGraph.from_yaml(
            """
            blocks:
                'E': {type: basic}
                'H1': {type: basic}
                'H2': {type: basic}
                'B': {type: basic}
                'L': {type: basic}
                'X': {type: basic}
            edges:
                'E': ['H1']
                'H1': ['H2', 'X']
                'H2': ['B', 'L']
                'B': ['H2']
                'L': ['H1']
                'X': []
            """
        )
        self.assertIsNone(loop_at(cfg, blocks["H1"]))
        self.assertIsNotNone(loop_at(cfg, blocks["H2"]))


class TestSwitchRegion(TestCase):
    def test_switch(self):
        cfg, blocks = ControlFlowGraph.from_yaml(switch)
        region = switch_at(cfg, blocks["S"])
        self.assertEqual(region.variable, "x")
        self.assertEqual(
            region.cases,
            (
                (frozenset({1}), blocks["C1"]),
                (frozenset({2}), blocks["C2"]),
            ),
        )
        self.assertEqual(region.default, blocks["D"])
        self.assertEqual(region.exit, blocks["J"])
        self.assertEqual(
            region.members,
            frozenset(blocks[n] for n in ("S", "C1", "C2", "D")),
        )

    def test_cases_to_join_and_merged_values(self):
        cfg, blocks = ControlFlowGraph.from_yaml(
            """
            blocks:
                'S': {type: basic}
                'C': {type: basic}
                'J': {type: basic}
            edges:
                'S': ['C', 'J', 'C']
                'C': ['J']
                'J': []
            conditions:
                'S':
                    - {switch: x, values: [1]}
                    - {switch: x}
                    - {switch: x, values: [2, 3]}
            """
        )
        region = switch_at(cfg, blocks["S"])
        self.assertEqual(region.cases, ((frozenset({1, 2, 3}), blocks["C"]),))
        self.assertIsNone(region.default)
        self.assertEqual(region.exit, blocks["J"])

    def test_overlapping_values(self):
        cfg, blocks = ControlFlowGraph.from_yaml(
            """
            blocks:
                'S': {type: basic}
                'A': {type: basic}
                'B': {type: basic}
            edges:
                'S': ['A', 'B']
                'A': []
                'B': []
            conditions:
                'S':
                    - {switch: x, values: [1, 2]}
                    - {switch: x, values: [2]}
            """
        )
        self.assertIsNone(switch_at(cfg, blocks["S"]))

    def test_not_a_switch(self):
        cfg, blocks = ControlFlowGraph.from_yaml(diamond)
        self.assertIsNone(switch_at(cfg, blocks["H"]))


if __name__ == "__main__":
    main()
