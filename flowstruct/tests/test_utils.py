# mypy: ignore-errors

from collections import Counter
from unittest import TestCase

from flowstruct.core.datastructures.ast_nodes import iter_basic_blocks
from flowstruct.core.datastructures.cfg import ControlFlowGraph
from flowstruct.core.dominance import dominators
from flowstruct.core.regions import reducible_loops
from flowstruct.core.traversal import classify


def edge_snapshot(cfg: ControlFlowGraph):
    return {e: cfg.edge_endpoints(e) for e in cfg.edge_indices()}


def analyse(cfg: ControlFlowGraph):
    backedges, postorder = classify(cfg)
    doms = dominators(cfg)
    loops = reducible_loops(cfg, backedges, doms)
    return backedges, postorder, doms, loops


class CFGComparator(TestCase):
    def assertEdgesConserved(self, before, cfg, header, members, exits):
        """Check a collapse of `members` into `header` against the edges
        of the graph taken before the collapse."""
        after = edge_snapshot(cfg)
        for edge, (src, dst) in before.items():
            if src not in members and dst not in members:
                # untouched by the collapse
                self.assertEqual(after.get(edge), (src, dst))
            elif src not in members:
                # region entries must go to the header and survive
                self.assertEqual(dst, header)
                self.assertEqual(after.get(edge), (src, dst))
            else:
                self.assertNotIn(edge, after)
        added = [after[e] for e in after if e not in before]
        self.assertCountEqual(added, [(header, succ) for succ in exits])
        for member in members:
            if member != header:
                self.assertNotIn(member, cfg)
        self.assertIn(header, cfg)

    def assertBlocksOnce(self, tree, labels):
        """Every input basic block shows up exactly once in the tree."""
        self.assertEqual(Counter(iter_basic_blocks(tree)), Counter(labels))


# Graphs shared by the test modules.

diamond = """
    blocks:
        'H': {type: basic}
        'A': {type: basic}
        'B': {type: basic}
        'S': {type: basic}
    edges:
        'H': ['A', 'B']
        'A': ['S']
        'B': ['S']
        'S': []
    conditions:
        'H': ['c', '!c']
    """

while_loop = """
    entry: 'E'
    blocks:
        'E': {type: basic}
        'H': {type: empty}
        'Bd': {type: basic}
        'X': {type: basic}
    edges:
        'E': ['H']
        'H': ['Bd', 'X']
        'Bd': ['H']
        'X': []
    conditions:
        'H': ['c', '!c']
    """

do_while_loop = """
    blocks:
        'E': {type: basic}
        'B1': {type: basic}
        'L': {type: basic}
        'X': {type: basic}
    edges:
        'E': ['B1']
        'B1': ['L']
        'L': ['B1', 'X']
        'X': []
    conditions:
        'L': ['c', '!c']
    """

endless_loop = """
    blocks:
        'E': {type: basic}
        'H': {type: basic}
        'A': {type: basic}
        'B': {type: basic}
        'X': {type: basic}
    edges:
        'E': ['H']
        'H': ['A']
        'A': ['B', 'X']
        'B': ['H']
        'X': []
    conditions:
        'A': ['c', '!c']
    """

# The loop body returns through 'R'.
loop_with_return = """
    entry: 'E'
    blocks:
        'E': {type: basic}
        'H': {type: empty}
        'A': {type: basic}
        'R': {type: basic}
        'X': {type: basic}
    edges:
        'E': ['H']
        'H': ['A', 'X']
        'A': ['R', 'H']
        'R': []
        'X': []
    conditions:
        'H': ['c', '!c']
        'A': ['d', '!d']
    """

switch = """
    blocks:
        'E': {type: basic}
        'S': {type: basic}
        'C1': {type: basic}
        'C2': {type: basic}
        'D': {type: basic}
        'J': {type: basic}
    edges:
        'E': ['S']
        'S': ['C1', 'C2', 'D']
        'C1': ['J']
        'C2': ['J']
        'D': ['J']
        'J': []
    conditions:
        'S':
            - {switch: x, values: [1]}
            - {switch: x, values: [2]}
            - {switch: x}
    """

# Two entries into the cycle between 'A' and 'B'.
irreducible = """
    blocks:
        'E': {type: basic}
        'A': {type: basic}
        'B': {type: basic}
    edges:
        'E': ['A', 'B']
        'A': ['B']
        'B': ['A']
    conditions:
        'E': ['c', '!c']
    """

# 'H' heads an acyclic region that is left towards 'S' under a condition.
guarded_exit = """
    blocks:
        'E': {type: basic}
        'H': {type: basic}
        'A': {type: basic}
        'R': {type: basic}
        'S': {type: basic}
    edges:
        'E': ['H', 'S']
        'H': ['A', 'S']
        'A': ['S', 'R']
        'R': []
        'S': []
    conditions:
        'E': ['c', '!c']
        'H': ['d', '!d']
        'A': ['!e', 'e']
    """

# The loop headed by 'H' is left for 'X' from 'H' and for 'Y' from 'L'.
two_exit_loop = """
    blocks:
        'E': {type: basic}
        'H': {type: basic}
        'L': {type: basic}
        'X': {type: basic}
        'Y': {type: basic}
    edges:
        'E': ['X', 'H']
        'H': ['X', 'L']
        'L': ['Y', 'H']
        'X': ['Y']
        'Y': []
    conditions:
        'E': ['a', '!a']
        'H': ['b', '!b']
        'L': ['c', '!c']
    """
