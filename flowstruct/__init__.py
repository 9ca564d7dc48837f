from flowstruct.core.datastructures.ast_nodes import (  # noqa: F401
    BasicBlock,
    Break,
    Cond,
    Continue,
    Endless,
    Loop,
    PostChecked,
    PreChecked,
    Seq,
    Switch,
)
from flowstruct.core.datastructures.cfg import (  # noqa: F401
    ControlFlowGraph,
    EdgeIndex,
    NodeIndex,
)
from flowstruct.core.datastructures.conditions import (  # noqa: F401
    And,
    Not,
    Or,
    Simple,
    SwitchCase,
)
from flowstruct.core.errors import (  # noqa: F401
    MalformedInput,
    StructuringError,
    StructuringStuck,
)
from flowstruct.core.structuring import (  # noqa: F401
    structure,
    structure_whole,
)
