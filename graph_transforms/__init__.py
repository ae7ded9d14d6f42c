from .core import (
    GraphModel,
    GraphTransformer,
    NodeMatch,
    OpPattern,
    WildcardPattern,
    VariadicPattern,
    Op,
    Any,
    Variadic,
    RewriteResult,
    TransformContext,
    TransformRegistry,
    TransformResult,
    replace_matching_op_types,
    transform_graph,
)
from .errors import (
    GraphTransformError,
    MalformedGraphError,
    InvariantViolation,
    AttrTypeMismatch,
    TransformError,
)
from .utils import (
    create_node,
    create_const_node,
    load_graph,
    save_graph,
)
from .runner import TransformPipeline
from .utils.logger import set_log_level, DEBUG, INFO, WARNING, ERROR

# Import transforms to register them
from . import transforms

__all__ = [
    "GraphModel",
    "GraphTransformer",
    "NodeMatch",
    "OpPattern",
    "WildcardPattern",
    "VariadicPattern",
    "Op",
    "Any",
    "Variadic",
    "RewriteResult",
    "TransformContext",
    "TransformRegistry",
    "TransformResult",
    "replace_matching_op_types",
    "transform_graph",
    "GraphTransformError",
    "MalformedGraphError",
    "InvariantViolation",
    "AttrTypeMismatch",
    "TransformError",
    "create_node",
    "create_const_node",
    "load_graph",
    "save_graph",
    "TransformPipeline",
    "set_log_level",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
]
