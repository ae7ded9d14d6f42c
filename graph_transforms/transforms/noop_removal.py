"""
No-op Removal Transforms
========================

remove_noop_split
-----------------
A Split with num_split == 1 returns its value input unchanged. The Split is
deleted and every reference to it is redirected to the value input, keeping
that input's output index:

    Original:
        s = Split(dim, x:1, num_split=1)
        y = Relu(s:0)
    Transformed:
        y = Relu(x:1)

Split nodes whose num_split is not an int are skipped, not rejected as errors.

remove_noop_padv2
-----------------
Every PadV2 is removed and its consumers read the tensor it was padding.
Paddings and constant_values inputs are left in place.
"""

from ..core import Any, Op, RewriteResult, TransformRegistry, replace_matching_op_types
from ..errors import AttrTypeMismatch
from ..utils.graph_utils import get_int_attr
from ..utils.logger import logger as logging


@TransformRegistry.register("remove_noop_split")
def remove_noop_split(graph_def, context):
    pattern = Op("Split", Any(alias="split_dim"), Any(alias="value"), alias="split")

    def remove_split(match, required_names, graph):
        split_node = match["split"]
        try:
            num_split = get_int_attr(split_node, "num_split", None)
        except AttrTypeMismatch as e:
            logging.info(f"[remove_noop_split] Skipping replacement for {split_node.name}: {e}")
            return None
        if num_split != 1:
            logging.info(
                f"[remove_noop_split] Skipping replacement for {split_node.name}: "
                f"num_split is {num_split}"
            )
            return None

        # Split(split_dim, value): the value is the second data input
        return RewriteResult([], node_mapping={split_node.name: match.input_reference(1)})

    return replace_matching_op_types(
        graph_def, context, pattern, remove_split, transform_name="remove_noop_split"
    )


@TransformRegistry.register("remove_noop_padv2")
def remove_noop_padv2(graph_def, context):
    pattern = Op("PadV2", Any(alias="input"), Any(alias="paddings"), Any(alias="constant_values"),
                 alias="pad")

    def remove_pad(match, required_names, graph):
        pad_node = match["pad"]
        return RewriteResult([], node_mapping={pad_node.name: match.input_reference(0)})

    return replace_matching_op_types(
        graph_def, context, pattern, remove_pad, transform_name="remove_noop_padv2"
    )
