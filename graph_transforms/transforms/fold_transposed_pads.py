"""
Fold Transposed Pads
====================

A Pad wrapped in a transpose pair that cancels out is rewritten to pad the
original tensor directly:

    Original:
        t1 = Transpose(x, [0,3,1,2])
        p  = Pad(t1, paddings)
        t2 = Transpose(p, [0,2,3,1])
        y  = Foo(t2)
    Transformed:
        p  = Pad(x, paddings')      paddings' rows = [r0, r2, r3, r1]
        y  = Foo(p)

t1 and both perm constants stay in the graph. t2 is removed and its consumers
read the new Pad.
"""

from ..core import Any, Op, RewriteResult, TransformRegistry, replace_matching_op_types
from ..utils.graph_utils import copy_node, get_tensor_attr, set_data_input, set_tensor_attr
from ..utils.logger import logger as logging

PERM_BEFORE = [0, 3, 1, 2]
PERM_AFTER = [0, 2, 3, 1]


@TransformRegistry.register("fold_transposed_pads")
def fold_transposed_pads(graph_def, context):
    pattern = Op(
        "Transpose",
        Op(
            "Pad",
            Op("Transpose", Any(alias="input"), Op("Const", alias="perm1"), alias="transpose1"),
            Op("Const", alias="paddings"),
            alias="pad",
        ),
        Op("Const", alias="perm2"),
        alias="transpose2",
    )

    def fold(match, required_names, graph):
        transpose2 = match["transpose2"]
        pad = match["pad"]
        paddings = match["paddings"]
        prefix = f"[fold_transposed_pads] Skipping replacement for {transpose2.name}"

        if not graph.has_only_consumers(pad.name, {transpose2.name}):
            logging.info(f"{prefix}: {pad.name} has other consumers")
            return None
        if not graph.has_only_consumers(paddings.name, {pad.name}):
            logging.info(f"{prefix}: {paddings.name} is shared outside the pattern")
            return None

        perm1 = get_tensor_attr(match["perm1"]).flatten().tolist()
        perm2 = get_tensor_attr(match["perm2"]).flatten().tolist()
        if perm1 != PERM_BEFORE or perm2 != PERM_AFTER:
            logging.info(f"{prefix}: unsupported perms {perm1}, {perm2}")
            return None

        paddings_value = get_tensor_attr(paddings)
        if paddings_value.shape != (4, 2):
            logging.info(f"{prefix}: paddings shape {paddings_value.shape} is not (4, 2)")
            return None

        new_paddings = copy_node(paddings)
        set_tensor_attr(new_paddings, "value", paddings_value[PERM_AFTER])
        new_pad = copy_node(pad)
        set_data_input(new_pad, 0, match.find("transpose1").input_reference(0))

        return RewriteResult(
            [
                copy_node(match["transpose1"]),
                copy_node(match["perm1"]),
                new_paddings,
                new_pad,
                copy_node(match["perm2"]),
            ],
            node_mapping={transpose2.name: pad.name},
        )

    return replace_matching_op_types(
        graph_def, context, pattern, fold, transform_name="fold_transposed_pads"
    )
