"""
Transpose Sinking Transforms
============================

Move an NCHW -> NHWC style Transpose below element-wise work so that the
element-wise ops run in the original layout.

swap_trans_relu
---------------
    Original:                      Transformed:
        t = Transpose(x, perm)         r = Relu(x)
        r = Relu(t)                    t = Transpose(r, perm)
        y = Foo(r)                     y = Foo(t)

Both nodes keep their names. Consumers of the Relu (other than the Transpose)
are redirected to the Transpose. Skipped when the Transpose feeds anything
besides the Relu.

swap_trans_mul_add
------------------
    Original:                            Transformed:
        t = Transpose(x, [0,3,1,2])          m = Mul(x, w')
        m = Mul(t, w)                        a = AddV2(m, b')
        a = AddV2(m, b)                      t = Transpose(a, [0,3,1,2])

w and b must be rank 4 (rewritten with axes [0,2,3,1]) or hold a single
element (kept as is). Skipped when an interior node or constant is shared
with nodes outside the match.
"""

import numpy as np

from ..core import Any, Op, RewriteResult, TransformRegistry, replace_matching_op_types
from ..utils.graph_utils import copy_node, get_tensor_attr, set_data_input, set_tensor_attr
from ..utils.logger import logger as logging

NCHW_TO_NHWC = (0, 2, 3, 1)
NHWC_TO_NCHW = [0, 3, 1, 2]


def _to_channels_last(array):
    """Rank-4 arrays are permuted NCHW -> NHWC, single elements pass through."""
    if array.ndim == 4:
        return np.transpose(array, NCHW_TO_NHWC)
    if array.size == 1:
        return array
    return None


@TransformRegistry.register("swap_trans_relu")
def swap_trans_relu(graph_def, context):
    pattern = Op(
        "Relu",
        Op("Transpose", Any(alias="input"), Op("Const", alias="perm"), alias="transpose"),
        alias="relu",
    )

    def swap(match, required_names, graph):
        relu = match["relu"]
        transpose = match["transpose"]
        if not graph.has_only_consumers(transpose.name, {relu.name}):
            logging.info(
                f"[swap_trans_relu] Skipping replacement for {relu.name}: "
                f"{transpose.name} has other consumers"
            )
            return None

        new_relu = copy_node(relu)
        set_data_input(new_relu, 0, match.find("transpose").input_reference(0))
        new_transpose = copy_node(transpose)
        set_data_input(new_transpose, 0, relu.name)

        return RewriteResult(
            [new_relu, copy_node(match["perm"]), new_transpose],
            node_mapping={relu.name: transpose.name},
            keep_inputs={relu.name: {transpose.name}},
        )

    return replace_matching_op_types(
        graph_def, context, pattern, swap, transform_name="swap_trans_relu"
    )


@TransformRegistry.register("swap_trans_mul_add")
def swap_trans_mul_add(graph_def, context):
    pattern = Op(
        "AddV2",
        Op(
            "Mul",
            Op("Transpose", Any(alias="input"), Op("Const", alias="perm"), alias="transpose"),
            Op("Const", alias="weights"),
            alias="mul",
        ),
        Op("Const", alias="bias"),
        alias="add",
    )

    def swap(match, required_names, graph):
        add = match["add"]
        transpose = match["transpose"]
        prefix = f"[swap_trans_mul_add] Skipping replacement for {add.name}"

        internal = match.consumed_names
        for alias in ("transpose", "mul", "weights", "bias"):
            node = match[alias]
            if not graph.has_only_consumers(node.name, internal):
                logging.info(f"{prefix}: {node.name} is shared outside the pattern")
                return None

        perm = get_tensor_attr(match["perm"]).flatten().tolist()
        if perm != NHWC_TO_NCHW:
            logging.info(f"{prefix}: unsupported perm {perm}")
            return None

        new_consts = []
        for alias in ("weights", "bias"):
            node = match[alias]
            value = _to_channels_last(get_tensor_attr(node))
            if value is None:
                logging.info(f"{prefix}: {node.name} is neither rank 4 nor a single element")
                return None
            new_const = copy_node(node)
            set_tensor_attr(new_const, "value", value)
            new_consts.append(new_const)
        new_weights, new_bias = new_consts

        new_mul = copy_node(match["mul"])
        set_data_input(new_mul, 0, match.find("transpose").input_reference(0))
        new_add = copy_node(add)
        new_transpose = copy_node(transpose)
        set_data_input(new_transpose, 0, add.name)

        return RewriteResult(
            [new_weights, new_mul, new_bias, new_add, copy_node(match["perm"]), new_transpose],
            node_mapping={add.name: transpose.name},
            keep_inputs={add.name: {transpose.name}},
        )

    return replace_matching_op_types(
        graph_def, context, pattern, swap, transform_name="swap_trans_mul_add"
    )
