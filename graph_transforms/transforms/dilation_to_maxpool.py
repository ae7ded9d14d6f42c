"""
Dilation2D -> MaxPool
=====================

Replaces each Dilation2D with a MaxPool of the same name, so consumers need no
renaming. The filter input is dropped from the MaxPool; it stays in the graph.

    ksize    = [1, k, k, 1]   (parameter "ksize", default 2)
    strides  = copied from the Dilation2D
    padding  = copied from the Dilation2D

Control dependencies of the Dilation2D are carried over to the MaxPool.
"""

from ..core import Any, Op, RewriteResult, TransformRegistry, replace_matching_op_types
from ..utils.graph_utils import copy_node_attr, create_node, set_int_list_attr

_COPIED_ATTRS = ("strides", "padding", "use_cudnn_on_gpu", "T")


@TransformRegistry.register("dilation2d_to_maxpool2d")
def dilation2d_to_maxpool2d(graph_def, context):
    ksize = context.get_one_int_param("ksize", 2)
    pattern = Op("Dilation2D", Any(alias="input"), Any(alias="filter"), alias="dilation")

    def to_maxpool(match, required_names, graph):
        dilation = match["dilation"]
        maxpool = create_node(
            "MaxPool", dilation.name, inputs=[match.input_reference(0)], device=dilation.device
        )
        maxpool.input.extend(i for i in dilation.input if i.startswith("^"))
        set_int_list_attr(maxpool, "ksize", [1, ksize, ksize, 1])
        for attr_name in _COPIED_ATTRS:
            copy_node_attr(dilation, attr_name, maxpool)
        return RewriteResult([maxpool])

    return replace_matching_op_types(
        graph_def, context, pattern, to_maxpool, transform_name="dilation2d_to_maxpool2d"
    )
