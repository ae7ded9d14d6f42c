"""
Graph Transforms
================

Rewrites registered with TransformRegistry, grouped by what they do.

transforms/
├── noop_removal.py          # remove_noop_split, remove_noop_padv2
├── dilation_to_maxpool.py   # dilation2d_to_maxpool2d
├── swap_transpose.py        # swap_trans_relu, swap_trans_mul_add
└── fold_transposed_pads.py  # fold_transposed_pads

Each transform is a free function fn(graph_def, context) -> GraphDef and can be
run by name through transform_graph() or TransformPipeline.
"""

from .noop_removal import remove_noop_split, remove_noop_padv2
from .dilation_to_maxpool import dilation2d_to_maxpool2d
from .swap_transpose import swap_trans_relu, swap_trans_mul_add
from .fold_transposed_pads import fold_transposed_pads

__all__ = [
    "remove_noop_split",
    "remove_noop_padv2",
    "dilation2d_to_maxpool2d",
    "swap_trans_relu",
    "swap_trans_mul_add",
    "fold_transposed_pads",
]
