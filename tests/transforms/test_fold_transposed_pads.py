"""
Fold Transposed Pads Tests
==========================
"""

import unittest

import numpy as np
import tensorflow.compat.v1 as tf

from graph_transforms.core import TransformContext
from graph_transforms.transforms.fold_transposed_pads import fold_transposed_pads
from graph_transforms.utils import create_node, get_tensor_attr
from tests.builders import nodes_by_name, transposed_pad_graph

tf.disable_v2_behavior()


class TestFoldTransposedPads(unittest.TestCase):
    def test_pad_fused_through_transposes(self):
        result = nodes_by_name(fold_transposed_pads(transposed_pad_graph(), TransformContext()))

        self.assertNotIn("t2", result)
        self.assertEqual(list(result["y"].input), ["p"])
        self.assertEqual(result["p"].op, "Pad")
        self.assertEqual(list(result["p"].input), ["x", "paddings"])

        paddings = get_tensor_attr(result["paddings"])
        self.assertEqual(paddings.dtype, np.int32)
        np.testing.assert_array_equal(paddings, [[0, 0], [2, 2], [3, 3], [1, 1]])

        for kept in ("t1", "perm1", "perm2"):
            self.assertIn(kept, result)

    def test_unsupported_perms(self):
        graph_def = transposed_pad_graph(perm2=(0, 3, 1, 2))
        self.assertEqual(fold_transposed_pads(graph_def, TransformContext()), graph_def)

    def test_pad_with_other_consumers(self):
        graph_def = transposed_pad_graph()
        graph_def.node.add().CopyFrom(create_node("Identity", "other", inputs=["p"]))
        self.assertEqual(fold_transposed_pads(graph_def, TransformContext()), graph_def)

    def test_protected_transpose(self):
        graph_def = transposed_pad_graph()
        result = fold_transposed_pads(graph_def, TransformContext(output_names=["t2"]))
        self.assertEqual(result, graph_def)


if __name__ == "__main__":
    unittest.main()
