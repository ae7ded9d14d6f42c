"""
Dispatch Tests - 变换注册与上下文
==================================
"""

import unittest
import tensorflow.compat.v1 as tf

import graph_transforms  # noqa: F401  (registers the built-in transforms)
from graph_transforms.core import TransformContext, TransformRegistry, transform_graph
from tests.builders import split_graph, nodes_by_name

tf.disable_v2_behavior()

BUILTIN_TRANSFORMS = [
    "dilation2d_to_maxpool2d",
    "fold_transposed_pads",
    "remove_noop_padv2",
    "remove_noop_split",
    "swap_trans_mul_add",
    "swap_trans_relu",
]


class TestTransformContext(unittest.TestCase):
    def test_params_are_lists_of_strings(self):
        context = TransformContext(params={"ksize": 3, "names": ["a", "b"]})
        self.assertEqual(context.params, {"ksize": ["3"], "names": ["a", "b"]})
        self.assertEqual(context.get_one_int_param("ksize", 2), 3)
        self.assertEqual(context.get_one_int_param("other", 2), 2)
        self.assertEqual(context.get_one_param("other", "x"), "x")

    def test_multiple_values_for_one_param(self):
        context = TransformContext(params={"names": ["a", "b"]})
        with self.assertRaises(ValueError):
            context.get_one_param("names")

    def test_non_integer_param(self):
        context = TransformContext(params={"ksize": "big"})
        with self.assertRaises(ValueError):
            context.get_one_int_param("ksize")

    def test_bool_param(self):
        context = TransformContext(params={"a": "true", "b": "0", "c": "False", "d": "1"})
        self.assertTrue(context.get_bool_param("a"))
        self.assertFalse(context.get_bool_param("b"))
        self.assertFalse(context.get_bool_param("c"))
        self.assertTrue(context.get_bool_param("d"))
        self.assertIs(context.get_bool_param("missing", False), False)
        self.assertIsNone(context.get_bool_param("missing"))

    def test_invalid_bool_param(self):
        context = TransformContext(params={"flag": "yes"})
        with self.assertRaises(ValueError):
            context.get_bool_param("flag")

    def test_required_names_use_base_node_names(self):
        context = TransformContext(input_names=["x:0"], output_names=["^y", "z:1"])
        self.assertEqual(context.required_names, {"x", "y", "z"})

    def test_with_params_keeps_declared_names(self):
        context = TransformContext(["x"], ["y"]).with_params({"ksize": 3})
        self.assertEqual(context.input_names, ["x"])
        self.assertEqual(context.output_names, ["y"])
        self.assertEqual(context.get_one_int_param("ksize"), 3)


class TestTransformRegistry(unittest.TestCase):
    def test_builtin_transforms_registered(self):
        available = TransformRegistry.list_available()
        for name in BUILTIN_TRANSFORMS:
            self.assertIn(name, available)

    def test_unknown_transform(self):
        with self.assertRaises(ValueError):
            TransformRegistry.get("no_such_transform")
        with self.assertRaises(ValueError):
            transform_graph(split_graph(), "no_such_transform")

    def test_duplicate_registration(self):
        with self.assertRaises(ValueError):
            TransformRegistry.register("remove_noop_split")(lambda graph_def, context: graph_def)

    def test_transform_graph_by_name(self):
        result = transform_graph(split_graph(), "remove_noop_split")
        self.assertNotIn("s", nodes_by_name(result))


if __name__ == "__main__":
    unittest.main()
