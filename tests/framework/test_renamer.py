"""
Reference Renamer Tests - 引用重定向
=====================================

rename_node_inputs keeps control markers and output indices, honours
per-consumer exclusions and never follows renames transitively.
"""

import unittest
import tensorflow.compat.v1 as tf

from graph_transforms.errors import InvariantViolation
from graph_transforms.utils import RenameEntry, create_node, rename_node_inputs
from tests.builders import make_graph, nodes_by_name, placeholder

tf.disable_v2_behavior()


def consumer_graph(*inputs):
    return make_graph(
        placeholder("new"),
        create_node("Unpack", "old"),
        create_node("IdentityN", "user", inputs=list(inputs)),
    )


def renamed_inputs(graph_def, renames, consumer="user"):
    return list(nodes_by_name(rename_node_inputs(graph_def, renames))[consumer].input)


class TestRenameNodeInputs(unittest.TestCase):
    def test_data_and_control_references(self):
        graph_def = consumer_graph("old", "old:0", "^old")
        renames = {"old": RenameEntry("old", "new")}
        self.assertEqual(renamed_inputs(graph_def, renames), ["new", "new", "^new"])

    def test_output_index_is_kept(self):
        graph_def = consumer_graph("old:2")
        renames = {"old": RenameEntry("old", "new")}
        self.assertEqual(renamed_inputs(graph_def, renames), ["new:2"])

    def test_indexed_target(self):
        graph_def = consumer_graph("old", "^old")
        renames = {"old": RenameEntry("old", "new:1")}
        self.assertEqual(renamed_inputs(graph_def, renames), ["new:1", "^new"])

    def test_indexed_reference_to_indexed_target(self):
        graph_def = consumer_graph("old:2")
        renames = {"old": RenameEntry("old", "new:1")}
        with self.assertRaises(InvariantViolation):
            rename_node_inputs(graph_def, renames)

    def test_control_target_is_rejected(self):
        graph_def = consumer_graph("old")
        renames = {"old": RenameEntry("old", "^new")}
        with self.assertRaises(InvariantViolation):
            rename_node_inputs(graph_def, renames)

    def test_excluded_consumers_keep_reference(self):
        graph_def = consumer_graph("old")
        renames = {"old": RenameEntry("old", "new", keep_for={"user"})}
        self.assertEqual(renamed_inputs(graph_def, renames), ["old"])

    def test_single_pass(self):
        graph_def = make_graph(
            placeholder("c"),
            create_node("Relu", "b", inputs=["c"]),
            create_node("Relu", "a", inputs=["b"]),
            create_node("Relu", "user", inputs=["a", "b"]),
        )
        renames = {"a": RenameEntry("a", "b"), "b": RenameEntry("b", "c")}
        self.assertEqual(renamed_inputs(graph_def, renames), ["b", "c"])

    def test_unrelated_references_untouched(self):
        graph_def = consumer_graph("new:3", "^new")
        renames = {"old": RenameEntry("old", "new")}
        self.assertEqual(renamed_inputs(graph_def, renames), ["new:3", "^new"])

    def test_input_graph_not_modified(self):
        graph_def = consumer_graph("old")
        rename_node_inputs(graph_def, {"old": RenameEntry("old", "new")})
        self.assertEqual(list(nodes_by_name(graph_def)["user"].input), ["old"])


if __name__ == "__main__":
    unittest.main()
