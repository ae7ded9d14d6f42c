"""
Pipeline Tests - 变换流水线
============================

1. parse_transforms_string syntax
2. TransformPipeline runs transforms in order, stops on the first error
3. Config dict handling and graph I/O
4. CLI entry point
"""

import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout

import tensorflow.compat.v1 as tf

from graph_transforms.errors import MalformedGraphError, TransformError
from graph_transforms.main import main
from graph_transforms.runner import TransformPipeline, parse_transforms_string
from graph_transforms.utils import create_node, load_graph, save_graph
from graph_transforms.utils.logger import logger as custom_logger
from tests.builders import dilation_graph, make_graph, nodes_by_name, split_graph

tf.disable_v2_behavior()


class TestParseTransforms(unittest.TestCase):
    def test_names_and_params(self):
        parsed = parse_transforms_string(
            "remove_noop_split  dilation2d_to_maxpool2d(ksize=3) foo(a=1, a='2', b=\"x\")"
        )
        self.assertEqual(
            parsed,
            [
                ("remove_noop_split", {}),
                ("dilation2d_to_maxpool2d", {"ksize": ["3"]}),
                ("foo", {"a": ["1", "2"], "b": ["x"]}),
            ],
        )

    def test_empty_parens(self):
        self.assertEqual(parse_transforms_string("foo()"), [("foo", {})])

    def test_malformed(self):
        with self.assertRaises(ValueError):
            parse_transforms_string("foo(a)")
        with self.assertRaises(ValueError):
            parse_transforms_string("foo(a=1")


class TestTransformPipeline(unittest.TestCase):
    def setUp(self):
        self._handlers = list(custom_logger.handlers)

    def tearDown(self):
        for handler in list(custom_logger.handlers):
            if handler not in self._handlers:
                custom_logger.removeHandler(handler)
                handler.close()

    def test_runs_transforms_in_order(self):
        graph_def = make_graph(*split_graph().node, *dilation_graph().node[1:])
        pipeline = TransformPipeline(
            graph_def=graph_def,
            transforms="remove_noop_split dilation2d_to_maxpool2d(ksize=3)",
        )
        result = nodes_by_name(pipeline.run())
        self.assertNotIn("s", result)
        self.assertEqual(result["dil"].op, "MaxPool")
        self.assertEqual(list(result["dil"].attr["ksize"].list.i), [1, 3, 3, 1])

    def test_outputs_are_protected(self):
        pipeline = TransformPipeline(
            graph_def=dilation_graph("out"),
            transforms=["dilation2d_to_maxpool2d"],
            outputs="out",
        )
        self.assertEqual(nodes_by_name(pipeline.run())["out"].op, "Dilation2D")

    def test_error_names_the_transform(self):
        graph_def = make_graph(create_node("Relu", "r", inputs=["ghost"]))
        pipeline = TransformPipeline(graph_def=graph_def, transforms="remove_noop_split")
        with self.assertRaises(TransformError) as cm:
            pipeline.run()
        self.assertEqual(cm.exception.transform_name, "remove_noop_split")
        self.assertIsInstance(cm.exception.cause, MalformedGraphError)

    def test_unknown_transform(self):
        pipeline = TransformPipeline(graph_def=split_graph(), transforms="no_such_transform")
        with self.assertRaises(ValueError):
            pipeline.run()

    def test_missing_input(self):
        with self.assertRaises(ValueError):
            TransformPipeline(transforms="remove_noop_split").run()

    def test_config_and_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            in_path = os.path.join(tmp, "in.pb")
            out_path = os.path.join(tmp, "out.pbtxt")
            save_graph(split_graph(), in_path)
            config = {
                "input_graph": in_path,
                "output_graph": out_path,
                "transforms": ["remove_noop_split"],
                "outputs": ["s"],
            }
            TransformPipeline(outputs=["y"], config=config).run()
            self.assertNotIn("s", nodes_by_name(load_graph(out_path)))

    def test_debug_dumps_every_step(self):
        cwd = os.getcwd()
        with tempfile.TemporaryDirectory() as tmp:
            os.chdir(tmp)
            try:
                pipeline = TransformPipeline(
                    graph_def=split_graph(), transforms="remove_noop_split", debug=True
                )
                pipeline.run()
                dumped = sorted(os.listdir(pipeline.debug_dir))
            finally:
                os.chdir(cwd)
        self.assertIn("00_initial.pbtxt", dumped)
        self.assertIn("01_remove_noop_split.pbtxt", dumped)
        self.assertIn("transform.log", dumped)


class TestMain(unittest.TestCase):
    def test_list(self):
        out = io.StringIO()
        with redirect_stdout(out):
            self.assertEqual(main(["--list"]), 0)
        self.assertIn("remove_noop_split", out.getvalue().split())

    def test_failure_exits_with_one(self):
        with self.assertRaises(SystemExit) as cm:
            main(["--transforms", "remove_noop_split"])
        self.assertEqual(cm.exception.code, 1)

    def test_round_trip_through_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            in_path = os.path.join(tmp, "in.pbtxt")
            out_path = os.path.join(tmp, "out.pb")
            save_graph(split_graph(), in_path)
            code = main(
                [
                    "--in_graph", in_path,
                    "--out_graph", out_path,
                    "--outputs", "y,z",
                    "--transforms", "remove_noop_split",
                ]
            )
            self.assertEqual(code, 0)
            self.assertNotIn("s", nodes_by_name(load_graph(out_path)))


if __name__ == "__main__":
    unittest.main()
