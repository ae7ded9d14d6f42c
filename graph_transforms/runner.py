import os
import re
import time
import datetime
import logging
from typing import List, Optional, Dict, Any, Tuple

from .core import TransformContext, TransformRegistry
from .errors import TransformError
from .utils import load_graph, save_graph, logger as custom_logger
from .utils.logger import LOG_FORMAT

_TRANSFORM_RE = re.compile(r"\s*([A-Za-z_][\w]*)\s*(?:\(([^)]*)\))?")


def _strip_quotes(value):
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_transforms_string(text: str) -> List[Tuple[str, Dict[str, List[str]]]]:
    """
    Parses a transform list such as 'remove_noop_split dilation2d_to_maxpool2d(ksize=3)'.

    Repeating a parameter collects every value:
        'foo(a=1, a=2)' -> [('foo', {'a': ['1', '2']})]

    Raises:
        ValueError: on text that is not a sequence of name(arg=value, ...) items
    """
    transforms = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        m = _TRANSFORM_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"Cannot parse transforms at: '{text[pos:]}'")
        name, args = m.group(1), m.group(2)
        params: Dict[str, List[str]] = {}
        if args and args.strip():
            for item in args.split(","):
                key, sep, value = item.partition("=")
                key = key.strip()
                if not sep or not key:
                    raise ValueError(f"Malformed parameter '{item.strip()}' for transform '{name}'")
                params.setdefault(key, []).append(_strip_quotes(value.strip()))
        transforms.append((name, params))
        pos = m.end()
        while pos < len(text) and text[pos] in " \t\n,":
            pos += 1
    return transforms


def _split_names(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [n.strip() for n in value.split(",") if n.strip()]
    return list(value)


class TransformPipeline:
    """
    A facade class to configure and run a sequence of graph transforms.
    Transforms run strictly in the given order; the first failure stops the run.
    """

    def __init__(
        self,
        input_graph: Optional[str] = None,
        output_graph: Optional[str] = None,
        graph_def=None,
        transforms=None,
        inputs=None,
        outputs=None,
        debug: bool = False,
        log_file: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            input_graph (str, optional): Path to input graph (.pb or .pbtxt).
            output_graph (str, optional): Path to save the transformed graph.
            graph_def (GraphDef, optional): Input graph_def object (takes priority over input_graph).
            transforms (str | list): Transform string ('a(k=v) b') or list of such items.
            inputs (str | list): Declared graph inputs. Never rewritten away.
            outputs (str | list): Declared graph outputs. Never rewritten away.
            debug (bool): Dump every intermediate graph. Default False.
            log_file (str): Path to log file.
            config (dict): Optional dictionary with the same keys. Constructor
                           arguments take precedence.
        """
        self.input_graph = input_graph
        self.output_graph = output_graph
        self.graph_def = graph_def
        self.transforms = transforms
        self.inputs = _split_names(inputs)
        self.outputs = _split_names(outputs)
        self.debug = debug
        self.log_file = log_file

        if config:
            self._apply_config(config)

        self.debug_dir = None
        self.resolved_transforms: List[Tuple[str, Dict[str, List[str]]]] = []

    def _apply_config(self, config):
        """Merges configuration dict into instance attributes."""
        if "input_graph" in config and not self.input_graph:
            self.input_graph = config["input_graph"]
        if "output_graph" in config and not self.output_graph:
            self.output_graph = config["output_graph"]
        if "transforms" in config and not self.transforms:
            self.transforms = config["transforms"]
        if "inputs" in config and not self.inputs:
            self.inputs = _split_names(config["inputs"])
        if "outputs" in config and not self.outputs:
            self.outputs = _split_names(config["outputs"])
        if "debug" in config:
            self.debug = config["debug"] or self.debug
        if "log_file" in config and not self.log_file:
            self.log_file = config["log_file"]

    def _setup_logging_and_debug(self):
        """Configures logging and creates debug directory."""
        if self.debug:
            timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
            self.debug_dir = f"run_{timestamp}"
            os.makedirs(self.debug_dir, exist_ok=True)
            if not self.log_file:
                self.log_file = os.path.join(self.debug_dir, "transform.log")

        if self.log_file:
            file_handler = logging.FileHandler(self.log_file)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            custom_logger.addHandler(file_handler)
            custom_logger.info(f"Logging to file: {self.log_file}")

    def _resolve_transforms(self):
        """Turns the configured transforms into (name, params) pairs and checks names."""
        if not self.transforms:
            raise ValueError("No transforms given.")
        if isinstance(self.transforms, str):
            resolved = parse_transforms_string(self.transforms)
        else:
            resolved = []
            for item in self.transforms:
                resolved.extend(parse_transforms_string(item))

        for name, _ in resolved:
            TransformRegistry.get(name)
        self.resolved_transforms = resolved

    def _load_input(self):
        # Priority: graph_def > input_graph
        if self.graph_def is not None:
            custom_logger.debug("Using provided graph_def object")
            return self.graph_def
        if self.input_graph:
            custom_logger.info(f"Loading graph from {self.input_graph}")
            try:
                return load_graph(self.input_graph)
            except Exception as e:
                custom_logger.error(f"Failed to load graph: {e}")
                raise
        raise ValueError("Either graph_def or input_graph must be provided.")

    def run(self):
        """Executes the transforms and returns the final GraphDef."""
        self._setup_logging_and_debug()
        self._resolve_transforms()
        graph_def = self._load_input()
        initial_node_count = len(graph_def.node)

        if self.debug_dir:
            save_graph(graph_def, os.path.join(self.debug_dir, "00_initial.pbtxt"))

        names = [name for name, _ in self.resolved_transforms]
        custom_logger.info(f"Applying {len(names)} transforms: {names}")
        if self.inputs or self.outputs:
            custom_logger.info(f"Declared inputs: {self.inputs}, outputs: {self.outputs}")

        context = TransformContext(self.inputs, self.outputs)
        stats = []
        start_time = time.time()

        for i, (name, params) in enumerate(self.resolved_transforms):
            transform_func = TransformRegistry.get(name)
            nodes_before = len(graph_def.node)
            step_start = time.time()
            try:
                graph_def = transform_func(graph_def, context.with_params(params))
            except Exception as e:
                custom_logger.error(f"Error applying transform '{name}': {e}")
                raise TransformError(name, e) from e
            stats.append((name, nodes_before, len(graph_def.node), time.time() - step_start))

            if self.debug_dir:
                save_graph(graph_def, os.path.join(self.debug_dir, f"{i + 1:02d}_{name}.pbtxt"))

        total_time = time.time() - start_time

        if self.output_graph:
            custom_logger.info(f"Saving transformed graph to {self.output_graph}")
            save_graph(graph_def, self.output_graph)

        self._log_final_summary(stats, initial_node_count, len(graph_def.node), total_time)
        return graph_def

    def _log_final_summary(self, stats, initial_node_count, final_node_count, total_time):
        custom_logger.info("=" * 70)
        custom_logger.info("TRANSFORM SUMMARY")
        custom_logger.info("=" * 70)
        custom_logger.info(f"{'Transform':<30} {'Nodes':>15} {'Time':>8}")
        custom_logger.info("-" * 70)
        for name, nodes_before, nodes_after, duration in stats:
            nodes_str = f"{nodes_before} -> {nodes_after}"
            custom_logger.info(f"  {name:<28} {nodes_str:>15} {duration:>7.3f}s")
        custom_logger.info("-" * 70)
        custom_logger.info(f"  Total time: {total_time:.3f}s")
        custom_logger.info(f"  Nodes: {initial_node_count} -> {final_node_count}")
        custom_logger.info("=" * 70)
