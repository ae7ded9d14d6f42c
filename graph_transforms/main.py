import argparse
import json
import sys

from . import transforms  # Register all transforms
from .core import TransformRegistry
from .runner import TransformPipeline
from .utils.logger import logger as custom_logger

# Prevent unused import warning
_ = transforms


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Graph Transforms CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run transforms on a graph
  python -m graph_transforms.main --in_graph in.pb --out_graph out.pb \\
      --outputs logits --transforms "remove_noop_split dilation2d_to_maxpool2d(ksize=3)"

  # Use a config file, overriding the output path
  python -m graph_transforms.main --config config.json --out_graph out.pbtxt

Config file format (JSON):
  {
    "input_graph": "path/to/input.pb",
    "output_graph": "path/to/output.pb",
    "inputs": ["input"],
    "outputs": ["logits"],
    "transforms": ["remove_noop_split", "fold_transposed_pads"],
    "debug": false,
    "log_file": "transform.log"
  }
        """,
    )
    parser.add_argument("--config", help="Path to JSON configuration file")
    parser.add_argument("--in_graph", help="Input graph path (.pb or .pbtxt)")
    parser.add_argument("--out_graph", help="Output graph path (.pb or .pbtxt)")
    parser.add_argument("--inputs", help="Comma-separated list of graph input names")
    parser.add_argument("--outputs", help="Comma-separated list of graph output names")
    parser.add_argument("--transforms", help="Transforms to apply, e.g. 'a b(k=v)'")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (dump intermediate graphs)",
    )
    parser.add_argument("--log-file", help="Path to log file")
    parser.add_argument("--list", action="store_true", help="List available transforms and exit")
    args = parser.parse_args(argv)

    if args.list:
        for name in TransformRegistry.list_available():
            print(name)
        return 0

    config = {}
    if args.config:
        try:
            with open(args.config, "r") as f:
                config = json.load(f)
        except Exception as e:
            custom_logger.error(f"Failed to load config file: {e}")
            sys.exit(1)

    try:
        pipeline = TransformPipeline(
            input_graph=args.in_graph,
            output_graph=args.out_graph,
            transforms=args.transforms,
            inputs=args.inputs,
            outputs=args.outputs,
            debug=args.debug,
            log_file=args.log_file,
            config=config,
        )
        pipeline.run()
    except Exception as e:
        custom_logger.error(f"Transform failed: {e}")
        sys.exit(1)
    return 0


if __name__ == "__main__":
    main()
