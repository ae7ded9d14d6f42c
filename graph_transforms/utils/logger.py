import logging
import functools
import time

# Define Log Levels
DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR

LOG_FORMAT = (
    "%(asctime)s - [%(levelname)s] - %(name)s - [%(filename)s:%(lineno)d] - %(message)s"
)


# Singleton logger setup
def get_logger(name="GraphTransforms"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


logger = get_logger()


def set_log_level(level):
    logger.setLevel(level)


def trace_rewriter(func):
    """Aspect: Log when a rewrite policy produced (or declined) a replacement."""

    @functools.wraps(func)
    def wrapper(match, required_names, graph, *args, **kwargs):
        start_time = time.time()
        result = func(match, required_names, graph, *args, **kwargs)
        duration = (time.time() - start_time) * 1000

        if result is not None:
            # Handle both list format and RewriteResult format
            node_count = len(result.new_nodes) if hasattr(result, "new_nodes") else len(result)
            rename_count = len(getattr(result, "renames", []))
            logger.info(
                f"Rewriter {func.__name__} matched at {match.node.name}, "
                f"generated {node_count} nodes, {rename_count} renames ({duration:.2f}ms)"
            )
        else:
            logger.debug(f"Rewriter {func.__name__} skipped {match.node.name}")
        return result

    return wrapper


def log_transform(func):
    """Aspect: Log one transform invocation over a graph."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        transform_name = kwargs.get("transform_name")
        prefix = f"[{transform_name}] " if transform_name else ""
        original_node_count = len(self.graph.node_list)
        logger.info(f"{prefix}Starting graph transform... ({original_node_count} nodes)")
        start_time = time.time()

        result = func(self, *args, **kwargs)

        duration = time.time() - start_time
        logger.info(
            f"{prefix}Transform finished in {duration:.3f}s. "
            f"Matches: {len(result.matches)}, rejected: {len(result.rejected)}. "
            f"Nodes: {original_node_count} -> {len(result.graph_def.node)}"
        )
        return result

    return wrapper


def log_match(func):
    """Aspect: Log matching attempts (DEBUG level)."""

    @functools.wraps(func)
    def wrapper(self, node, graph, *args, **kwargs):
        res = func(self, node, graph, *args, **kwargs)
        if res is not None:
            logger.debug(f"Matched pattern on node: {node.name} (Op: {node.op})")
        return res

    return wrapper
