import collections
from typing import Dict, List, Optional, Set

import tensorflow.compat.v1 as tf

from .errors import InvariantViolation, MalformedGraphError
from .utils.logger import (
    logger as logging,
    trace_rewriter,
    log_transform,
    log_match,
)
from .utils.graph_utils import (
    RenameEntry,
    build_consumer_index,
    copy_graph_header,
    copy_node,
    data_inputs,
    find_dangling_inputs,
    find_duplicate_names,
    format_names,
    node_name_from_input,
    rename_node_inputs,
)


class GraphModel:
    """
    Read-only view of a GraphDef used during one transform invocation.
    Holds the original node order, a name index and a consumer index.
    """

    def __init__(self, graph_def: tf.GraphDef, required_names=()):
        self.graph_def = graph_def
        self.node_list: List[tf.NodeDef] = list(graph_def.node)
        self.nodes: Dict[str, tf.NodeDef] = {node.name: node for node in self.node_list}
        self.consumers: Dict[str, List[str]] = build_consumer_index(self.node_list)
        self.required_names = frozenset(required_names)

    def validate(self):
        """Raises MalformedGraphError if names collide or an input is dangling."""
        duplicates = find_duplicate_names(self.node_list)
        if duplicates:
            raise MalformedGraphError(f"Duplicate node names: {format_names(duplicates)}")
        dangling = find_dangling_inputs(self.graph_def)
        if dangling:
            raise MalformedGraphError(
                "Input graph references missing nodes: "
                + format_names(f"{consumer} -> {ref}" for consumer, ref in dangling)
            )

    def get_node(self, input_name: str) -> Optional[tf.NodeDef]:
        """Resolves an input reference ('a', 'a:1', '^a') to its node."""
        return self.nodes.get(node_name_from_input(input_name))

    def has_only_consumers(self, node_name: str, allowed: Set[str]) -> bool:
        """True if every consumer of node_name is in allowed."""
        return all(consumer in allowed for consumer in self.consumers.get(node_name, []))


class NodeMatch:
    """
    Read-only tree mirroring the pattern that produced it.

    `node` is the matched NodeDef, `inputs` holds one child match per matched
    data input. Wildcard leaves have `is_leaf=True`: they are read by the
    rewrite policy but stay outside the rewritten region.
    """

    __slots__ = ("node", "inputs", "alias", "is_leaf")

    def __init__(self, node, inputs=(), alias=None, is_leaf=False):
        self.node = node
        self.inputs = tuple(inputs)
        self.alias = alias
        self.is_leaf = is_leaf

    def __getitem__(self, alias) -> tf.NodeDef:
        found = self.find(alias)
        if found is None:
            raise KeyError(f"No node matched with alias '{alias}'")
        return found.node

    def get(self, alias, default=None):
        found = self.find(alias)
        return found.node if found is not None else default

    def find(self, alias) -> Optional["NodeMatch"]:
        for sub_match in self.iter_matches():
            if sub_match.alias == alias:
                return sub_match
        return None

    def get_all(self, alias) -> List[tf.NodeDef]:
        """All nodes matched under alias (e.g. a Variadic group), in input order."""
        return [m.node for m in self.iter_matches() if m.alias == alias]

    def input_reference(self, index) -> str:
        """Reference string the matched node uses for its index-th data input."""
        return data_inputs(self.node)[index]

    def iter_matches(self):
        yield self
        for child in self.inputs:
            yield from child.iter_matches()

    def iter_nodes(self):
        for sub_match in self.iter_matches():
            yield sub_match.node

    @property
    def consumed_names(self) -> Set[str]:
        return {m.node.name for m in self.iter_matches() if not m.is_leaf}

    @property
    def boundary_names(self) -> Set[str]:
        leaves = {m.node.name for m in self.iter_matches() if m.is_leaf}
        return leaves - self.consumed_names

    @property
    def all_names(self) -> Set[str]:
        return {m.node.name for m in self.iter_matches()}

    def __repr__(self):
        if not self.inputs:
            return f"{self.node.op}:{self.node.name}"
        return f"{self.node.op}:{self.node.name}({', '.join(map(repr, self.inputs))})"


class _MatchState:
    """Nodes unavailable to the matcher during one scan."""

    def __init__(self, excluded=(), pinned=()):
        self.excluded = excluded  # consumed by an accepted match
        self.pinned = pinned  # boundary leaves of an accepted match


class Pattern:
    def __init__(self, alias=None):
        self.alias = alias

    @log_match
    def match(
        self,
        node: tf.NodeDef,
        graph: GraphModel,
        excluded=frozenset(),
        pinned=frozenset(),
    ) -> Optional[NodeMatch]:
        """
        Attempt to match this pattern with `node` as its root.

        Returns:
            NodeMatch on success, None when the structure does not match.
        """
        if node.name in excluded or node.name in pinned:
            return None
        return self._match_internal(node, graph, _MatchState(excluded, pinned), True)

    def _match_internal(self, node, graph, state, is_root=False):
        raise NotImplementedError()


class WildcardPattern(Pattern):
    """Matches any node without looking at its inputs."""

    def _match_internal(self, node, graph, state, is_root=False):
        if node.name in state.excluded:
            return None
        return NodeMatch(node, (), self.alias, is_leaf=not is_root)

    def __repr__(self):
        return "*"


class OpPattern(Pattern):
    def __init__(self, op_type, inputs=None, alias=None):
        super().__init__(alias)
        self.op_type = op_type
        self.inputs = inputs or []  # List of Pattern

    def _match_internal(self, node, graph, state, is_root=False):
        if node.name in state.excluded or node.name in state.pinned:
            return None
        if node.op != self.op_type:
            return None

        # No declared inputs: any arity, no recursion
        if not self.inputs:
            return NodeMatch(node, (), self.alias)

        # Control dependencies are never matched against input patterns
        node_inputs = data_inputs(node)

        variadic_idx = self._find_variadic_pattern()
        if variadic_idx is None:
            if len(node_inputs) != len(self.inputs):
                return None
            children = []
            for input_name, input_pattern in zip(node_inputs, self.inputs):
                child = self._match_single_input(input_name, input_pattern, graph, state)
                if child is None:
                    return None
                children.append(child)
        else:
            children = self._match_variadic_inputs(node_inputs, graph, state, variadic_idx)
            if children is None:
                return None

        return NodeMatch(node, children, self.alias)

    def _find_variadic_pattern(self):
        """Find index of variadic pattern in inputs, or None if no variadic."""
        for i, pattern in enumerate(self.inputs):
            if isinstance(pattern, VariadicPattern):
                return i
        return None

    def _match_single_input(self, input_name, input_pattern, graph, state, alias=None):
        input_node = graph.get_node(input_name)
        if input_node is None:
            return None
        child = input_pattern._match_internal(input_node, graph, state)
        if child is not None and child.alias is None and alias is not None:
            child.alias = alias
        return child

    def _match_variadic_inputs(self, node_inputs, graph, state, variadic_idx):
        """Match data inputs when a variadic pattern is present."""
        variadic_pattern = self.inputs[variadic_idx]
        min_count = variadic_pattern.min_count
        max_count = (
            variadic_pattern.max_count
            if variadic_pattern.max_count is not None
            else float("inf")
        )

        fixed_before = variadic_idx
        fixed_after = len(self.inputs) - variadic_idx - 1
        min_total = fixed_before + min_count + fixed_after
        max_total = fixed_before + max_count + fixed_after

        if not (min_total <= len(node_inputs) <= max_total):
            return None

        variadic_count = len(node_inputs) - fixed_before - fixed_after
        pairs = []
        for i in range(fixed_before):
            pairs.append((node_inputs[i], self.inputs[i], None))
        for i in range(variadic_count):
            pairs.append(
                (node_inputs[fixed_before + i], variadic_pattern.pattern, variadic_pattern.alias)
            )
        for i in range(fixed_after):
            pairs.append(
                (
                    node_inputs[fixed_before + variadic_count + i],
                    self.inputs[variadic_idx + 1 + i],
                    None,
                )
            )

        children = []
        for input_name, input_pattern, alias in pairs:
            child = self._match_single_input(input_name, input_pattern, graph, state, alias)
            if child is None:
                return None
            children.append(child)
        return children

    def __repr__(self):
        if not self.inputs:
            return self.op_type
        return f"{self.op_type}({', '.join(map(repr, self.inputs))})"


class VariadicPattern(Pattern):
    """Matches zero or more consecutive inputs matching the same pattern.

    This is used within OpPattern.inputs to indicate that the operator
    can accept a variable number of inputs matching the specified pattern.
    """

    def __init__(self, pattern, min_count=0, max_count=None, alias=None):
        super().__init__(alias)
        self.pattern = pattern
        self.min_count = min_count
        self.max_count = max_count

    def _match_internal(self, node, graph, state, is_root=False):
        raise NotImplementedError(
            "VariadicPattern should only be used within OpPattern.inputs"
        )

    def __repr__(self):
        return f"{self.pattern!r}..."


# Helper functions to build patterns
def Op(op_type, *inputs, alias=None):
    if op_type == "*":
        if inputs:
            raise ValueError("Wildcard patterns cannot declare inputs")
        return WildcardPattern(alias)
    return OpPattern(op_type, list(inputs), alias)


def Any(alias=None):
    return WildcardPattern(alias)


def Variadic(pattern, min_count=0, max_count=None, alias=None):
    """Create a variadic pattern for matching a run of inputs of any arity.

    Example:
        # Match ConcatV2 with any number of inputs followed by a Const axis
        Op("ConcatV2", Variadic(Any()), Op("Const", alias="axis"))
    """
    return VariadicPattern(pattern, min_count, max_count, alias)


class RewriteResult:
    """
    Replacement produced by a rewrite policy for one accepted match.

    Args:
        new_nodes: Every node that takes the place of the match's consumed
            nodes. Consumed nodes missing from this list are deleted.
        node_mapping: old node name -> new target reference.
        keep_inputs: old node name -> consumer names whose references to the
            old name must not be redirected.
    """

    def __init__(self, new_nodes, node_mapping=None, keep_inputs=None):
        self.new_nodes = list(new_nodes)
        node_mapping = node_mapping or {}
        keep_inputs = keep_inputs or {}
        unknown = set(keep_inputs) - set(node_mapping)
        if unknown:
            raise ValueError(
                f"keep_inputs given for names that are not renamed: {sorted(unknown)}"
            )
        self.renames = [
            RenameEntry(old_name, target, keep_inputs.get(old_name, ()))
            for old_name, target in node_mapping.items()
        ]

    def __repr__(self):
        return (
            f"RewriteResult(new_nodes={[n.name for n in self.new_nodes]}, "
            f"renames={self.renames})"
        )


TransformResult = collections.namedtuple(
    "TransformResult", ["graph_def", "renames", "matches", "rejected"]
)


class GraphTransformer:
    """
    Applies one pattern/rewriter pair to a GraphDef.

    Scans every node in original order as a candidate root, runs the policy
    on each structural match, rebuilds the graph from accepted replacement
    fragments plus untouched nodes, then redirects references in one pass.
    The input GraphDef is never modified.
    """

    def __init__(self, graph_def: tf.GraphDef, required_names=()):
        self.graph = GraphModel(graph_def, required_names)

    @log_transform
    def apply(self, pattern, rewriter, transform_name=None) -> TransformResult:
        graph = self.graph
        graph.validate()
        prefix = f"[{transform_name}] " if transform_name else ""

        missing_required = sorted(graph.required_names - set(graph.nodes))
        if missing_required:
            logging.warning(
                f"{prefix}Declared inputs/outputs not present in graph: "
                f"{format_names(missing_required)}"
            )

        consumed: Set[str] = set()
        pinned: Set[str] = set()
        fragments: Dict[str, List[tf.NodeDef]] = {}
        renames: Dict[str, RenameEntry] = {}
        matches: List[NodeMatch] = []
        rejected: List[NodeMatch] = []

        for node in graph.node_list:
            if node.name in consumed or node.name in pinned:
                continue
            match = pattern.match(node, graph, excluded=consumed, pinned=pinned)
            if match is None:
                continue

            result = self._run_rewriter(match, rewriter, prefix)
            if result is None:
                rejected.append(match)
                continue

            self._accept(match, result, consumed, pinned, fragments, renames)
            matches.append(match)

        rebuilt = self._rebuild(fragments, consumed)
        output_graph_def = rename_node_inputs(rebuilt, renames)
        self._verify(output_graph_def, renames, prefix)
        return TransformResult(output_graph_def, renames, matches, rejected)

    def _run_rewriter(self, match, rewriter, prefix) -> Optional[RewriteResult]:
        protected = match.all_names & self.graph.required_names
        if protected:
            logging.info(
                f"{prefix}Skipping replacement for {match.node.name}: "
                f"required node(s) {format_names(sorted(protected))}"
            )
            return None

        result = rewriter(match, self.graph.required_names, self.graph)
        if result is None or isinstance(result, RewriteResult):
            return result
        if isinstance(result, (list, tuple)):
            return RewriteResult(result)
        raise TypeError(
            f"Rewriter returned {type(result).__name__}, expected RewriteResult, list or None"
        )

    def _accept(self, match, result, consumed, pinned, fragments, renames):
        root_name = match.node.name
        owned = match.consumed_names

        overlap = owned & consumed
        if overlap:
            raise InvariantViolation(
                f"Match at '{root_name}' overlaps earlier matches on {format_names(sorted(overlap))}"
            )

        fragment_names = set()
        for new_node in result.new_nodes:
            if new_node.name in fragment_names:
                raise InvariantViolation(
                    f"Rewrite at '{root_name}' emitted node '{new_node.name}' twice"
                )
            if new_node.name in self.graph.nodes and new_node.name not in owned:
                raise InvariantViolation(
                    f"Rewrite at '{root_name}' emitted node '{new_node.name}' "
                    f"which is outside its match"
                )
            fragment_names.add(new_node.name)

        for entry in result.renames:
            if entry.old_name not in owned:
                raise InvariantViolation(
                    f"Rewrite at '{root_name}' renames '{entry.old_name}' "
                    f"which is outside its match"
                )
            if entry.old_name in renames:
                raise InvariantViolation(f"Conflicting rename entries for '{entry.old_name}'")
            renames[entry.old_name] = entry

        consumed.update(owned)
        pinned.update(match.boundary_names)
        fragments[root_name] = [copy_node(n) for n in result.new_nodes]

    def _rebuild(self, fragments, consumed) -> tf.GraphDef:
        rebuilt = tf.GraphDef()
        copy_graph_header(self.graph.graph_def, rebuilt)
        for node in self.graph.node_list:
            if node.name in fragments:
                rebuilt.node.extend(fragments[node.name])
            elif node.name not in consumed:
                rebuilt.node.add().CopyFrom(node)

        duplicates = find_duplicate_names(rebuilt.node)
        if duplicates:
            raise InvariantViolation(
                f"Rewritten graph has duplicate node names: {format_names(duplicates)}"
            )
        return rebuilt

    def _verify(self, output_graph_def, renames, prefix):
        output_names = {node.name for node in output_graph_def.node}

        deleted = [n.name for n in self.graph.node_list if n.name not in output_names]
        for name in deleted:
            logging.debug(f"{prefix}Deleted: {name}")
        unmapped = [name for name in deleted if name not in renames]
        if unmapped:
            raise InvariantViolation(
                f"Nodes removed without a rename entry: {format_names(unmapped)}"
            )

        for entry in renames.values():
            if entry.target_name not in output_names:
                raise InvariantViolation(
                    f"Rename target '{entry.target}' for '{entry.old_name}' "
                    f"does not exist in the output graph"
                )
            if not entry.keep_for and entry.old_name in output_names:
                raise InvariantViolation(
                    f"Renamed node '{entry.old_name}' is still present in the output graph"
                )

        lost = sorted((self.graph.required_names & set(self.graph.nodes)) - output_names)
        if lost:
            raise InvariantViolation(f"Required nodes were removed: {format_names(lost)}")

        dangling = find_dangling_inputs(output_graph_def)
        if dangling:
            raise InvariantViolation(
                "Dangling references after rewrite: "
                + format_names(f"{consumer} -> {ref}" for consumer, ref in dangling)
            )


class TransformContext:
    """
    Per-invocation context: declared graph inputs/outputs plus free-form
    transform parameters (name -> list of string values).
    """

    def __init__(self, input_names=None, output_names=None, params=None):
        self.input_names = list(input_names or [])
        self.output_names = list(output_names or [])
        self.params: Dict[str, List[str]] = {}
        for key, value in (params or {}).items():
            if isinstance(value, (list, tuple)):
                self.params[key] = [str(v) for v in value]
            else:
                self.params[key] = [str(value)]

    @property
    def required_names(self) -> Set[str]:
        """Base node names of every declared input and output."""
        return {
            node_name_from_input(name) for name in self.input_names + self.output_names
        }

    def get_one_param(self, name, default=None) -> Optional[str]:
        values = self.params.get(name)
        if not values:
            return default
        if len(values) != 1:
            raise ValueError(f"Expected a single value for parameter '{name}', got {values}")
        return values[0]

    def get_one_int_param(self, name, default=None) -> Optional[int]:
        value = self.get_one_param(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Parameter '{name}' must be an integer, got '{value}'") from None

    def get_bool_param(self, name, default=None) -> Optional[bool]:
        value = self.get_one_param(name)
        if value is None:
            return default
        lowered = value.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise ValueError(f"Parameter '{name}' must be true/false or 1/0, got '{value}'")

    def with_params(self, params) -> "TransformContext":
        """Same declared inputs/outputs, different parameters."""
        return TransformContext(self.input_names, self.output_names, params)


def replace_matching_op_types(
    graph_def: tf.GraphDef,
    context: TransformContext,
    pattern: Pattern,
    rewriter,
    transform_name: Optional[str] = None,
) -> tf.GraphDef:
    """Match `pattern` everywhere in graph_def and apply `rewriter` to each match."""
    transformer = GraphTransformer(graph_def, context.required_names)
    result = transformer.apply(pattern, trace_rewriter(rewriter), transform_name=transform_name)
    return result.graph_def


class TransformRegistry:
    """Process-wide mapping from transform name to transform function."""

    _registered_transforms = {}

    @classmethod
    def register(cls, name):
        """Decorator registering fn(graph_def, context) -> GraphDef under name."""

        def decorator(transform_func):
            existing = cls._registered_transforms.get(name)
            if existing is not None and existing is not transform_func:
                raise ValueError(f"Transform already registered: {name}")
            cls._registered_transforms[name] = transform_func
            return transform_func

        return decorator

    @classmethod
    def get(cls, name):
        if name not in cls._registered_transforms:
            raise ValueError(f"Unknown transform: {name}")
        return cls._registered_transforms[name]

    @classmethod
    def list_available(cls) -> List[str]:
        return sorted(cls._registered_transforms)


def transform_graph(
    graph_def: tf.GraphDef, name: str, context: Optional[TransformContext] = None
) -> tf.GraphDef:
    """Applies the registered transform `name` and returns the new GraphDef."""
    transform_func = TransformRegistry.get(name)
    return transform_func(graph_def, context or TransformContext())

