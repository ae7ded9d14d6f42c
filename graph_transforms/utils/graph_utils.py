"""
Graph manipulation utility functions.

This module provides stateless helpers shared by the transform engine and the
individual transforms: GraphDef I/O, node construction, structured input
references, typed attribute access, tensor attribute reading/writing and the
whole-graph reference renaming pass.
"""

import os
import collections
import numpy as np
from typing import Dict, Iterable, List

import tensorflow.compat.v1 as tf
from tensorflow.core.framework import node_def_pb2
from tensorflow.core.framework import types_pb2
from tensorflow.core.framework import attr_value_pb2
from tensorflow.python.framework import tensor_util
from google.protobuf import text_format

from ..errors import AttrTypeMismatch, InvariantViolation


# =======================
# Graph I/O Operations
# =======================


def create_node(op, name, inputs=None, attr=None, device=None):
    """Creates a NodeDef proto."""
    node = node_def_pb2.NodeDef()
    node.op = op
    node.name = name
    if device:
        node.device = device
    if inputs:
        node.input.extend(inputs)
    if attr:
        for k, v in attr.items():
            node.attr[k].CopyFrom(v)
    return node


def copy_node(node):
    """Returns a detached copy of a NodeDef."""
    new_node = node_def_pb2.NodeDef()
    new_node.CopyFrom(node)
    return new_node


def copy_graph_header(source: tf.GraphDef, target: tf.GraphDef):
    """Carries graph-level metadata (versions, function library) over to target."""
    if source.HasField("versions"):
        target.versions.CopyFrom(source.versions)
    if source.HasField("library"):
        target.library.CopyFrom(source.library)


def save_graph(graph_def, path):
    """Saves a GraphDef proto to a file (binary or pbtxt)."""
    # Ensure output directory exists
    output_dir = os.path.dirname(path)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir, exist_ok=True)

    if path.endswith(".pbtxt"):
        with open(path, "w") as f:
            f.write(text_format.MessageToString(graph_def))
    else:
        with open(path, "wb") as f:
            f.write(graph_def.SerializeToString())


def load_graph(path):
    """Loads a GraphDef proto from a file."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Graph file not found: {path}")

    graph_def = tf.GraphDef()
    if path.endswith(".pbtxt"):
        with open(path, "r") as f:
            text_format.Merge(f.read(), graph_def)
    else:
        with open(path, "rb") as f:
            graph_def.ParseFromString(f.read())
    return graph_def


_DTYPE_MAP = {
    "float32": types_pb2.DT_FLOAT,
    "float64": types_pb2.DT_DOUBLE,
    "int32": types_pb2.DT_INT32,
    "int64": types_pb2.DT_INT64,
    "bool": types_pb2.DT_BOOL,
}


def _as_datatype_enum(dtype):
    if isinstance(dtype, str):
        return _DTYPE_MAP.get(dtype, types_pb2.DT_FLOAT)
    return tf.as_dtype(dtype).as_datatype_enum


def create_const_node(name: str, value, dtype: str, shape: list = None, device=None):
    """Creates a Const NodeDef with given value, dtype and shape."""
    tf_dtype = _as_datatype_enum(dtype)
    np_array = np.array(value, dtype=tf.as_dtype(tf_dtype).as_numpy_dtype)
    if shape is not None:
        np_array = np_array.reshape(shape)

    node = create_node("Const", name, device=device)
    node.attr["dtype"].CopyFrom(attr_value_pb2.AttrValue(type=tf_dtype))
    set_tensor_attr(node, "value", np_array, tf_dtype)
    return node


# =======================
# Input References
# =======================


class TensorRef(
    collections.namedtuple("TensorRef", ["node_name", "output_index", "is_control"])
):
    """
    Structured form of a node input string.

    Examples:
        'node'    -> TensorRef('node', 0, False)
        'node:1'  -> TensorRef('node', 1, False)
        '^node'   -> TensorRef('node', 0, True)
    """

    __slots__ = ()

    @classmethod
    def parse(cls, input_name: str) -> "TensorRef":
        if input_name.startswith("^"):
            return cls(input_name[1:], 0, True)
        name, sep, port = input_name.rpartition(":")
        if sep and port.isdigit():
            return cls(name, int(port), False)
        return cls(input_name, 0, False)

    def __str__(self):
        if self.is_control:
            return "^" + self.node_name
        if self.output_index:
            return f"{self.node_name}:{self.output_index}"
        return self.node_name


def node_name_from_input(input_name: str) -> str:
    """Base node name of an input reference ('^a' -> 'a', 'a:2' -> 'a')."""
    return TensorRef.parse(input_name).node_name


def data_inputs(node) -> List[str]:
    """Input references of a node with control dependencies filtered out."""
    return [i for i in node.input if not i.startswith("^")]


def set_data_input(node, position, input_name):
    """Replaces the position-th data input of node, leaving control inputs alone."""
    data_positions = [i for i, name in enumerate(node.input) if not name.startswith("^")]
    node.input[data_positions[position]] = input_name


def build_consumer_index(nodes: Iterable) -> Dict[str, List[str]]:
    """
    Build consumer index from a sequence of nodes.

    Returns:
        Dict mapping node names to lists of consumer node names (data and control)
    """
    consumers = collections.defaultdict(list)
    for node in nodes:
        for input_name in node.input:
            consumers[node_name_from_input(input_name)].append(node.name)
    return consumers


# =======================
# Attribute Access
# =======================

_MISSING = object()


def get_attr_value(attr_proto):
    """Unwraps a TensorFlow AttrValue proto into a Python literal."""
    field = attr_proto.WhichOneof("value")
    if field == "s":
        return attr_proto.s.decode("utf-8")
    if field == "i":
        return attr_proto.i
    if field == "f":
        return attr_proto.f
    if field == "b":
        return attr_proto.b
    if field == "type":
        return attr_proto.type
    if field == "shape":
        return [dim.size for dim in attr_proto.shape.dim]
    if field == "tensor":
        t = tensor_util.MakeNdarray(attr_proto.tensor)
        if np.isscalar(t) or t.ndim == 0:
            return t.item()
        return t
    # Fallback to the proto itself for complex types
    return attr_proto


def get_typed_attr(node, attr_name, kind):
    """
    Returns the AttrValue of `node` after checking its stored value kind.

    Args:
        node: NodeDef to read from
        attr_name: Attribute key
        kind: Expected AttrValue oneof field ('i', 's', 'list', 'tensor', ...)

    Raises:
        KeyError: the attribute is missing
        AttrTypeMismatch: the attribute stores a different kind
    """
    if attr_name not in node.attr:
        raise KeyError(f"Node '{node.name}' has no attribute '{attr_name}'")
    attr = node.attr[attr_name]
    actual = attr.WhichOneof("value")
    if actual != kind:
        raise AttrTypeMismatch(node.name, attr_name, kind, actual)
    return attr


def get_int_attr(node, attr_name, default=_MISSING):
    if default is not _MISSING and attr_name not in node.attr:
        return default
    return get_typed_attr(node, attr_name, "i").i


def get_string_attr(node, attr_name, default=_MISSING):
    if default is not _MISSING and attr_name not in node.attr:
        return default
    return get_typed_attr(node, attr_name, "s").s.decode("utf-8")


def get_int_list_attr(node, attr_name, default=_MISSING):
    if default is not _MISSING and attr_name not in node.attr:
        return default
    return list(get_typed_attr(node, attr_name, "list").list.i)


def get_tensor_attr(node, attr_name="value") -> np.ndarray:
    """Reads a tensor attribute (usually a Const's 'value') as a numpy array."""
    return tensor_util.MakeNdarray(get_typed_attr(node, attr_name, "tensor").tensor)


def set_tensor_attr(node, attr_name, value, dtype=None):
    """Serializes a numpy array into a tensor attribute, preserving its shape."""
    array = np.asarray(value)
    tf_dtype = _as_datatype_enum(dtype) if dtype is not None else None
    tensor = tensor_util.make_tensor_proto(array, dtype=tf_dtype, shape=list(array.shape))
    node.attr[attr_name].tensor.CopyFrom(tensor)


def set_int_list_attr(node, attr_name, values):
    attr = node.attr[attr_name]
    attr.list.SetInParent()
    del attr.list.i[:]
    attr.list.i.extend(int(v) for v in values)


def copy_node_attr(source, attr_name, target, new_name=None):
    """Copies one attribute from source to target if it exists on source."""
    if attr_name not in source.attr:
        return False
    target.attr[new_name or attr_name].CopyFrom(source.attr[attr_name])
    return True


# =======================
# Reference Renaming
# =======================


class RenameEntry(
    collections.namedtuple("RenameEntry", ["old_name", "target", "keep_for"])
):
    """
    Redirects every reference to `old_name` to the `target` reference.

    Consumers listed in `keep_for` keep their reference to `old_name`.
    """

    __slots__ = ()

    def __new__(cls, old_name, target, keep_for=()):
        return super().__new__(cls, old_name, target, frozenset(keep_for))

    @property
    def target_name(self):
        return node_name_from_input(self.target)


def _redirect(ref: TensorRef, entry: RenameEntry, consumer_name: str) -> TensorRef:
    target = TensorRef.parse(entry.target)
    if target.is_control:
        raise InvariantViolation(
            f"Rename target '{entry.target}' for '{entry.old_name}' is a control reference"
        )
    if ref.is_control:
        return TensorRef(target.node_name, 0, True)
    if ref.output_index == 0:
        return target
    if target.output_index == 0:
        return TensorRef(target.node_name, ref.output_index, False)
    raise InvariantViolation(
        f"Cannot redirect '{ref}' (consumed by '{consumer_name}') to "
        f"'{entry.target}': both carry an output index"
    )


def rename_node_inputs(graph_def: tf.GraphDef, renames: Dict[str, RenameEntry]) -> tf.GraphDef:
    """
    Rewrite every input reference according to `renames` (old name -> entry).

    A single pass: targets are never resolved through further entries. Control
    markers are kept, output indices are kept for references that are not
    renamed, and consumers listed in an entry's `keep_for` are left alone.

    Returns:
        New GraphDef with updated inputs
    """
    output_graph_def = tf.GraphDef()
    copy_graph_header(graph_def, output_graph_def)

    for node in graph_def.node:
        new_node = output_graph_def.node.add()
        new_node.CopyFrom(node)
        if not renames:
            continue

        updated_inputs = []
        changed = False
        for input_name in node.input:
            ref = TensorRef.parse(input_name)
            entry = renames.get(ref.node_name)
            if entry is None or node.name in entry.keep_for:
                updated_inputs.append(input_name)
                continue
            updated_inputs.append(str(_redirect(ref, entry, node.name)))
            changed = True

        if changed:
            del new_node.input[:]
            new_node.input.extend(updated_inputs)

    return output_graph_def


def find_dangling_inputs(graph_def: tf.GraphDef) -> List[tuple]:
    """Returns (consumer, input) pairs whose base node is not in the graph."""
    names = {node.name for node in graph_def.node}
    dangling = []
    for node in graph_def.node:
        for input_name in node.input:
            if node_name_from_input(input_name) not in names:
                dangling.append((node.name, input_name))
    return dangling


def find_duplicate_names(nodes: Iterable) -> List[str]:
    counts = collections.Counter(node.name for node in nodes)
    return sorted(name for name, count in counts.items() if count > 1)


def format_names(names: Iterable[str], limit: int = 5) -> str:
    names = list(names)
    text = ", ".join(names[:limit])
    if len(names) > limit:
        text += f" and {len(names) - limit} more..."
    return text

