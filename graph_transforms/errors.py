"""Exception types raised by the transform engine and its transforms."""


class GraphTransformError(Exception):
    """Base class for all fatal graph transform errors."""


class MalformedGraphError(GraphTransformError):
    """The input graph references a node that does not exist, or names collide."""


class InvariantViolation(GraphTransformError):
    """A rewrite left the graph inconsistent (dangling edge, bad rename, overlap)."""


class AttrTypeMismatch(GraphTransformError, TypeError):
    """A node attribute holds a different value kind than the one requested."""

    def __init__(self, node_name, attr_name, expected, actual):
        self.node_name = node_name
        self.attr_name = attr_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Attribute '{attr_name}' of node '{node_name}' holds '{actual}', "
            f"expected '{expected}'"
        )


class TransformError(GraphTransformError):
    """Wraps a fatal error with the name of the transform that raised it."""

    def __init__(self, transform_name, cause):
        self.transform_name = transform_name
        self.cause = cause
        super().__init__(f"Transform '{transform_name}' failed: {cause}")
