from .graph_utils import (
    TensorRef,
    RenameEntry,
    node_name_from_input,
    data_inputs,
    set_data_input,
    build_consumer_index,
    rename_node_inputs,
    find_dangling_inputs,
    # Node and I/O helpers
    create_node,
    create_const_node,
    copy_node,
    copy_node_attr,
    save_graph,
    load_graph,
    # Attribute access
    get_attr_value,
    get_typed_attr,
    get_int_attr,
    get_string_attr,
    get_int_list_attr,
    get_tensor_attr,
    set_tensor_attr,
    set_int_list_attr,
)
from .logger import logger

__all__ = [
    # references
    "TensorRef",
    "RenameEntry",
    "node_name_from_input",
    "data_inputs",
    "set_data_input",
    "build_consumer_index",
    "rename_node_inputs",
    "find_dangling_inputs",
    # node and I/O helpers
    "create_node",
    "create_const_node",
    "copy_node",
    "copy_node_attr",
    "save_graph",
    "load_graph",
    # attribute access
    "get_attr_value",
    "get_typed_attr",
    "get_int_attr",
    "get_string_attr",
    "get_int_list_attr",
    "get_tensor_attr",
    "set_tensor_attr",
    "set_int_list_attr",
    # logger
    "logger",
]
