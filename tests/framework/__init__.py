"""
Framework Tests - 核心框架测试模块
===================================

- test_core.py         : GraphModel, Op/Any/Variadic matching, NodeMatch lookups
- test_transformer.py  : GraphTransformer acceptance, rebuild and verification
- test_renamer.py      : rename_node_inputs redirect rules
- test_graph_utils.py  : TensorRef, typed attribute access, tensor attributes, I/O
- test_dispatch.py     : TransformContext parameters, TransformRegistry
- test_invariants.py   : properties every registered transform keeps
- test_logging.py      : logger setup and aspect decorators
- test_pipeline.py     : TransformPipeline, transform strings, CLI
"""
