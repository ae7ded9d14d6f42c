"""
Graph Transforms Test Suite
===========================

tests/
├── builders.py          # small GraphDef fixtures shared by the suites
├── framework/           # engine tests
│   ├── test_core.py          # GraphModel, pattern matching, NodeMatch
│   ├── test_transformer.py   # GraphTransformer rebuild and invariant checks
│   ├── test_renamer.py       # reference renaming
│   ├── test_graph_utils.py   # TensorRef, typed attributes, tensors, graph I/O
│   ├── test_dispatch.py      # TransformContext, TransformRegistry
│   ├── test_invariants.py    # properties every registered transform keeps
│   ├── test_logging.py       # logger setup and aspect decorators
│   └── test_pipeline.py      # TransformPipeline, transform strings, CLI
│
└── transforms/          # one module per transform file

Run:
    python -m pytest tests/ -v
"""
