"""
Core Infrastructure for chunkrank.

This module forms the innermost layer of the engine, providing the services
every other module depends on.

Architecture Position
---------------------
    CLI (outermost)
      └── Query (orchestrator, options)
            └── Feature Modules (retrieval, features)
                  └── **Core** (innermost - you are here)

The Core layer has NO dependencies on other chunkrank modules.

Components
----------
**Configuration (config/, config_loaders.py)**
    Search defaults and per-stage settings via nested dataclasses with YAML
    persistence, ${VAR} expansion and CHUNKRANK_* overrides.

**Logging (logging.py)**
    Structured logging with context binding and a stage-aware logger for the
    search pipeline.

**Exceptions (exceptions.py)**
    Typed search errors with a machine-readable kind and diagnostic context.

**Models (models/)**
    Immutable chunks, condition rules, search context and result types.

Usage Example
-------------
    from chunkrank.core.config import load_config
    from chunkrank.core.models import Chunk

    config = load_config()
    chunk = Chunk.create("The dragon sleeps", keywords=("dragon",))
"""
