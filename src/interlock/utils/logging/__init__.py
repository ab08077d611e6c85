"""Logging utilities and helpers.

- jsonl: JSONL formatter and file handler setup
- logging_context: Per-invocation call ID propagation
- logging_helpers: Sanitization and argument summaries

Import directly from submodules to avoid circular imports:
    from interlock.utils.logging.jsonl import setup_jsonl_logger
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
