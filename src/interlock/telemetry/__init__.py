"""Telemetry for interlock.

- system/: operational logger (stderr + optional system.jsonl)
- audit/:  per-invocation decision log (decisions.jsonl)
- models/: pydantic models for logged events
"""
