"""Shared utilities for interlock (file helpers, logging, policy loading)."""
