"""
Utility helpers for Clubguard.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Suppresses noise from
  Discord internals. Uses prompt_toolkit for non-blocking console I/O.
"""
