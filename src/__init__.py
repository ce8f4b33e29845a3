"""
Rule Automation Runner

Runs config-defined automation rules:
- File moves, bulk email sends and data validation passes
- Concurrent execution with per-rule failure isolation
- Per-rule success/failure statistics
- Interval scheduling with overlap skipping
"""

__version__ = "0.1.0"
