"""
data-steward - package root

File: src/data_steward/__init__.py
Last updated: 2026-10-18

Purpose
- Validation and AI-assisted repair of client/worker/task datasets.

What should be included in this file
- Version export and a minimal public API surface.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
