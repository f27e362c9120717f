"""
distgate — post-build distribution validator

File: src/distgate/__init__.py
Last updated: 2026-10-16

Purpose
- Package root. Verifies that built workspace packages satisfy their publishing
  contracts (syntax target, baseline APIs, exports, bundle size, ESM purity)
  before artifacts are published.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
