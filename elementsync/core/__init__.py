"""
Core package for elementsync.
Lightweight package init to avoid import cycles.

Consumers should import submodules directly, e.g.:
  from elementsync.core.engine import ElementEngine
  from elementsync.core.retry import RetryPolicy, with_retry
  from elementsync.core.errors import ElementNotFound
"""

__all__: list[str] = []
