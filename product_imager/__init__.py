"""
Application package for the Product Image Generator service.

Modules are organized to separate API, the processing queue, remote backend
clients, and persistence concerns so that individual layers can evolve independently.
"""

from .config import settings  # noqa: F401  (re-export for convenience)
