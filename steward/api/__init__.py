"""HTTP API for the orchestration and scheduling engine.

Run with ``uvicorn steward.api.app:create_app --factory``.
"""

from steward.api.app import create_app

__all__ = ["create_app"]
