"""Steward: task orchestration and scheduling decision engine.

Routes intake through pipelines, delegates per-task evaluation to a
deterministic agent that humans can pause, resume, or force to re-run,
and produces conflict-aware calendar slot suggestions.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
