"""
OpsBeat: scheduled heartbeat for agent operations

Each heartbeat:
- evaluates automation trigger rules and proposes missions
- drains the agent reaction queue
- fails steps stuck in running and settles their missions

Distribution: Python library, FastAPI webhook and CLI
"""

__version__ = "0.1.0"
__all__ = [
    "__version__",
]
