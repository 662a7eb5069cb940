"""
PhaseGrid: Phase-Gated Project Orchestration Engine

Drives an AI-assisted development pipeline from brainstorm to done:
- Persistent projects, artifacts, worktrees, tasks and an event log (SQLite)
- Gated phase transitions
- Batch scheduling of plan tasks with auto-review on completion

Distribution: Available as both Python library and CLI
"""

__version__ = "0.1.0"
__all__ = [
    "__version__",
]
