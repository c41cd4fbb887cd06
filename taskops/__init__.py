"""
TaskOps — hierarchical task status rollup, overdue escalation, analytics and
bulk operations, served as independently invoked JSON functions.

Subpackages:
    engine      config, errors, logging, cache, registry, executor, runtime
    db          SQLAlchemy base, models, sessions
    decorators  @function, schedule(), event()
    tasks       task store, rules, and the built-in functions
    process     Celery tasks, Beat schedules, event dispatch
"""

__version__ = "1.0.0"
__all__ = ["engine", "db", "decorators", "tasks", "process"]
