"""
Task subsystem.

Components:
- task_models.py: data structures (Task, User, TaskStatus, AlertStage)
- task_store.py: SQLite-backed storage + conditional writes
- reminder_ledger.py: once-per-day end-of-day claims
- alerts.py: message templates
- escalation.py: the alert/end-of-day state machine
- completion.py: done vs late decision
- task_scheduler.py: polling loops that drive the engine
- task_api.py: small high-level helpers used by the rest of the app
"""
