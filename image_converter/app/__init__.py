"""Collaborator-facing application facade and state objects.

- Direct calls: backend.add_inputs / backend.start_run / backend.clear_all
- Single command entry for front ends: backend.dispatch(cmd, payload)
- Python -> front end notifications via backend.jobEvent / runFinished / taskEvent
- Bindable state via backend.tasks
"""
