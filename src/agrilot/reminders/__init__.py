"""
Task reminders.

Components:
- reminder_models.py: priority offsets and the per-task reminder set
- reminder_scheduler.py: keeps reminder sets in sync with Task writes
"""
