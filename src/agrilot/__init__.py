"""agrilot: local-first farm records, task calendar and reminders."""
