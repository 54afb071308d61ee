# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Keep the database and exports under the gitignored data dir.
"""

ENV_VARS = {
    # App / logging
    "AGRILOT_APP_NAME": "App display name (default: agrilot).",
    "AGRILOT_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "AGRILOT_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Paths (gitignored)
    "AGRILOT_DATA_DIR": "Local data directory (default: .local/agrilot). Holds agrilot.log.",
    "AGRILOT_DB_PATH": "Object store SQLite path (default: <data_dir>/farm.sqlite3).",
    "AGRILOT_EXPORT_DIR": "Where shared exports are copied (default: <data_dir>/exports).",
    # Reminders
    "AGRILOT_REMINDERS_ENABLED": "Schedule task reminders (true/false, default: true).",
    "AGRILOT_REMINDER_CHANNEL_ID": "Notification channel id (default: task-reminders).",
}
