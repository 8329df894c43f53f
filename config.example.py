# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored); see .env.example.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKSYNC_APP_NAME": "App display name (default: tasksync).",
    "TASKSYNC_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKSYNC_DATA_DIR": "Local data directory for logs (default: .local/tasksync).",
    # Backend
    "TASKSYNC_BACKEND": (
        "memory | firebase (default: firebase when key + project are set, memory otherwise)."
    ),
    "TASKSYNC_FIREBASE_API_KEY": "Firebase web API key (required only for the firebase backend).",
    "TASKSYNC_FIREBASE_PROJECT_ID": "Firebase project id (required only for the firebase backend).",
    # HTTP / live feed
    "TASKSYNC_HTTP_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    "TASKSYNC_HTTP_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 15).",
    "TASKSYNC_POLL_INTERVAL_SECONDS": "Firestore task feed poll interval (default: 2, min 0.25).",
    "TASKSYNC_RESUBSCRIBE_DELAY_SECONDS": (
        "Delay before re-opening a failed task feed (default: 5; empty or 0 disables)."
    ),
    # Presentation
    "TASKSYNC_DEFAULT_SORT": "createdAsc | createdDesc | dueAsc | dueDesc (default: createdDesc).",
    "TASKSYNC_SHOW_COMPLETED": "Show completed tasks in /list (default: true).",
}
