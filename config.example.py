# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets: keep tokens and passwords in .env (local, gitignored).

This file lists every variable the planner reads, with its default.
"""

ENV_VARS = {
    # App / logging
    "PLANNER_APP_NAME": "App display name (default: task-planner).",
    "PLANNER_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connectors
    "PLANNER_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    "PLANNER_CONSOLE_USER_ID": "Platform id used for the console user (default: $USER or 'local').",
    "PLANNER_MATRIX_ENABLED": "Enable Matrix connector (true/false, default: false).",
    "PLANNER_TELEGRAM_ENABLED": "Enable Telegram connector (true/false, default: false).",
    # Telegram
    "PLANNER_TELEGRAM_TOKEN": "Bot token from @BotFather (TG_TOKEN is accepted as a fallback).",
    # Matrix
    "PLANNER_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "PLANNER_MATRIX_USER_ID": "Matrix user ID (bot).",
    "PLANNER_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "PLANNER_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    # LLM / OpenRouter (subtask suggestions; offline generator is used when unset)
    "PLANNER_OPENROUTER_API_KEY": "OpenRouter API key.",
    "PLANNER_OPENROUTER_BASE_URL": "OpenRouter base URL (default: https://openrouter.ai/api/v1).",
    "PLANNER_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "PLANNER_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "PLANNER_APP_TITLE": "Optional OpenRouter metadata header title.",
    "PLANNER_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Wait for the first streamed token (default: 20).",
    "PLANNER_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 25).",
    "PLANNER_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    # Accounts
    "PLANNER_BCRYPT_ROUNDS": "bcrypt cost factor for new password hashes (default: 12).",
    # Paths (gitignored)
    "PLANNER_DATA_DIR": "Local data directory (default: .local/planner).",
    "PLANNER_MATRIX_STORE_PATH": "Matrix session store path (default: <data_dir>/matrix_store).",
    "PLANNER_DB_PATH": "Planner SQLite path (default: <data_dir>/tasks.sqlite3).",
    "PLANNER_EXPORT_DIR": "Where exported task files are written (default: <data_dir>/exports).",
}
