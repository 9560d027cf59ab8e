"""Canonical structured logging field names.

Kept in one place so the CLI, proxy and data layer emit the same keys.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EXCEPTION = "exception"

# Process-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"

# Request attribution.
USER_ID = "user_id"

# Data client operations.
MODEL = "model"
ACTION = "action"

# CLI orchestration.
COMMAND = "command"
PROCESS_NAME = "process_name"
