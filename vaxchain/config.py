"""
Configuration module for vaxchain.

Environment variables are read once at import. The chain core itself takes
no configuration; these settings only steer logging. The verification mode
is never configured here: callers pick verify_action or
verify_action_crypto_only by name.
"""

import os

# ============================================================
# Logging Configuration
# ============================================================

LOG_LEVEL = os.getenv("VAX_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("VAX_LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("VAX_LOG_FILE") or None

# Hex characters of an anchor shown in log lines
ANCHOR_LOG_PREFIX = int(os.getenv("VAX_ANCHOR_LOG_PREFIX", "16"))
