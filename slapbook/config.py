import os

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
ALLOWED_EMAILS = frozenset(
    e.strip().lower()
    for e in os.environ.get("ALLOWED_EMAILS", "").split(",")
    if e.strip()
)
TZ_NAME = os.environ.get("TZ", "America/Chicago")
SESSION_SECRET = os.environ.get("SESSION_SECRET", "dev-only-change-me")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOOKBACK_DAYS = 120
DASHBOARD_ROW_CAP = 2000
PROFILE_ROW_CAP = 1000
FEED_LIMIT = 50
RECENT_LOGS_SHOWN = 50
COMMENT_LIMIT = 300
POST_MAX_CHARS = 280
COMMENT_MAX_CHARS = 500
