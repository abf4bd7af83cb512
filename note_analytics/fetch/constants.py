"""Constants for the note stats fetch layer."""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300

# Upstream endpoint
NOTE_STATS_URL = "https://note.com/api/v1/stats/pv"
NOTE_STATS_FILTER = "all"
NOTE_STATS_SORT = "pv"

# Session cookie names
AUTH_TOKEN_COOKIE = "note_gql_auth_token"
SESSION_TOKEN_COOKIE = "_note_session_v5"

# Pagination
DEFAULT_MAX_PAGES = 10
DEFAULT_PAGE_DELAY_SECONDS = 1.0

# Status reported for transport-level failures (no HTTP response)
TRANSPORT_ERROR_STATUS = 0
