"""Candidate field names for upstream and import record shapes.

Each tuple is ordered by priority: the first name whose value is present
wins. Newer upstream API versions come first.
"""

# Upstream stats API (per-article record)
EXTERNAL_KEY_FIELDS = ("id", "key", "noteKey")
URL_KEY_FIELDS = ("key", "noteKey")
PV_FIELDS = ("readCount", "pv", "viewCount", "read_count")
LIKE_FIELDS = ("likeCount", "likes", "like_count")
COMMENT_FIELDS = ("commentCount", "comments", "comment_count")
TITLE_FIELDS = ("name", "title")
URL_FIELDS = ("noteUrl", "url", "note_url")
URLNAME_FIELDS = ("userUrlname", "user_urlname")

# Upstream stats API (page envelope)
ENVELOPE_FIELD = "data"
RECORD_LIST_FIELDS = ("contents", "noteStats", "notes", "items")
LAST_PAGE_FIELDS = ("isLastPage", "is_last_page", "lastPage")

# Cumulative export files (CSV headers)
IMPORT_KEY_FIELDS = ("key", "noteKey", "id", "記事ID")
IMPORT_TITLE_FIELDS = ("タイトル", "記事名", "title", "記事タイトル", "Title", "Article")
IMPORT_PV_FIELDS = ("ビュー", "PV", "pv", "ビュー数", "Views", "views")
IMPORT_LIKE_FIELDS = ("スキ", "いいね", "likes", "Likes", "Like")
IMPORT_COMMENT_FIELDS = ("コメント", "comments", "Comments", "Comment")

DEFAULT_TITLE = "Untitled"
NOTE_ARTICLE_URL_TEMPLATE = "https://note.com/{urlname}/n/{key}"
