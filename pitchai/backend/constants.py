MAX_UPLOAD_BYTES = 100 * 1024 * 1024   # 100 MB (video files are larger than decks)
MAX_DECK_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MB
MAX_REQUEST_BYTES = 150 * 1024 * 1024  # 150 MB
CHUNK_SIZE = 1024 * 1024

VIDEO_CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
}

DEFAULT_CATEGORY_SCORE = 7.0
MAX_LIST_ITEMS = 7
MAX_QA_ITEMS = 10
MAX_RENDERED_QA_ITEMS = 8
