"""Storage keys and defaults shared by the sync engine."""

KEY_LINKS = "links"
KEY_CATEGORIES = "categories"
KEY_SYNC_METADATA = "syncMetadata"
KEY_LAST_SYNC_TIME = "lastSyncTime"
KEY_DEVICE_ID = "deviceId"
KEY_SYNC_STRATEGY = "syncStrategy"

REPLICA_KEYS = (KEY_LINKS, KEY_CATEGORIES)

UNKNOWN_DEVICE_ID = "unknown_device"
DEVICE_ID_SUFFIX_LENGTH = 9

DEFAULT_DEBOUNCE_MS = 2000

# Limits of a browser-style sync area
DEFAULT_REMOTE_QUOTA_BYTES = 102_400
DEFAULT_REMOTE_QUOTA_BYTES_PER_ITEM = 8_192
DEFAULT_REMOTE_MAX_ITEMS = 512
