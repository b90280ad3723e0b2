"""
Table storage constants.

Limits and reserved names shared by the property model, the batching
engine and both storage backends.
"""

# ========== Reserved Property Names ==========

PARTITION_KEY = "PartitionKey"
ROW_KEY = "RowKey"
TIMESTAMP = "Timestamp"
ETAG = "ETag"

RESERVED_PROPERTY_NAMES = frozenset({PARTITION_KEY, ROW_KEY, TIMESTAMP, ETAG})

# ========== Key Constraints ==========

MAX_KEY_LENGTH = 512  # UTF-16 code units
FORBIDDEN_KEY_CHARACTERS = frozenset("/\\#?")

LOWEST_KEY_CHARACTER = " "
HIGHEST_KEY_CHARACTER = "\uffff"

MINIMUM_KEY_VALUE = LOWEST_KEY_CHARACTER
MAXIMUM_KEY_VALUE = HIGHEST_KEY_CHARACTER * 1024

# ========== Transactions ==========

MAX_BATCH_SIZE = 100
WILDCARD_ETAG = "*"

# ========== Property Values ==========

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# ========== Remote Paging ==========

DEFAULT_PAGE_SIZE = 1000
