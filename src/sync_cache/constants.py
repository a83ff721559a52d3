# SPDX-License-Identifier: MIT
"""Constants used throughout the sync cache service.

This module centralizes:

- **Storage layout**: category order and the strict ``NNNN.json`` file naming
- **Database versions**: year plus a 2-digit sequence number
- **Server defaults**: port, periodic synchronization interval and cooldown
"""

import re

from .enums import Category


# Category order used for version lookups and fetches
CATEGORIES: tuple[Category, ...] = (
    Category.DATABASES,
    Category.MESSAGES,
    Category.RESULTS,
    Category.SPONSORS,
)

# Data files are named with exactly four digits
FILE_NAME_PATTERN = re.compile(r"^(\d{4})\.json$")
FILE_NUMBER_DIGITS: int = 4

# Database versions: 4-digit year + 2-digit sequence
DATABASE_SEQUENCE_DIGITS: int = 2
MAX_DATABASE_SEQUENCE: int = 99

# Storage listing
DEFAULT_LIST_PAGE_SIZE: int = 20

# Server defaults
DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8080
DEFAULT_SYNC_INTERVAL_SECONDS: int = 300  # 5 minutes
DEFAULT_SYNC_COOLDOWN_SECONDS: int = 60

# Attempts per S3 request, retried by botocore
S3_MAX_ATTEMPTS: int = 5
