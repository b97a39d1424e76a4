# backend/rentals/core/ulid_helper.py
"""
ULID helpers for primary keys.

ULIDs are lexicographically sortable, so newest-first listings can order by id
when timestamps tie.
"""

import ulid


def generate_ulid() -> str:
    """Return a new ULID as a 26 character string."""
    return str(ulid.ULID())
