"""
Orphaned object detection.

An object can outlive its record reference when the record update fails
and the compensating delete fails too. Those keys are logged at write
time; this module finds them after the fact by diffing the bucket
against what records point at.

Objects younger than a grace period are never reported, so uploads that
are mid-flight (object written, record not yet updated) are left alone.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol

from .models import StorageReference

DEFAULT_GRACE_PERIOD = timedelta(hours=24)


class ObjectListing(Protocol):
    """Anything with a key and a last-modified time, e.g. a bucket listing entry."""
    key: str
    last_modified: datetime


def referenced_keys(
    stored_values: Iterable[str],
    bucket: str,
    public_base_url: Optional[str] = None,
) -> set[str]:
    """Keys in ``bucket`` that some record points at, in either encoding."""
    keys = set()
    prefix = f"{public_base_url.rstrip('/')}/" if public_base_url else None

    for value in stored_values:
        reference = StorageReference.parse(value)
        if reference is not None:
            if reference.bucket == bucket:
                keys.add(reference.key)
        elif prefix and value.startswith(prefix):
            keys.add(value[len(prefix):])

    return keys


def find_orphaned_keys(
    objects: Iterable[ObjectListing],
    referenced: set[str],
    now: datetime,
    grace_period: timedelta = DEFAULT_GRACE_PERIOD,
) -> list[str]:
    cutoff = now - grace_period
    return sorted(
        obj.key
        for obj in objects
        if obj.key not in referenced and obj.last_modified < cutoff
    )
