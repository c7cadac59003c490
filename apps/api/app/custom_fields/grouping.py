from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from app.custom_fields.models import CustomFieldGroup


T = TypeVar("T")

GENERAL_GROUP_ID = 0
GENERAL_GROUP_NAME = "General"
GENERAL_SORT_ORDER = 2147483647


@dataclass(slots=True)
class GroupBucket(Generic[T]):
    id: int
    entity_type: str
    name: str
    display_name: str
    description: str | None
    sort_order: int
    is_active: bool = True
    items: list[T] = field(default_factory=list)


def bucket_by_group(
    entity_type: str,
    groups: Iterable[CustomFieldGroup],
    items: Iterable[T],
    group_id_of: Callable[[T], int | None],
    *,
    drop_empty: bool = False,
) -> list[GroupBucket[T]]:
    """Distribute ``items`` over one bucket per group plus a trailing "General" bucket.

    Items whose group id is ``None`` or unknown to ``groups`` land in General,
    which is only returned when it holds something. With ``drop_empty`` every
    other empty bucket is dropped too. Item order inside a bucket is preserved.
    """
    buckets: dict[int, GroupBucket[T]] = {}
    for group in groups:
        buckets[group.id] = GroupBucket(
            id=group.id,
            entity_type=group.entity_type,
            name=group.name,
            display_name=group.display_name,
            description=group.description,
            sort_order=group.sort_order,
            is_active=group.is_active,
        )
    general: GroupBucket[T] = GroupBucket(
        id=GENERAL_GROUP_ID,
        entity_type=entity_type,
        name=GENERAL_GROUP_NAME,
        display_name=GENERAL_GROUP_NAME,
        description=None,
        sort_order=GENERAL_SORT_ORDER,
    )

    for item in items:
        group_id = group_id_of(item)
        bucket = buckets.get(group_id) if group_id is not None else None
        (bucket or general).items.append(item)

    result = [bucket for bucket in buckets.values() if bucket.items or not drop_empty]
    if general.items:
        result.append(general)
    result.sort(key=lambda bucket: bucket.sort_order)
    return result
