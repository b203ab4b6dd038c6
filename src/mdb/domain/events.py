"""
Domain events produced by operation handlers.

Events are plain value objects. They capture identity (uid and id) while the
transaction is still open, so emitters can run after commit without touching
expired ORM state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .entities import ContentUnit, File

FILE_INSERTED = "file-inserted"
FILE_UPDATED = "file-updated"
FILE_REPLACED = "file-replaced"
FILE_PUBLISHED = "file-published"
FILE_REMOVED = "file-removed"
CONTENT_UNIT_CREATED = "content-unit-created"
CONTENT_UNIT_UPDATED = "content-unit-updated"
CONTENT_UNIT_PUBLISHED = "content-unit-published"


@dataclass(frozen=True)
class EntityRef:
    id: int
    uid: str


@dataclass(frozen=True)
class Event:
    type: str
    entity: EntityRef
    replaced: EntityRef | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "id": self.entity.id, "uid": self.entity.uid}
        if self.replaced is not None:
            data["old"] = {"id": self.replaced.id, "uid": self.replaced.uid}
        if self.payload:
            data["payload"] = dict(self.payload)
        return data


def _ref(obj: File | ContentUnit) -> EntityRef:
    return EntityRef(id=obj.id, uid=obj.uid)


def file_insert(f: File, insert_type: str | None = None) -> Event:
    payload = {"insert_type": insert_type} if insert_type else {}
    return Event(FILE_INSERTED, _ref(f), payload=payload)


def file_update(f: File) -> Event:
    return Event(FILE_UPDATED, _ref(f))


def file_replace(old: File, new: File, insert_type: str | None = None) -> Event:
    payload = {"insert_type": insert_type} if insert_type else {}
    return Event(FILE_REPLACED, _ref(new), replaced=_ref(old), payload=payload)


def file_published(f: File) -> Event:
    return Event(FILE_PUBLISHED, _ref(f))


def file_removed(f: File) -> Event:
    return Event(FILE_REMOVED, _ref(f))


def content_unit_created(cu: ContentUnit) -> Event:
    return Event(CONTENT_UNIT_CREATED, _ref(cu), payload={"type": cu.type.value})


def content_unit_updated(cu: ContentUnit) -> Event:
    return Event(CONTENT_UNIT_UPDATED, _ref(cu))


def content_unit_published(cu: ContentUnit) -> Event:
    return Event(CONTENT_UNIT_PUBLISHED, _ref(cu))
