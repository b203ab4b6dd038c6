from __future__ import annotations

from datetime import datetime

import structlog

from ..domain import events
from ..domain.entities import File
from ..domain.events import Event
from ..infra.store import Store, utcnow

_log = structlog.get_logger(__name__)


def publish_file(store: Store, f: File) -> list[Event]:
    """
    Mark a file published and propagate to its content unit.

    - Emits file-published
    - If the file's unit is not yet published, publishes it and emits
      content-unit-published
    """
    store.update_file(f, published=True)
    evts = [events.file_published(f)]

    if f.content_unit_id is not None:
        cu = store.get_content_unit(f.content_unit_id)
        if cu is not None and not cu.published:
            store.update_content_unit(cu, published=True)
            _log.info("content_unit_published", content_unit_id=cu.id, file_id=f.id)
            evts.append(events.content_unit_published(cu))
    return evts


def remove_file(store: Store, f: File, when: datetime | None = None) -> list[Event]:
    """
    Soft-delete a file and unpublish its unit if nothing published remains.
    """
    store.update_file(f, removed_at=when or utcnow())
    evts = [events.file_removed(f)]
    _log.info("file_removed", file_id=f.id, sha1=f.sha1)

    if f.content_unit_id is not None:
        cu = store.get_content_unit(f.content_unit_id)
        if cu is not None and cu.published and not store.unit_has_published_files(cu.id):
            store.update_content_unit(cu, published=False)
            _log.info("content_unit_unpublished", content_unit_id=cu.id)
            evts.append(events.content_unit_updated(cu))
    return evts
