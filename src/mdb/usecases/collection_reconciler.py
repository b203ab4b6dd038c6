"""
Collection reconciliation for newly created content units.

Lesson parts recorded in one broadcast share the capture id stamped by the
capture_stop step. The first part to arrive creates the collection keyed by
that id; later parts find it, and a full lesson takes it over with its own
type and properties.
"""

from __future__ import annotations

from typing import Any

import structlog

from ..config.registry import Registry
from ..domain.entities import Collection, ContentUnit, File
from ..infra.exceptions import UpChainOperationNotFound
from ..infra.store import Store
from ..shared.schemas import CITMetadata
from ..shared.types import (
    CAPTURE_RECONCILED_TYPES,
    LESSON_COLLECTION_TYPES,
    ContentType,
    OperationType,
)

_log = structlog.get_logger(__name__)

FULL_SLOT = "full"


class CollectionReconciler:
    def __init__(self, store: Store, registry: Registry):
        self.store = store
        self.registry = registry

    def reconcile(
        self, cu: ContentUnit, metadata: CITMetadata, original: File
    ) -> Collection | None:
        """
        Find (or create) the collection ``cu`` belongs to.

        Returns None when no collection could be determined; that is logged,
        never raised.
        """
        if metadata.collection_uid:
            c = self.store.find_collection_by_uid(metadata.collection_uid)
            if c is None:
                _log.warning("collection_not_found", collection_uid=metadata.collection_uid)
            return c

        if cu.type not in CAPTURE_RECONCILED_TYPES:
            return None

        capture_id = self._capture_id(original)
        if capture_id is None:
            return None
        return self._find_or_create(cu.type, capture_id, metadata)

    def _capture_id(self, original: File) -> str | None:
        try:
            op = self.store.find_upchain_operation(original.id, OperationType.CAPTURE_STOP)
        except UpChainOperationNotFound as exc:
            _log.warning("capture_stop_not_found", file_id=original.id, error=str(exc))
            return None
        capture_id = (op.properties or {}).get("collection_uid")
        if not capture_id:
            _log.warning("capture_id_missing", operation_id=op.id)
            return None
        return str(capture_id)

    def _find_or_create(
        self, cu_type: ContentType, capture_id: str, metadata: CITMetadata
    ) -> Collection:
        c_type = ContentType.SATURDAY_LESSON if metadata.week_date else ContentType.DAILY_LESSON
        props: dict[str, Any] = {
            "capture_date": metadata.capture_date,
            "film_date": metadata.week_date or metadata.capture_date,
            "capture_id": capture_id,
        }
        if metadata.number is not None:
            props["number"] = metadata.number

        c = self.store.find_collection_by_capture_id(capture_id)
        if c is None:
            c = self.store.create_collection(c_type, props)
            _log.info("collection_created", collection_id=c.id, uid=c.uid, capture_id=capture_id)
        elif cu_type == ContentType.FULL_LESSON:
            if c.type != c_type:
                _log.info("collection_retyped", collection_id=c.id, old=c.type.value, new=c_type.value)
                self.store.update_collection(c, type=c_type)
            self.store.merge_collection_properties(c, props)
        return c

    def slot_name(self, cu_type: ContentType, c: Collection, metadata: CITMetadata) -> str:
        """Name of the unit's slot in the collection, by unit type."""
        if cu_type == ContentType.FULL_LESSON:
            if c.type in LESSON_COLLECTION_TYPES:
                return FULL_SLOT
            return str(metadata.number) if metadata.number is not None else ""
        if cu_type == ContentType.LESSON_PART:
            return str(metadata.part) if metadata.part is not None else ""
        if cu_type == ContentType.VIDEO_PROGRAM_CHAPTER:
            return metadata.episode or ""

        name = str(metadata.number) if metadata.number is not None else ""
        prefix = self.registry.part_type_prefix(metadata.part_type)
        if prefix is None:
            _log.warning("event_part_type_unknown", part_type=metadata.part_type)
            return name
        return prefix + name

    def associate(self, c: Collection, cu: ContentUnit, metadata: CITMetadata) -> str:
        name = self.slot_name(cu.type, c, metadata)
        self.store.link_collection_unit(c, cu, name)
        _log.info("collection_unit_linked", collection_id=c.id, content_unit_id=cu.id, name=name)
        return name
