"""
File lineage tracking.

Files form a forest through ``parent_id``: every studio step that produces a
new physical artifact links it to the file it was made from. This module owns
creating those files, resolving them by content hash and keeping the forest
acyclic.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeVar

import structlog

from ..config.registry import Registry
from ..domain import events
from ..domain.entities import File
from ..domain.events import Event
from ..infra.exceptions import FileNotFound, ValidationError
from ..infra.store import Store
from ..shared.schemas import FileAttrs

_log = structlog.get_logger(__name__)

A = TypeVar("A", bound=FileAttrs)


def _compact(props: dict[str, Any] | None) -> dict[str, Any]:
    return {k: v for k, v in (props or {}).items() if v is not None}


class FileLineage:
    def __init__(self, store: Store, registry: Registry):
        self.store = store
        self.registry = registry

    def find_by_sha1(self, sha1: str) -> File | None:
        return self.store.find_file_by_sha1(sha1)

    def require(self, sha1: str, role: str = "file") -> File:
        """Find a file by sha1 or raise FileNotFound naming its role in the event."""
        f = self.store.find_file_by_sha1(sha1)
        if f is None:
            raise FileNotFound(sha1, role)
        return f

    def _attr_fields(self, attrs: FileAttrs) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "name": attrs.file_name,
            "sha1": attrs.sha1,
            "size": attrs.size,
            "file_created_at": attrs.created_at,
            "type": attrs.type or "",
            "sub_type": attrs.sub_type or "",
            "mime_type": attrs.mime_type,
        }
        if not attrs.type or not attrs.mime_type:
            mt = self.registry.media_type_for(attrs.file_name)
            if mt is not None:
                fields["type"] = attrs.type or mt.type
                fields["sub_type"] = attrs.sub_type or mt.sub_type
                fields["mime_type"] = attrs.mime_type or mt.mime_type
        if attrs.language:
            fields["language"] = self.registry.std_lang(attrs.language)
        return fields

    def create(
        self,
        parent: File | None,
        attrs: FileAttrs | None,
        props: dict[str, Any] | None = None,
        **fields: Any,
    ) -> File:
        """
        Create a file below ``parent``.

        ``attrs`` carries the physical attributes reported by the studio; keyword
        ``fields`` override them (a sha1-less capture file passes only ``name``).
        """
        values = self._attr_fields(attrs) if attrs is not None else {}
        values.update(fields)
        name = values.pop("name", None)
        if not name:
            raise ValidationError("File name is required")
        f = self.store.create_file(parent, name=name, properties=_compact(props), **values)
        _log.info(
            "file_created",
            file_id=f.id,
            uid=f.uid,
            sha1=f.sha1,
            parent_id=f.parent_id,
        )
        return f

    def ancestors(self, file_id: int) -> list[File]:
        return self.store.file_ancestors(file_id)

    def descendants(self, file_id: int) -> list[File]:
        return self.store.file_descendants(file_id)

    def update(
        self,
        f: File,
        *,
        parent: File | None = None,
        attrs: FileAttrs | None = None,
        props: dict[str, Any] | None = None,
        **fields: Any,
    ) -> File:
        """
        Update a file's attributes and properties, optionally re-parenting it.

        Raises:
            ValidationError: If ``parent`` is the file itself or one of its descendants
        """
        values = self._attr_fields(attrs) if attrs is not None else {}
        values.update(fields)
        if parent is not None and parent.id != f.parent_id:
            self._check_parent(f, parent)
            values["parent_id"] = parent.id
        if values:
            self.store.update_file(f, **values)
        if props:
            self.store.merge_file_properties(f, _compact(props))
        return f

    def reset(
        self, f: File, parent: File | None, attrs: FileAttrs, props: dict[str, Any] | None = None
    ) -> File:
        """
        Overwrite a file's attributes, parent and properties with newly reported ones.

        Unlike ``update`` nothing is merged: a missing ``parent`` detaches the
        file and properties absent from ``props`` are dropped.
        """
        if parent is not None:
            self._check_parent(f, parent)
        values = self._attr_fields(attrs)
        values["parent_id"] = parent.id if parent is not None else None
        self.store.update_file(f, **values)
        self.store.replace_file_properties(f, _compact(props))
        _log.info("file_reset", file_id=f.id, parent_id=f.parent_id)
        return f

    def _check_parent(self, f: File, parent: File) -> None:
        if parent.id == f.id or f.id in {a.id for a in self.ancestors(parent.id)}:
            raise ValidationError(
                f"Cannot move file [{f.id}] below its own descendant [{parent.id}]"
            )

    def restore(self, f: File) -> bool:
        """Resurrect a soft-deleted file. Returns True if it was removed."""
        if f.removed_at is None:
            return False
        self.store.update_file(f, removed_at=None)
        _log.info("file_restored", file_id=f.id, sha1=f.sha1)
        return True

    @staticmethod
    def dedup_outputs(outputs: Iterable[A]) -> list[A]:
        """
        Collapse outputs sharing a sha1 into one entry.

        Keeps first-seen order; the attributes of the last duplicate win.
        """
        uniq: dict[str, A] = {}
        for out in outputs:
            uniq[out.sha1.lower()] = out
        return list(uniq.values())

    def upsert_outputs(
        self,
        parent: File,
        outputs: Sequence[A],
        props_for: Callable[[A], dict[str, Any]],
    ) -> tuple[list[File], list[Event]]:
        """
        Create or refresh one file per unique output hash below ``parent``.

        Existing files (a reconvert) are re-parented, refreshed and resurrected
        and produce a file-updated event. New files produce no event.
        """
        uniq = self.dedup_outputs(outputs)
        _log.info("outputs_deduped", unique=len(uniq), total=len(outputs))

        files: list[File] = []
        evts: list[Event] = []
        for out in uniq:
            f = self.find_by_sha1(out.sha1)
            if f is not None:
                _log.info("file_exists_updating", file_id=f.id, sha1=f.sha1)
                self.update(f, parent=parent, attrs=out, props=props_for(out))
                self.restore(f)
                evts.append(events.file_update(f))
            else:
                f = self.create(parent, out, props_for(out))
            files.append(f)
        return files, evts
