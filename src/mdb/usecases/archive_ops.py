"""
Archive handlers: operators adding files to existing content units.

sirtutim attaches a drawing made during a lesson to the unit of its original.

Insert modes:
    new     a file that must not exist yet
    update  a new file replacing ``old_sha1``, which is removed
    rename  new attributes for an existing file
"""

from __future__ import annotations

from typing import Any

import structlog

from ..domain import events
from ..domain.entities import ContentUnit, File
from ..domain.events import Event
from ..infra.exceptions import (
    ContentUnitNotFound,
    FileNotFound,
    PublisherNotFound,
    ValidationError,
)
from ..shared.schemas import InsertRequest, SirtutimRequest
from ..shared.types import ContentType, InsertMode, OperationType
from .context import HandlerContext, HandlerOutcome
from .publishing import remove_file

_log = structlog.get_logger(__name__)

PUBLICATION_INSERT = "publication"


def _derived_unit(ctx: HandlerContext, cu: ContentUnit, cu_type: ContentType) -> ContentUnit:
    existing = ctx.store.derived_units(cu.id, cu_type)
    if existing:
        _log.info("derived_unit_exists", content_unit_id=existing[0].id, type=cu_type.value)
        return existing[0]
    derived = ctx.units.create_unit(cu_type)
    ctx.store.add_derivation(cu, derived, cu_type.value)
    return derived


def _publication_unit(
    ctx: HandlerContext, cu: ContentUnit, publisher_uid: str | None, language: str | None
) -> ContentUnit:
    publisher = ctx.store.find_publisher_by_uid(publisher_uid) if publisher_uid else None
    if publisher is None:
        raise PublisherNotFound(f"Publisher not found: uid={publisher_uid}")

    existing = ctx.store.derived_units(cu.id, ContentType.PUBLICATION, publisher_id=publisher.id)
    if existing:
        _log.info("publication_unit_exists", content_unit_id=existing[0].id)
        return existing[0]

    derived = ctx.units.create_unit(ContentType.PUBLICATION, {"original_language": language})
    ctx.store.add_publishers(derived, [publisher])
    ctx.store.add_derivation(cu, derived, ContentType.PUBLICATION.value)
    return derived


def _target_unit(ctx: HandlerContext, req: InsertRequest, cu: ContentUnit, f: File) -> ContentUnit:
    derived_type = ctx.registry.insert_derived_types.get(req.insert_type)
    if derived_type is not None:
        return _derived_unit(ctx, cu, derived_type)
    if req.insert_type == PUBLICATION_INSERT:
        return _publication_unit(ctx, cu, req.publisher_uid, f.language)
    return cu


def handle_insert(ctx: HandlerContext, req: InsertRequest) -> HandlerOutcome:
    f = ctx.lineage.find_by_sha1(req.file.sha1)
    if req.mode == InsertMode.NEW and f is not None:
        raise ValidationError(f"File already exists: sha1={req.file.sha1}")
    if req.mode == InsertMode.RENAME and f is None:
        raise FileNotFound(req.file.sha1, "renamed file")

    op_files: list[File] = []
    old_file: File | None = None
    if req.mode == InsertMode.UPDATE:
        old_file = ctx.lineage.require(req.old_sha1, "old file")
        op_files.append(old_file)

    cu = ctx.store.find_content_unit_by_uid(req.content_unit_uid)
    if cu is None:
        raise ContentUnitNotFound(f"Content unit not found: uid={req.content_unit_uid}")

    parent: File | None = None
    if req.parent_sha1:
        parent = ctx.lineage.find_by_sha1(req.parent_sha1)
        if parent is None:
            _log.warning("insert_parent_not_found", sha1=req.parent_sha1)
        else:
            op_files.append(parent)

    op = ctx.store.create_operation(
        OperationType.INSERT,
        req.operation,
        {"insert_type": req.insert_type, "mode": req.mode.value},
    )

    attrs = req.file
    if not attrs.type:
        attrs = attrs.model_copy(
            update={"type": ctx.registry.insert_file_types.get(req.insert_type, "")}
        )
    props: dict[str, Any] = {}
    if req.av_file.duration:
        props["duration"] = req.av_file.duration
    if req.av_file.video_size:
        props["video_size"] = req.av_file.video_size

    if req.mode == InsertMode.RENAME:
        ctx.lineage.reset(f, parent, attrs, props)
    else:
        f = ctx.lineage.create(parent, attrs, props)
    op_files.append(f)

    target = _target_unit(ctx, req, cu, f)
    ctx.units.attach_files(target, f)
    _log.info("insert_file_attached", file_id=f.id, content_unit_id=target.id)

    evts: list[Event] = []
    if req.mode == InsertMode.NEW:
        evts.append(events.file_insert(f, req.insert_type))
    elif req.mode == InsertMode.RENAME:
        evts.append(events.file_update(f))
    else:
        evts.append(events.file_replace(old_file, f, req.insert_type))
        evts.extend(remove_file(ctx.store, old_file))

    # Units not created by a send of a trimmed file get their duration here
    if req.av_file.duration and len(ctx.store.unit_files(target.id)) == 1:
        ctx.units.merge_properties(target, {"duration": int(req.av_file.duration)})
        evts.append(events.content_unit_updated(target))

    ctx.store.link_files_to_operation(op, *op_files)
    return HandlerOutcome(op, evts)


def handle_sirtutim(ctx: HandlerContext, req: SirtutimRequest) -> HandlerOutcome:
    op = ctx.store.create_operation(OperationType.SIRTUTIM, req.operation)
    file_type = ctx.registry.insert_file_types.get(OperationType.SIRTUTIM.value, "image")
    f = ctx.lineage.create(None, req.file, type=file_type)

    original: File | None = None
    if req.original_sha1:
        original = ctx.lineage.find_by_sha1(req.original_sha1)
        if original is None:
            _log.warning("sirtutim_original_not_found", sha1=req.original_sha1)
        elif original.content_unit_id is None:
            _log.warning("sirtutim_original_without_unit", file_id=original.id)
        else:
            cu = ctx.store.get_content_unit(original.content_unit_id)
            ctx.units.attach_files(cu, f)
            _log.info("sirtutim_attached", file_id=f.id, content_unit_id=cu.id)

    ctx.store.link_files_to_operation(op, original, f)
    return HandlerOutcome(op)
