"""
Handlers for the delivery side of the studio pipeline.

send hands a trimmed original/proxy pair to the archive together with its
CIT metadata; convert, transcode and join derive further renditions; upload
publishes a file to the public storage.
"""

from __future__ import annotations

from typing import Any

import structlog

from ..domain import events
from ..domain.entities import File
from ..domain.events import Event
from ..infra.store import utcnow
from ..shared.schemas import (
    ConvertOutput,
    ConvertRequest,
    JoinRequest,
    RenamedFile,
    SendRequest,
    TranscodeRequest,
    UploadRequest,
    metadata_properties,
)
from ..shared.types import OperationType, SendMode
from .cit_metadata import process_cit_metadata, process_cit_metadata_update
from .context import HandlerContext, HandlerOutcome
from .publishing import publish_file

_log = structlog.get_logger(__name__)


def _rename(ctx: HandlerContext, f: File, renamed: RenamedFile, role: str) -> list[Event]:
    if f.name == renamed.file_name:
        return []
    _log.info("file_renamed", role=role, file_id=f.id, old=f.name, new=renamed.file_name)
    ctx.lineage.update(f, name=renamed.file_name)
    return [events.file_update(f)]


def handle_send(ctx: HandlerContext, req: SendRequest) -> HandlerOutcome:
    original = ctx.lineage.require(req.original.sha1, "original")
    proxy = ctx.lineage.require(req.proxy.sha1, "proxy")

    evts = _rename(ctx, original, req.original, "original")
    evts += _rename(ctx, proxy, req.proxy, "proxy")

    _log.info("cit_metadata_processing", mode=req.mode.value)
    if req.mode == SendMode.NEW:
        cu, cit_events = process_cit_metadata(ctx, req.metadata, original, proxy)
    else:
        cu, cit_events = process_cit_metadata_update(ctx, req.metadata, original, proxy)
    evts += cit_events

    props = metadata_properties(req.metadata)
    props["mode"] = req.mode.value
    op = ctx.store.create_operation(OperationType.SEND, req.operation, props)
    ctx.store.link_files_to_operation(op, original, proxy)

    workflow_id = req.workflow_id or req.operation.workflow_id
    if workflow_id:
        ctx.units.merge_properties(cu, {"workflow_id": workflow_id})

    return HandlerOutcome(op, evts)


def _convert_props(out: ConvertOutput) -> dict[str, Any]:
    props = {"duration": out.duration}
    if out.video_size:
        props["video_size"] = out.video_size
    return props


def handle_convert(ctx: HandlerContext, req: ConvertRequest) -> HandlerOutcome:
    parent = ctx.lineage.find_by_sha1(req.sha1)
    if parent is None:
        _log.info("convert_parent_not_found_noop", sha1=req.sha1)
        return HandlerOutcome()

    op = ctx.store.create_operation(OperationType.CONVERT, req.operation)
    files, evts = ctx.lineage.upsert_outputs(parent, req.output, _convert_props)

    ctx.store.link_files_to_operation(op, parent, *files)
    return HandlerOutcome(op, evts)


def handle_upload(ctx: HandlerContext, req: UploadRequest) -> HandlerOutcome:
    op = ctx.store.create_operation(OperationType.UPLOAD, req.operation)

    f = ctx.lineage.find_by_sha1(req.file.sha1)
    if f is None:
        _log.info("upload_file_not_found_creating", sha1=req.file.sha1)
        f = ctx.lineage.create(None, req.file)

    props: dict[str, Any] = {"url": req.url}
    if req.duration is not None:
        props["duration"] = req.duration
    ctx.store.merge_file_properties(f, props)
    evts = publish_file(ctx.store, f)

    ctx.store.link_files_to_operation(op, f)
    return HandlerOutcome(op, evts)


def handle_transcode(ctx: HandlerContext, req: TranscodeRequest) -> HandlerOutcome:
    if req.message:
        _log.info("transcode_failed", original_sha1=req.original_sha1, message=req.message)
        op = ctx.store.create_operation(
            OperationType.TRANSCODE, req.operation, {"message": req.message}
        )
        original = ctx.lineage.require(req.original_sha1, "original")
        ctx.store.link_files_to_operation(op, original)
        return HandlerOutcome(op)

    op = ctx.store.create_operation(OperationType.TRANSCODE, req.operation)
    original = ctx.lineage.require(req.original_sha1, "original")

    mt = ctx.registry.media_type_by_extension("mp4")
    overrides: dict[str, Any] = {"type": mt.type, "mime_type": mt.mime_type}
    if original.language:
        overrides["language"] = original.language
    duration = (original.properties or {}).get("duration")
    f = ctx.lineage.create(
        original,
        req.maybe_file,
        {"duration": duration},
        secure=original.secure,
        published=True,
        **overrides,
    )

    op_files = [original, f]
    for child in ctx.store.file_children(original.id):
        if child.id == f.id:
            continue
        _log.info("transcode_child_removed", file_id=child.id)
        ctx.store.update_file(child, removed_at=child.removed_at or utcnow())
        op_files.append(child)

    ctx.store.link_files_to_operation(op, *op_files)
    return HandlerOutcome(op)


def handle_join(ctx: HandlerContext, req: JoinRequest) -> HandlerOutcome:
    in_originals = [
        ctx.lineage.require(sha1, f"original #{i}") for i, sha1 in enumerate(req.original_shas, 1)
    ]
    in_proxies = [
        ctx.lineage.require(sha1, f"proxy #{i}") for i, sha1 in enumerate(req.proxy_shas, 1)
    ]

    op = ctx.store.create_operation(
        OperationType.JOIN,
        req.operation,
        {"original_shas": req.original_shas, "proxy_shas": req.proxy_shas},
    )
    original = ctx.lineage.create(None, req.original, {"duration": req.original.duration})
    proxy = ctx.lineage.create(None, req.proxy, {"duration": req.proxy.duration})

    ctx.store.link_files_to_operation(op, *in_originals, *in_proxies, original, proxy)
    return HandlerOutcome(op)
