"""
Handlers for the capture side of the studio pipeline.

capture_start and capture_stop bracket a recording; demux splits the captured
file into original and proxy; trim cuts both.
"""

from __future__ import annotations

import structlog

from ..shared.schemas import CaptureStartRequest, CaptureStopRequest, DemuxRequest, TrimRequest
from ..shared.types import OperationType
from .context import HandlerContext, HandlerOutcome

_log = structlog.get_logger(__name__)


def handle_capture_start(ctx: HandlerContext, req: CaptureStartRequest) -> HandlerOutcome:
    op = ctx.store.create_operation(
        OperationType.CAPTURE_START,
        req.operation,
        {"capture_source": req.capture_source, "collection_uid": req.collection_uid},
    )
    f = ctx.lineage.create(None, None, name=req.file_name)
    ctx.store.link_files_to_operation(op, f)
    return HandlerOutcome(op)


def handle_capture_stop(ctx: HandlerContext, req: CaptureStopRequest) -> HandlerOutcome:
    # collection_uid is the capture id shared by all parts of one broadcast
    op = ctx.store.create_operation(
        OperationType.CAPTURE_STOP,
        req.operation,
        {
            "capture_source": req.capture_source,
            "collection_uid": req.collection_uid,
            "part": req.part,
        },
    )

    workflow_id = req.operation.workflow_id
    parent = ctx.store.find_capture_start_file(workflow_id) if workflow_id else None
    if parent is None:
        _log.warning("capture_start_not_found", workflow_id=workflow_id)

    props = {"duration": req.file.duration}
    if req.label_id is not None:
        props["label_id"] = req.label_id
    f = ctx.lineage.create(parent, req.file, props)

    ctx.store.link_files_to_operation(op, f)
    return HandlerOutcome(op)


def handle_demux(ctx: HandlerContext, req: DemuxRequest) -> HandlerOutcome:
    parent = ctx.lineage.require(req.sha1, "parent")

    op = ctx.store.create_operation(
        OperationType.DEMUX, req.operation, {"capture_source": req.capture_source}
    )
    original = ctx.lineage.create(parent, req.original, {"duration": req.original.duration})
    proxy = ctx.lineage.create(parent, req.proxy, {"duration": req.proxy.duration})

    ctx.store.link_files_to_operation(op, parent, original, proxy)
    return HandlerOutcome(op)


def handle_trim(ctx: HandlerContext, req: TrimRequest) -> HandlerOutcome:
    original = ctx.lineage.require(req.original_sha1, "original")
    proxy = ctx.lineage.require(req.proxy_sha1, "proxy")

    op = ctx.store.create_operation(
        OperationType.TRIM,
        req.operation,
        {"capture_source": req.capture_source, "in": req.trim_in, "out": req.trim_out},
    )
    original_trim = ctx.lineage.create(original, req.original, {"duration": req.original.duration})
    proxy_trim = ctx.lineage.create(proxy, req.proxy, {"duration": req.proxy.duration})

    ctx.store.link_files_to_operation(op, original, original_trim, proxy, proxy_trim)
    return HandlerOutcome(op)
