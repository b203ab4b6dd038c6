"""
Processing of CIT (Content Identification Tool) metadata.

A send operation carries the operator's description of what was recorded.
In ``new`` mode it creates the content unit for the sent original and proxy:

    1. Update original and proxy properties (capture_date, film_date)
    2. Update the original's language
    3. Create the content unit
    4. Attach original and proxy, and for a main unit the original's ancestors
    5. Associate sources, tags and the lecturer
    6. Find or create the collection and associate the unit with it
    7. Link main and derived units

A send delivered again finds the unit already holding the original and brings
it up to date in place; step 3 never creates a second unit for one original.

In ``update`` mode the existing unit of the original is corrected instead.
"""

from __future__ import annotations

from typing import Any

import structlog

from ..domain import events
from ..domain.entities import ContentUnit, File
from ..domain.events import Event
from ..infra.exceptions import ValidationError
from ..shared.schemas import CITMetadata
from ..shared.types import ContentType
from .content_units import parse_content_type
from .context import HandlerContext
from .derivations import is_main_artifact
from .publishing import remove_file

_log = structlog.get_logger(__name__)


def _dates(metadata: CITMetadata) -> dict[str, Any]:
    return {
        "capture_date": metadata.capture_date,
        "film_date": metadata.week_date or metadata.capture_date,
    }


def _update_files(ctx: HandlerContext, metadata: CITMetadata, original: File, proxy: File) -> str:
    props = _dates(metadata)
    ctx.store.merge_file_properties(original, props)
    ctx.store.merge_file_properties(proxy, props)

    lang = ctx.units.resolve_language(metadata)
    ctx.store.update_file(original, language=lang)
    return lang


def _retype(ctx: HandlerContext, cu: ContentUnit, cu_type: ContentType) -> None:
    if cu.type != cu_type:
        _log.info("content_unit_retyped", content_unit_id=cu.id, old=cu.type.value, new=cu_type.value)
        ctx.store.update_content_unit(cu, type=cu_type)


def process_cit_metadata(
    ctx: HandlerContext, metadata: CITMetadata, original: File, proxy: File
) -> tuple[ContentUnit, list[Event]]:
    """Create and reconcile the content unit for a sent original/proxy pair."""
    cu_type = parse_content_type(metadata.content_type)
    _update_files(ctx, metadata, original, proxy)

    cu = ctx.store.get_content_unit(original.content_unit_id) if original.content_unit_id else None
    if cu is None:
        cu = ctx.units.create_unit(cu_type, _dates(metadata), secure=original.secure)
        evt = events.content_unit_created(cu)
    else:
        _log.info("content_unit_resent", content_unit_id=cu.id, uid=cu.uid)
        _retype(ctx, cu, cu_type)
        ctx.units.merge_properties(cu, _dates(metadata))
        evt = events.content_unit_updated(cu)
    ctx.units.attach_files(cu, original, proxy)

    is_main = is_main_artifact(metadata.artifact_type)
    if is_main:
        ancestors = ctx.lineage.ancestors(original.id)
        ctx.units.attach_files(cu, *ancestors)
        _log.info("ancestors_attached", content_unit_id=cu.id, count=len(ancestors))

    ctx.units.attach_sources(cu, metadata.sources)
    ctx.units.attach_tags(cu, metadata.tags)
    ctx.units.attach_lecturer(cu, metadata.lecturer)

    c = ctx.collections.reconcile(cu, metadata, original)
    if c is not None and is_main:
        ctx.collections.associate(c, cu, metadata)

    ctx.derivations.link(cu, metadata.artifact_type, original)

    return cu, [evt]


def process_cit_metadata_update(
    ctx: HandlerContext, metadata: CITMetadata, original: File, proxy: File
) -> tuple[ContentUnit, list[Event]]:
    """
    Correct the content unit of an already sent original.

    Files previously converted from the original and proxy are soft-removed;
    a following convert re-creates (and resurrects) them.

    Raises:
        ValidationError: If the original has no content unit yet
    """
    if original.content_unit_id is None:
        raise ValidationError(f"Original [{original.id}] has no content unit to update")
    cu = ctx.store.get_content_unit(original.content_unit_id)
    if cu is None:
        raise ValidationError(f"Content unit [{original.content_unit_id}] of original not found")

    cu_type = parse_content_type(metadata.content_type)
    lang = _update_files(ctx, metadata, original, proxy)

    _retype(ctx, cu, cu_type)
    ctx.units.merge_properties(cu, {**_dates(metadata), "original_language": lang})

    ctx.units.replace_sources(cu, metadata.sources)
    ctx.units.replace_tags(cu, metadata.tags)
    ctx.units.replace_lecturer(cu, metadata.lecturer)

    evts: list[Event] = [events.content_unit_updated(cu)]
    for f in (original, proxy):
        for d in ctx.lineage.descendants(f.id):
            if d.removed_at is None:
                evts.extend(remove_file(ctx.store, d))
    return cu, evts
