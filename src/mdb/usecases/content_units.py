from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from ..config.registry import Registry
from ..domain.entities import ContentUnit, File, Person, Source, Tag
from ..infra.exceptions import ValidationError
from ..infra.store import Store
from ..shared.schemas import CITMetadata
from ..shared.types import LANG_MULTI, LANG_UNKNOWN, ContentRole, ContentType, SecurityLevel

_log = structlog.get_logger(__name__)


def parse_content_type(name: str) -> ContentType:
    try:
        return ContentType(name.strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown content type: {name}") from exc


class ContentUnitBuilder:
    """Creates content units and manages their files, associations and properties."""

    def __init__(self, store: Store, registry: Registry):
        self.store = store
        self.registry = registry

    def create_unit(
        self,
        cu_type: ContentType,
        props: dict[str, Any] | None = None,
        *,
        secure: int = SecurityLevel.PUBLIC,
    ) -> ContentUnit:
        cu = self.store.create_content_unit(cu_type, props, secure=secure)
        _log.info("content_unit_created", content_unit_id=cu.id, uid=cu.uid, type=cu_type.value)
        return cu

    def attach_files(self, cu: ContentUnit, *files: File) -> None:
        self.store.attach_files(cu, files)

    def attach_sources(self, cu: ContentUnit, uids: Sequence[str]) -> list[Source]:
        if not uids:
            return []
        sources, missing = self.store.resolve_by_uid("source", uids)
        if missing:
            _log.warning("sources_not_found", content_unit_id=cu.id, missing=missing)
        self.store.add_sources(cu, sources)
        return sources

    def replace_sources(self, cu: ContentUnit, uids: Sequence[str]) -> list[Source]:
        sources, missing = self.store.resolve_by_uid("source", uids)
        if missing:
            _log.warning("sources_not_found", content_unit_id=cu.id, missing=missing)
        self.store.replace_sources(cu, sources)
        return sources

    def attach_tags(self, cu: ContentUnit, uids: Sequence[str]) -> list[Tag]:
        if not uids:
            return []
        tags, missing = self.store.resolve_by_uid("tag", uids)
        if missing:
            _log.warning("tags_not_found", content_unit_id=cu.id, missing=missing)
        self.store.add_tags(cu, tags)
        return tags

    def replace_tags(self, cu: ContentUnit, uids: Sequence[str]) -> list[Tag]:
        tags, missing = self.store.resolve_by_uid("tag", uids)
        if missing:
            _log.warning("tags_not_found", content_unit_id=cu.id, missing=missing)
        self.store.replace_tags(cu, tags)
        return tags

    def attach_lecturer(self, cu: ContentUnit, name: str | None) -> Person | None:
        """Associate the lecturer with role LECTURER. Unrecognized names are skipped."""
        pattern = self.registry.lecturer_pattern(name)
        if pattern is None:
            _log.info("lecturer_unknown_skipped", content_unit_id=cu.id, lecturer=name)
            return None
        person = self.store.find_person_by_pattern(pattern)
        if person is None:
            _log.warning("lecturer_person_missing", content_unit_id=cu.id, pattern=pattern)
            return None
        self.store.add_person(cu, person, ContentRole.LECTURER)
        return person

    def replace_lecturer(self, cu: ContentUnit, name: str | None) -> Person | None:
        self.store.remove_persons(cu, ContentRole.LECTURER)
        return self.attach_lecturer(cu, name)

    def merge_properties(self, cu: ContentUnit, patch: dict[str, Any]) -> ContentUnit:
        return self.store.merge_content_unit_properties(cu, patch)

    def resolve_language(self, metadata: CITMetadata) -> str:
        if metadata.has_translation:
            return LANG_MULTI
        lang = self.registry.std_lang(metadata.language)
        if lang == LANG_UNKNOWN:
            _log.warning("language_unknown", language=metadata.language)
        return lang
