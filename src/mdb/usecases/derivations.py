"""
Derivation linking between main and derived content units.

Studio operators do not report artifacts in a fixed order: a derived unit
(transcript, alternate cut) may be sent before the main unit of the same
recording. A derived unit that finds no main unit parks its ``artifact_type``
on itself; the main unit picks parked siblings up when it arrives.
"""

from __future__ import annotations

import structlog

from ..config.registry import Registry
from ..domain.entities import ContentUnit, File
from ..infra.store import Store
from ..shared.types import MAIN_ARTIFACT

_log = structlog.get_logger(__name__)

PENDING_KEY = "artifact_type"


def is_main_artifact(artifact_type: str | None) -> bool:
    return not artifact_type or artifact_type == MAIN_ARTIFACT


class DerivationLinker:
    def __init__(self, store: Store, registry: Registry):
        self.store = store
        self.registry = registry

    def link(self, cu: ContentUnit, artifact_type: str | None, original: File) -> int:
        """
        Resolve derivation edges for a new unit. Returns the number of edges created.
        """
        if original.parent_id is None:
            _log.info("derivation_skipped_no_parent", file_id=original.id)
            return 0

        if is_main_artifact(artifact_type):
            return self._adopt_pending(cu, original.parent_id)
        return self._link_or_park(cu, artifact_type, original.parent_id)

    def _adopt_pending(self, cu: ContentUnit, parent_id: int) -> int:
        pending = self.store.pending_derived_units(parent_id, exclude_unit_id=cu.id)
        _log.info("derived_units_pending", content_unit_id=cu.id, count=len(pending))
        for derived in pending:
            name = str(derived.properties[PENDING_KEY])
            self.store.add_derivation(cu, derived, name)
            self.store.remove_content_unit_property(derived, PENDING_KEY)
            _log.info("derivation_linked", source_id=cu.id, derived_id=derived.id, name=name)
        return len(pending)

    def _link_or_park(self, cu: ContentUnit, artifact_type: str, parent_id: int) -> int:
        parent = self.store.get_file(parent_id)
        if parent is not None and parent.content_unit_id and parent.content_unit_id != cu.id:
            main = self.store.get_content_unit(parent.content_unit_id)
            self.store.add_derivation(main, cu, artifact_type)
            _log.info("derivation_linked", source_id=main.id, derived_id=cu.id, name=artifact_type)
            return 1

        self.store.merge_content_unit_properties(cu, {PENDING_KEY: artifact_type})
        _log.info("artifact_type_parked", content_unit_id=cu.id, artifact_type=artifact_type)
        return 0
