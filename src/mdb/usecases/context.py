from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ..config.registry import Registry
from ..domain.entities import Operation
from ..domain.events import Event
from ..infra.store import Store
from .collection_reconciler import CollectionReconciler
from .content_units import ContentUnitBuilder
from .derivations import DerivationLinker
from .file_lineage import FileLineage


class HandlerContext:
    """Components a handler works with, all bound to the session of one transaction."""

    def __init__(self, store: Store, registry: Registry):
        self.store = store
        self.registry = registry
        self.lineage = FileLineage(store, registry)
        self.units = ContentUnitBuilder(store, registry)
        self.collections = CollectionReconciler(store, registry)
        self.derivations = DerivationLinker(store, registry)

    @classmethod
    def for_session(cls, db: Session, registry: Registry) -> HandlerContext:
        return cls(Store(db), registry)


@dataclass
class HandlerOutcome:
    operation: Operation | None = None
    events: list[Event] = field(default_factory=list)
