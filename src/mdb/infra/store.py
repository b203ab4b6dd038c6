"""
Store for archive database operations.

This module provides a thin wrapper around SQLAlchemy operations for the
archive entities, following the Unit of Work pattern used throughout the
codebase: the store flushes so generated ids are available, but never commits.

Relations are changed through explicit store methods (association rows are
inserted and deleted directly) rather than by mutating relationship
collections on fetched objects.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from ..domain.entities import (
    Collection,
    CollectionContentUnit,
    ContentUnit,
    ContentUnitDerivation,
    ContentUnitPerson,
    File,
    Operation,
    Person,
    Publisher,
    Source,
    Tag,
    content_units_publishers,
    content_units_sources,
    content_units_tags,
    files_operations,
)
from ..shared.properties import coerce_properties, merge_properties, without_keys
from ..shared.schemas import OperationInfo
from ..shared.types import ContentRole, ContentType, OperationType, SecurityLevel
from ..shared.uid import generate_uid
from .exceptions import IntegrityError, UpChainOperationNotFound, ValidationError

UID_KINDS: dict[str, type] = {
    "source": Source,
    "tag": Tag,
    "publisher": Publisher,
    "person": Person,
    "collection": Collection,
    "content_unit": ContentUnit,
}

FILE_FIELDS = frozenset(
    {
        "name",
        "sha1",
        "size",
        "type",
        "sub_type",
        "mime_type",
        "language",
        "file_created_at",
        "parent_id",
        "content_unit_id",
        "secure",
        "published",
        "removed_at",
    }
)

MAX_UID_ATTEMPTS = 100


class Store:
    """
    Persistence contract used by the operation handlers.

    All lookups return ORM entities bound to the store's session, or None when
    absent. Required lookups are the caller's business (see FileLineage).
    """

    def __init__(self, db: Session):
        """
        Initialize the store with a database session.

        Args:
            db: SQLAlchemy session instance owned by the current Unit of Work
        """
        self.db = db

    # ------------------------------------------------------------------
    # UIDs
    # ------------------------------------------------------------------

    def get_free_uid(self, model: type) -> str:
        """Generate a UID not yet used by any row of ``model``."""
        for _ in range(MAX_UID_ATTEMPTS):
            uid = generate_uid()
            if self.db.scalar(select(model.id).where(model.uid == uid).limit(1)) is None:
                return uid
        raise IntegrityError(f"Could not allocate a free uid for {model.__tablename__}")

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def find_file_by_sha1(self, sha1: str) -> File | None:
        """
        Find a file by its content hash, including soft-deleted files.

        Args:
            sha1: 40 hex chars, any case

        Returns:
            File instance if found, None otherwise
        """
        stmt = select(File).where(File.sha1 == sha1.lower())
        return self.db.scalars(stmt).one_or_none()

    def get_file(self, file_id: int) -> File | None:
        return self.db.get(File, file_id)

    def create_file(
        self,
        parent: File | None,
        *,
        name: str,
        properties: dict[str, Any] | None = None,
        **fields: Any,
    ) -> File:
        """
        Insert a new file, linked to ``parent`` when given.

        Args:
            parent: Parent file in the lineage forest, or None for a root
            name: File name
            properties: Initial property bag
            **fields: Any other column of FILE_FIELDS

        Returns:
            The flushed File with id and uid assigned
        """
        self._check_file_fields(fields)
        if fields.get("sha1"):
            fields["sha1"] = fields["sha1"].lower()
        f = File(
            uid=self.get_free_uid(File),
            name=name,
            parent_id=parent.id if parent is not None else None,
            properties=coerce_properties(properties),
            **fields,
        )
        self.db.add(f)
        self.db.flush()
        return f

    def update_file(self, f: File, **fields: Any) -> File:
        self._check_file_fields(fields)
        if fields.get("sha1"):
            fields["sha1"] = fields["sha1"].lower()
        for key, value in fields.items():
            setattr(f, key, value)
        self.db.flush()
        return f

    def merge_file_properties(self, f: File, patch: dict[str, Any]) -> File:
        f.properties = merge_properties(f.properties, patch)
        self.db.flush()
        return f

    def replace_file_properties(self, f: File, properties: dict[str, Any] | None) -> File:
        f.properties = coerce_properties(properties)
        self.db.flush()
        return f

    def file_children(self, file_id: int) -> list[File]:
        stmt = select(File).where(File.parent_id == file_id).order_by(File.id)
        return list(self.db.scalars(stmt))

    def file_ancestors(self, file_id: int) -> list[File]:
        """
        Walk ``parent_id`` upward to the root.

        Returns:
            Ancestors, nearest parent first, each exactly once

        Raises:
            IntegrityError: If the chain loops back on itself
        """
        f = self.get_file(file_id)
        if f is None:
            return []
        seen = {f.id}
        ancestors: list[File] = []
        parent_id = f.parent_id
        while parent_id is not None:
            if parent_id in seen:
                raise IntegrityError(f"Cycle in lineage of file [{file_id}] at file [{parent_id}]")
            seen.add(parent_id)
            parent = self.get_file(parent_id)
            if parent is None:
                break
            ancestors.append(parent)
            parent_id = parent.parent_id
        return ancestors

    def file_descendants(self, file_id: int) -> list[File]:
        """All files below ``file_id`` in the lineage forest, breadth first."""
        seen = {file_id}
        result: list[File] = []
        frontier = [file_id]
        while frontier:
            stmt = select(File).where(File.parent_id.in_(frontier)).order_by(File.id)
            frontier = []
            for child in self.db.scalars(stmt):
                if child.id in seen:
                    raise IntegrityError(f"Cycle below file [{file_id}] at file [{child.id}]")
                seen.add(child.id)
                result.append(child)
                frontier.append(child.id)
        return result

    def _check_file_fields(self, fields: dict[str, Any]) -> None:
        unknown = set(fields) - FILE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown file fields: {sorted(unknown)}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_operation(
        self,
        op_type: OperationType,
        info: OperationInfo | None,
        properties: dict[str, Any] | None = None,
        details: str | None = None,
    ) -> Operation:
        """
        Insert the operation row for one handled event.

        ``workflow_id`` from the actor info is stored in the properties so later
        operations can find this one.
        """
        props = {k: v for k, v in (properties or {}).items() if v is not None}
        if info is not None and info.workflow_id:
            props.setdefault("workflow_id", info.workflow_id)
        op = Operation(
            uid=self.get_free_uid(Operation),
            type=op_type,
            station=info.station if info else None,
            user_email=info.user if info else None,
            details=details,
            properties=coerce_properties(props),
        )
        self.db.add(op)
        self.db.flush()
        return op

    def link_files_to_operation(self, op: Operation, *files: File | None) -> None:
        """Associate files with an operation; existing links and None entries are skipped."""
        ids = list(dict.fromkeys(f.id for f in files if f is not None))
        if not ids:
            return
        existing = set(
            self.db.scalars(
                select(files_operations.c.file_id).where(
                    files_operations.c.operation_id == op.id,
                    files_operations.c.file_id.in_(ids),
                )
            )
        )
        rows = [{"file_id": fid, "operation_id": op.id} for fid in ids if fid not in existing]
        if rows:
            self.db.execute(insert(files_operations), rows)

    def file_operations(self, file_id: int, op_type: OperationType | None = None) -> list[Operation]:
        """Operations linked to a file, most recent first."""
        stmt = (
            select(Operation)
            .join(files_operations, files_operations.c.operation_id == Operation.id)
            .where(files_operations.c.file_id == file_id)
        )
        if op_type is not None:
            stmt = stmt.where(Operation.type == op_type)
        return list(self.db.scalars(stmt.order_by(Operation.id.desc())))

    def find_upchain_operation(self, file_id: int, op_type: OperationType) -> Operation:
        """
        Find the nearest operation of ``op_type`` on the file or its ancestors.

        Raises:
            UpChainOperationNotFound: If no file on the chain has one
        """
        chain = [file_id] + [a.id for a in self.file_ancestors(file_id)]
        for fid in chain:
            ops = self.file_operations(fid, op_type)
            if ops:
                return ops[0]
        raise UpChainOperationNotFound(file_id, op_type.value)

    def find_capture_start_file(self, workflow_id: str) -> File | None:
        """File created by the capture_start operation of a studio workflow."""
        stmt = (
            select(File)
            .join(files_operations, files_operations.c.file_id == File.id)
            .join(Operation, files_operations.c.operation_id == Operation.id)
            .where(
                Operation.type == OperationType.CAPTURE_START,
                Operation.properties["workflow_id"].as_string() == workflow_id,
            )
            .order_by(Operation.id.desc())
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    # ------------------------------------------------------------------
    # Content units
    # ------------------------------------------------------------------

    def create_content_unit(
        self,
        cu_type: ContentType,
        properties: dict[str, Any] | None = None,
        *,
        secure: int = SecurityLevel.PUBLIC,
        published: bool = False,
    ) -> ContentUnit:
        cu = ContentUnit(
            uid=self.get_free_uid(ContentUnit),
            type=cu_type,
            secure=secure,
            published=published,
            properties=coerce_properties(
                {k: v for k, v in (properties or {}).items() if v is not None}
            ),
        )
        self.db.add(cu)
        self.db.flush()
        return cu

    def get_content_unit(self, cu_id: int) -> ContentUnit | None:
        return self.db.get(ContentUnit, cu_id)

    def find_content_unit_by_uid(self, uid: str) -> ContentUnit | None:
        return self.db.scalars(select(ContentUnit).where(ContentUnit.uid == uid)).one_or_none()

    def merge_content_unit_properties(self, cu: ContentUnit, patch: dict[str, Any]) -> ContentUnit:
        cu.properties = merge_properties(cu.properties, patch)
        self.db.flush()
        return cu

    def remove_content_unit_property(self, cu: ContentUnit, key: str) -> bool:
        """Delete one key from the unit's properties. Returns False if it was absent."""
        if key not in (cu.properties or {}):
            return False
        cu.properties = without_keys(cu.properties, [key])
        self.db.flush()
        return True

    def update_content_unit(self, cu: ContentUnit, **fields: Any) -> ContentUnit:
        for key in fields:
            if key not in ("type", "published", "secure"):
                raise ValidationError(f"Unknown content unit field: {key}")
        for key, value in fields.items():
            setattr(cu, key, value)
        self.db.flush()
        return cu

    def attach_files(self, cu: ContentUnit, files: Iterable[File]) -> None:
        for f in files:
            f.content_unit_id = cu.id
        self.db.flush()

    def unit_files(self, cu_id: int) -> list[File]:
        stmt = select(File).where(File.content_unit_id == cu_id).order_by(File.id)
        return list(self.db.scalars(stmt))

    def unit_has_published_files(self, cu_id: int) -> bool:
        stmt = (
            select(1)
            .where(
                File.content_unit_id == cu_id,
                File.published.is_(True),
                File.removed_at.is_(None),
            )
            .limit(1)
        )
        return self.db.scalar(stmt) is not None

    def content_units_of_files(self, file_ids: Sequence[int]) -> list[ContentUnit]:
        if not file_ids:
            return []
        stmt = (
            select(ContentUnit)
            .join(File, File.content_unit_id == ContentUnit.id)
            .where(File.id.in_(file_ids))
            .distinct()
            .order_by(ContentUnit.id)
        )
        return list(self.db.scalars(stmt))

    # ------------------------------------------------------------------
    # Lookups by UID or pattern
    # ------------------------------------------------------------------

    def resolve_by_uid(self, kind: str, uids: Sequence[str]) -> tuple[list[Any], list[str]]:
        """
        Resolve UIDs of one entity kind.

        Args:
            kind: One of UID_KINDS
            uids: UIDs to resolve, duplicates ignored

        Returns:
            (entities in the order of ``uids``, UIDs that did not resolve)
        """
        model = UID_KINDS.get(kind)
        if model is None:
            raise ValidationError(f"Unknown entity kind: {kind}")
        wanted = list(dict.fromkeys(uids))
        if not wanted:
            return [], []
        found = {e.uid: e for e in self.db.scalars(select(model).where(model.uid.in_(wanted)))}
        return [found[u] for u in wanted if u in found], [u for u in wanted if u not in found]

    def find_person_by_pattern(self, pattern: str) -> Person | None:
        return self.db.scalars(select(Person).where(Person.pattern == pattern)).one_or_none()

    def find_publisher_by_uid(self, uid: str) -> Publisher | None:
        return self.db.scalars(select(Publisher).where(Publisher.uid == uid)).one_or_none()

    # ------------------------------------------------------------------
    # Unit associations
    # ------------------------------------------------------------------

    def _add_links(self, table, column: str, cu: ContentUnit, ids: Iterable[int]) -> None:
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return
        col = table.c[column]
        existing = set(
            self.db.scalars(
                select(col).where(table.c.content_unit_id == cu.id, col.in_(wanted))
            )
        )
        rows = [{"content_unit_id": cu.id, column: i} for i in wanted if i not in existing]
        if rows:
            self.db.execute(insert(table), rows)

    def _clear_links(self, table, cu: ContentUnit) -> None:
        self.db.execute(delete(table).where(table.c.content_unit_id == cu.id))

    def add_sources(self, cu: ContentUnit, sources: Iterable[Source]) -> None:
        self._add_links(content_units_sources, "source_id", cu, (s.id for s in sources))

    def replace_sources(self, cu: ContentUnit, sources: Iterable[Source]) -> None:
        self._clear_links(content_units_sources, cu)
        self.add_sources(cu, sources)

    def add_tags(self, cu: ContentUnit, tags: Iterable[Tag]) -> None:
        self._add_links(content_units_tags, "tag_id", cu, (t.id for t in tags))

    def replace_tags(self, cu: ContentUnit, tags: Iterable[Tag]) -> None:
        self._clear_links(content_units_tags, cu)
        self.add_tags(cu, tags)

    def add_publishers(self, cu: ContentUnit, publishers: Iterable[Publisher]) -> None:
        self._add_links(content_units_publishers, "publisher_id", cu, (p.id for p in publishers))

    def unit_source_ids(self, cu_id: int) -> list[int]:
        stmt = select(content_units_sources.c.source_id).where(
            content_units_sources.c.content_unit_id == cu_id
        )
        return sorted(self.db.scalars(stmt))

    def unit_tag_ids(self, cu_id: int) -> list[int]:
        stmt = select(content_units_tags.c.tag_id).where(
            content_units_tags.c.content_unit_id == cu_id
        )
        return sorted(self.db.scalars(stmt))

    def add_person(self, cu: ContentUnit, person: Person, role: ContentRole) -> bool:
        key = {"content_unit_id": cu.id, "person_id": person.id, "role": role}
        if self.db.get(ContentUnitPerson, key) is not None:
            return False
        self.db.add(ContentUnitPerson(**key))
        self.db.flush()
        return True

    def remove_persons(self, cu: ContentUnit, role: ContentRole) -> None:
        self.db.execute(
            delete(ContentUnitPerson).where(
                ContentUnitPerson.content_unit_id == cu.id, ContentUnitPerson.role == role
            )
        )

    def unit_persons(self, cu_id: int) -> list[tuple[Person, ContentRole]]:
        stmt = (
            select(Person, ContentUnitPerson.role)
            .join(ContentUnitPerson, ContentUnitPerson.person_id == Person.id)
            .where(ContentUnitPerson.content_unit_id == cu_id)
            .order_by(Person.id)
        )
        return [(p, role) for p, role in self.db.execute(stmt)]

    # ------------------------------------------------------------------
    # Derivations
    # ------------------------------------------------------------------

    def add_derivation(
        self, source: ContentUnit, derived: ContentUnit, name: str
    ) -> ContentUnitDerivation:
        """
        Create the ``source -> derived`` edge, or return the existing one.

        Raises:
            IntegrityError: On a self-derivation or when the reverse edge exists
        """
        if source.id == derived.id:
            raise IntegrityError(f"Content unit [{source.id}] cannot derive from itself")
        existing = self.db.get(
            ContentUnitDerivation, {"source_id": source.id, "derived_id": derived.id}
        )
        if existing is not None:
            return existing
        reverse = self.db.get(
            ContentUnitDerivation, {"source_id": derived.id, "derived_id": source.id}
        )
        if reverse is not None:
            raise IntegrityError(
                f"Content unit [{derived.id}] already derives [{source.id}], refusing cycle"
            )
        cud = ContentUnitDerivation(source_id=source.id, derived_id=derived.id, name=name)
        self.db.add(cud)
        self.db.flush()
        return cud

    def derived_units(
        self,
        source_id: int,
        cu_type: ContentType | None = None,
        publisher_id: int | None = None,
    ) -> list[ContentUnit]:
        stmt = (
            select(ContentUnit)
            .join(ContentUnitDerivation, ContentUnitDerivation.derived_id == ContentUnit.id)
            .where(ContentUnitDerivation.source_id == source_id)
        )
        if cu_type is not None:
            stmt = stmt.where(ContentUnit.type == cu_type)
        if publisher_id is not None:
            stmt = stmt.join(
                content_units_publishers,
                content_units_publishers.c.content_unit_id == ContentUnit.id,
            ).where(content_units_publishers.c.publisher_id == publisher_id)
        return list(self.db.scalars(stmt.order_by(ContentUnit.id)))

    def pending_derived_units(self, parent_file_id: int, exclude_unit_id: int) -> list[ContentUnit]:
        """
        Units of the children of ``parent_file_id`` still carrying a parked
        ``artifact_type`` property, other than ``exclude_unit_id``.
        """
        stmt = (
            select(ContentUnit)
            .join(File, File.content_unit_id == ContentUnit.id)
            .where(File.parent_id == parent_file_id, ContentUnit.id != exclude_unit_id)
            .distinct()
            .order_by(ContentUnit.id)
        )
        return [cu for cu in self.db.scalars(stmt) if "artifact_type" in (cu.properties or {})]

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def find_collection_by_uid(self, uid: str) -> Collection | None:
        return self.db.scalars(select(Collection).where(Collection.uid == uid)).one_or_none()

    def find_collection_by_capture_id(self, capture_id: str) -> Collection | None:
        stmt = (
            select(Collection)
            .where(Collection.properties["capture_id"].as_string() == str(capture_id))
            .order_by(Collection.id)
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    def create_collection(
        self, c_type: ContentType, properties: dict[str, Any] | None = None
    ) -> Collection:
        c = Collection(
            uid=self.get_free_uid(Collection),
            type=c_type,
            properties=coerce_properties(
                {k: v for k, v in (properties or {}).items() if v is not None}
            ),
        )
        self.db.add(c)
        self.db.flush()
        return c

    def update_collection(self, c: Collection, **fields: Any) -> Collection:
        for key in fields:
            if key not in ("type", "published", "secure"):
                raise ValidationError(f"Unknown collection field: {key}")
        for key, value in fields.items():
            setattr(c, key, value)
        self.db.flush()
        return c

    def merge_collection_properties(self, c: Collection, patch: dict[str, Any]) -> Collection:
        c.properties = merge_properties(c.properties, patch)
        self.db.flush()
        return c

    def link_collection_unit(
        self, c: Collection, cu: ContentUnit, name: str = ""
    ) -> CollectionContentUnit:
        """Associate a unit with a collection under a slot name; an existing pair is kept."""
        existing = self.db.get(
            CollectionContentUnit, {"collection_id": c.id, "content_unit_id": cu.id}
        )
        if existing is not None:
            return existing
        ccu = CollectionContentUnit(collection_id=c.id, content_unit_id=cu.id, name=name)
        self.db.add(ccu)
        self.db.flush()
        return ccu

    def collection_units(self, collection_id: int) -> list[CollectionContentUnit]:
        stmt = (
            select(CollectionContentUnit)
            .where(CollectionContentUnit.collection_id == collection_id)
            .order_by(CollectionContentUnit.content_unit_id)
        )
        return list(self.db.scalars(stmt))


def utcnow() -> datetime:
    return datetime.now(UTC)
