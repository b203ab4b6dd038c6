"""
Domain entities for MDB.

This module contains the archive's relational model: files arranged in a
lineage forest, the operations that touched them, content units grouping
files, and collections grouping content units.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    event,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, object_session, relationship
from sqlalchemy.sql import func

from ..infra.db import Base, BigIntPK, JSONType
from ..infra.exceptions import IntegrityError
from ..shared.types import ContentRole, ContentType, OperationType


def _enum(enum_cls: type, name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


files_operations = Table(
    "files_operations",
    Base.metadata,
    Column("file_id", BigIntPK, ForeignKey("files.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "operation_id", BigIntPK, ForeignKey("operations.id", ondelete="CASCADE"), primary_key=True
    ),
)

content_units_sources = Table(
    "content_units_sources",
    Base.metadata,
    Column(
        "content_unit_id",
        BigIntPK,
        ForeignKey("content_units.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("source_id", BigIntPK, ForeignKey("sources.id", ondelete="CASCADE"), primary_key=True),
)

content_units_tags = Table(
    "content_units_tags",
    Base.metadata,
    Column(
        "content_unit_id",
        BigIntPK,
        ForeignKey("content_units.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("tag_id", BigIntPK, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

content_units_publishers = Table(
    "content_units_publishers",
    Base.metadata,
    Column(
        "content_unit_id",
        BigIntPK,
        ForeignKey("content_units.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "publisher_id", BigIntPK, ForeignKey("publishers.id", ondelete="CASCADE"), primary_key=True
    ),
)


class File(Base):
    """A physical file produced somewhere in the studio pipeline."""

    __tablename__ = "files"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sha1: Mapped[str | None] = mapped_column(String(40), nullable=True, unique=True)
    size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, server_default="")
    sub_type: Mapped[str] = mapped_column(String(16), nullable=False, server_default="")
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    language: Mapped[str | None] = mapped_column(String(3), nullable=True)
    file_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    parent_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )
    content_unit_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("content_units.id", ondelete="SET NULL"), nullable=True
    )
    secure: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    published: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.false()
    )
    removed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    properties: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    parent: Mapped[File | None] = relationship(
        "File", remote_side=[id], back_populates="children"
    )
    children: Mapped[list[File]] = relationship("File", back_populates="parent")
    content_unit: Mapped[ContentUnit | None] = relationship("ContentUnit", back_populates="files")
    operations: Mapped[list[Operation]] = relationship(
        "Operation", secondary=files_operations, back_populates="files", viewonly=True
    )

    __table_args__ = (
        Index("ix_files_parent_id", "parent_id"),
        Index("ix_files_content_unit_id", "content_unit_id"),
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="no_self_parent"),
    )

    @property
    def is_removed(self) -> bool:
        return self.removed_at is not None

    def __repr__(self) -> str:
        return f"<File(id={self.id}, uid={self.uid}, name={self.name}, sha1={self.sha1}, parent_id={self.parent_id})>"


class Operation(Base):
    """A single pipeline event as it was reported. Rows are write-once."""

    __tablename__ = "operations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    type: Mapped[OperationType] = mapped_column(_enum(OperationType, "operation_type"), nullable=False)
    station: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    properties: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    files: Mapped[list[File]] = relationship(
        "File", secondary=files_operations, back_populates="operations", viewonly=True
    )

    __table_args__ = (Index("ix_operations_type", "type"),)

    def __repr__(self) -> str:
        return f"<Operation(id={self.id}, uid={self.uid}, type={self.type})>"


@event.listens_for(Operation, "before_update")
def _operations_are_write_once(mapper, connection, target: Operation) -> None:
    db = object_session(target)
    if db is not None and db.is_modified(target, include_collections=False):
        raise IntegrityError(f"Operation [{target.id}] is write-once")


class ContentUnit(Base):
    """A semantic unit of content (lesson part, lecture, publication...)."""

    __tablename__ = "content_units"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    type: Mapped[ContentType] = mapped_column(_enum(ContentType, "content_type"), nullable=False)
    published: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.false()
    )
    secure: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    properties: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    files: Mapped[list[File]] = relationship("File", back_populates="content_unit")
    sources: Mapped[list[Source]] = relationship(
        "Source", secondary=content_units_sources, viewonly=True
    )
    tags: Mapped[list[Tag]] = relationship("Tag", secondary=content_units_tags, viewonly=True)
    publishers: Mapped[list[Publisher]] = relationship(
        "Publisher", secondary=content_units_publishers, viewonly=True
    )
    persons: Mapped[list[ContentUnitPerson]] = relationship(
        "ContentUnitPerson", back_populates="content_unit", viewonly=True
    )
    derived_links: Mapped[list[ContentUnitDerivation]] = relationship(
        "ContentUnitDerivation",
        foreign_keys="ContentUnitDerivation.source_id",
        back_populates="source",
        viewonly=True,
    )
    source_links: Mapped[list[ContentUnitDerivation]] = relationship(
        "ContentUnitDerivation",
        foreign_keys="ContentUnitDerivation.derived_id",
        back_populates="derived",
        viewonly=True,
    )
    collection_links: Mapped[list[CollectionContentUnit]] = relationship(
        "CollectionContentUnit", back_populates="content_unit", viewonly=True
    )

    __table_args__ = (Index("ix_content_units_type", "type"),)

    def __repr__(self) -> str:
        return f"<ContentUnit(id={self.id}, uid={self.uid}, type={self.type})>"


class ContentUnitDerivation(Base):
    """Directed edge from a main (source) unit to a derived unit."""

    __tablename__ = "content_unit_derivations"

    source_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("content_units.id", ondelete="CASCADE"), primary_key=True
    )
    derived_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("content_units.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    source: Mapped[ContentUnit] = relationship(
        "ContentUnit", foreign_keys=[source_id], back_populates="derived_links"
    )
    derived: Mapped[ContentUnit] = relationship(
        "ContentUnit", foreign_keys=[derived_id], back_populates="source_links"
    )

    __table_args__ = (
        CheckConstraint("source_id <> derived_id", name="no_self_derivation"),
        Index("ix_content_unit_derivations_derived_id", "derived_id"),
    )

    def __repr__(self) -> str:
        return f"<ContentUnitDerivation(source_id={self.source_id}, derived_id={self.derived_id}, name={self.name})>"


class Collection(Base):
    """A group of content units, e.g. all parts of one broadcast day."""

    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    type: Mapped[ContentType] = mapped_column(_enum(ContentType, "collection_type"), nullable=False)
    published: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.false()
    )
    secure: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    properties: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    unit_links: Mapped[list[CollectionContentUnit]] = relationship(
        "CollectionContentUnit", back_populates="collection", viewonly=True
    )

    def __repr__(self) -> str:
        return f"<Collection(id={self.id}, uid={self.uid}, type={self.type})>"


class CollectionContentUnit(Base):
    """Membership of a content unit in a collection, with its slot name."""

    __tablename__ = "collections_content_units"

    collection_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    )
    content_unit_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("content_units.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="", server_default="")

    collection: Mapped[Collection] = relationship("Collection", back_populates="unit_links")
    content_unit: Mapped[ContentUnit] = relationship(
        "ContentUnit", back_populates="collection_links"
    )

    def __repr__(self) -> str:
        return f"<CollectionContentUnit(collection_id={self.collection_id}, content_unit_id={self.content_unit_id}, name={self.name})>"


class Source(Base):
    """A textual source a unit is about (book, article, chapter...)."""

    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Tag(Base):
    """A topic tag."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    pattern: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)


class Person(Base):
    """A person appearing in content units (lecturers)."""

    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    pattern: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)


class ContentUnitPerson(Base):
    __tablename__ = "content_units_persons"

    content_unit_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("content_units.id", ondelete="CASCADE"), primary_key=True
    )
    person_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[ContentRole] = mapped_column(
        _enum(ContentRole, "content_role"), primary_key=True
    )

    content_unit: Mapped[ContentUnit] = relationship("ContentUnit", back_populates="persons")
    person: Mapped[Person] = relationship("Person")


class Publisher(Base):
    """Publisher of derived publication units."""

    __tablename__ = "publishers"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    pattern: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
