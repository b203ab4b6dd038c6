from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from ..domain.entities import ContentUnit
from ..infra.exceptions import FileNotFound
from ..infra.store import Store
from ..shared.types import ContentType


def find_descendant_units(store: Store, sha1: str) -> list[ContentUnit]:
    """
    Content units of a file and of every file derived from it.

    PUBLICATION units are left out. Raises FileNotFound for an unknown sha1.
    """
    f = store.find_file_by_sha1(sha1)
    if f is None:
        raise FileNotFound(sha1)
    ids = [f.id] + [d.id for d in store.file_descendants(f.id)]
    return [cu for cu in store.content_units_of_files(ids) if cu.type != ContentType.PUBLICATION]


def list_descendant_units(db: Session, *, sha1: str) -> list[dict[str, Any]]:
    """Read-only summary of the descendant units of a file, for the CLI."""
    return [
        {
            "id": cu.id,
            "uid": cu.uid,
            "type": cu.type.value,
            "published": bool(cu.published),
            "properties": dict(cu.properties or {}),
        }
        for cu in find_descendant_units(Store(db), sha1)
    ]
