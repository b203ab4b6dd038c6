"""
Global test configuration for MDB.

Every test runs against a private in-memory SQLite database. The schema comes
straight from the ORM metadata; no migrations are involved.
"""

from __future__ import annotations

import hashlib
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mdb.config.registry import build_registry
from mdb.domain.entities import Person, Publisher, Source, Tag
from mdb.infra import db as db_module
from mdb.infra.emitters import BufferedEmitter
from mdb.usecases.dispatcher import DispatchResult, OperationDispatcher

OPERATOR = {"station": "studio-1", "user": "operator@example.com"}


def sha1_of(label: str) -> str:
    return hashlib.sha1(label.encode()).hexdigest()


def file_attrs(label: str, ext: str = "mp4", **extra: Any) -> dict[str, Any]:
    return {
        "file_name": f"{label}.{ext}",
        "sha1": sha1_of(label),
        "size": 1024,
        "created_at": "2026-01-05T10:00:00Z",
        **extra,
    }


def operation(workflow_id: str | None = None) -> dict[str, Any]:
    op = dict(OPERATOR)
    if workflow_id:
        op["workflow_id"] = workflow_id
    return op


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    db_module.create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, future=True)


@pytest.fixture(autouse=True)
def _force_test_db(monkeypatch, session_factory):
    """Point the application session factory at the test database."""
    monkeypatch.setattr(db_module, "SessionLocal", session_factory)
    monkeypatch.setattr(db_module, "get_sessionmaker", lambda for_test=False: session_factory)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def emitter():
    return BufferedEmitter()


@pytest.fixture
def dispatcher(session_factory, registry, emitter):
    return OperationDispatcher(session_factory, registry, emitter)


@pytest.fixture
def catalog(session_factory):
    """Seed lookup rows: the lecturer, two sources, a tag and a publisher."""
    with session_factory() as s:
        s.add_all(
            [
                Person(uid="rav00001", name="Rav", pattern="rav"),
                Source(uid="src00001", name="Source one"),
                Source(uid="src00002", name="Source two"),
                Tag(uid="tag00001", name="Tag one"),
                Publisher(uid="pub00001", name="Publisher one", pattern="pub-one"),
            ]
        )
        s.commit()
    return {
        "person": "rav00001",
        "sources": ["src00001", "src00002"],
        "tag": "tag00001",
        "publisher": "pub00001",
    }


class Pipeline:
    """Drives the dispatcher the way the studio workflow would."""

    def __init__(self, dispatcher: OperationDispatcher):
        self.dispatcher = dispatcher

    def run(self, event_type: str, payload: dict[str, Any], expect_ok: bool = True) -> DispatchResult:
        result = self.dispatcher.process(event_type, payload)
        if expect_ok:
            assert result.ok, result.error
        return result

    def capture_start(self, workflow_id: str, file_name: str = "capture.mp4", **kw):
        return self.run(
            "capture_start",
            {"operation": operation(workflow_id), "file_name": file_name, **kw},
        )

    def capture_stop(self, workflow_id: str, label: str, collection_uid: str | None = None, **kw):
        return self.run(
            "capture_stop",
            {
                "operation": operation(workflow_id),
                "file": file_attrs(label, duration=3600),
                "collection_uid": collection_uid,
                **kw,
            },
        )

    def demux(self, parent: str, original: str, proxy: str, **kw):
        return self.run(
            "demux",
            {
                "operation": operation(),
                "sha1": sha1_of(parent),
                "original": file_attrs(original, duration=3600),
                "proxy": file_attrs(proxy, duration=3600),
            },
            **kw,
        )

    def send(self, original: str, proxy: str, metadata: dict[str, Any], mode: str = "new", **kw):
        payload = {
            "operation": operation(),
            "original": {"sha1": sha1_of(original), "file_name": f"{original}.mp4"},
            "proxy": {"sha1": sha1_of(proxy), "file_name": f"{proxy}.mp4"},
            "mode": mode,
            "metadata": {"capture_date": "2026-01-05", **metadata},
        }
        payload.update(kw.pop("extra", {}))
        return self.run("send", payload, **kw)

    def convert(self, parent: str, outputs: list[dict[str, Any]], **kw):
        return self.run(
            "convert",
            {"operation": operation(), "sha1": sha1_of(parent), "output": outputs},
            **kw,
        )

    def recording(self, workflow_id: str, capture_id: str | None, prefix: str) -> tuple[str, str]:
        """capture_start, capture_stop and demux of one recording; returns (original, proxy)."""
        self.capture_start(workflow_id)
        self.capture_stop(workflow_id, f"{prefix}_capture", collection_uid=capture_id)
        self.demux(f"{prefix}_capture", f"{prefix}_orig", f"{prefix}_proxy")
        return f"{prefix}_orig", f"{prefix}_proxy"


@pytest.fixture
def pipeline(dispatcher):
    return Pipeline(dispatcher)


@pytest.fixture
def sha1():
    return sha1_of


@pytest.fixture
def attrs():
    return file_attrs
