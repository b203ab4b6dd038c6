from __future__ import annotations

from unittest.mock import MagicMock

from mdb.domain.events import EntityRef, Event
from mdb.infra.emitters import BufferedEmitter, LogEmitter
from mdb.infra.logging import redact_secrets


def test_redact_secret_keys_and_url_credentials():
    event = redact_secrets(
        None,
        None,
        {
            "event": "connect",
            "database_url": "postgresql://mdb:pw@db/mdb",
            "target": "postgresql://mdb:pw@db/mdb",
            "nested": {"dsn": "x?password=hunter2"},
        },
    )
    assert event["database_url"] == "***REDACTED***"
    assert event["target"] == "postgresql://***@db/mdb"
    assert event["nested"] == {"dsn": "x?password=***"}


def test_log_emitter_logs_every_event():
    logger = MagicMock()
    emitter = LogEmitter(logger)
    replaced = Event("file-replaced", EntityRef(2, "new00002"), replaced=EntityRef(1, "old00001"))

    emitter.emit([Event("file-inserted", EntityRef(1, "file0001")), replaced])

    assert logger.info.call_count == 2
    logger.info.assert_called_with(
        "event_emitted",
        type="file-replaced",
        id=2,
        uid="new00002",
        old={"id": 1, "uid": "old00001"},
    )


def test_buffered_emitter_keeps_order():
    emitter = BufferedEmitter()
    emitter.emit([Event("file-updated", EntityRef(1, "a0000001"))])
    emitter.emit([Event("file-removed", EntityRef(1, "a0000001"))])

    assert emitter.types() == ["file-updated", "file-removed"]
    emitter.clear()
    assert emitter.events == []
