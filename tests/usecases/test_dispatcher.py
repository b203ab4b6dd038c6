from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from mdb.domain import events
from mdb.domain.entities import File, Operation
from mdb.infra.exceptions import (
    FileNotFound,
    IntegrityError,
    OperationError,
    ValidationError,
)
from mdb.shared import schemas
from mdb.shared.types import OperationType
from mdb.usecases.context import HandlerOutcome
from mdb.usecases.dispatcher import OperationDispatcher

OPERATOR = {"station": "studio-1", "user": "operator@example.com"}


def _count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


class TestRouting:
    def test_unknown_operation_type(self, dispatcher, emitter):
        result = dispatcher.process("teleport", {"operation": OPERATOR})

        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert emitter.events == []

    def test_invalid_payload_never_reaches_handler(self, dispatcher, db):
        result = dispatcher.process("capture_start", {"file_name": "x.mp4"})

        assert isinstance(result.error, ValidationError)
        assert "capture_start" in str(result.error)
        assert _count(db, Operation) == 0

    def test_invalid_sha1_is_rejected(self, dispatcher):
        result = dispatcher.process(
            "demux",
            {"operation": OPERATOR, "sha1": "not-a-sha", "original": {}, "proxy": {}},
        )
        assert isinstance(result.error, ValidationError)

    def test_accepts_operation_type_enum_and_model(self, dispatcher, emitter):
        req = schemas.CaptureStartRequest(operation=OPERATOR, file_name="capture.mp4")
        result = dispatcher.process(OperationType.CAPTURE_START, req)

        assert result.ok
        assert result.operation_uid is not None
        assert emitter.events == []


class TestFailures:
    def test_missing_parent_rolls_back(self, pipeline, db, emitter, sha1, attrs):
        result = pipeline.run(
            "demux",
            {
                "operation": OPERATOR,
                "sha1": sha1("nowhere"),
                "original": attrs("o", duration=1),
                "proxy": attrs("p", duration=1),
            },
            expect_ok=False,
        )

        assert isinstance(result.error, OperationError)
        assert result.error.event_type == "demux"
        assert isinstance(result.error.cause, FileNotFound)
        assert result.error.cause.role == "parent"
        assert emitter.events == []
        assert _count(db, Operation) == 0
        assert _count(db, File) == 0

    def test_failed_send_leaves_no_trace(self, pipeline, db, emitter, sha1):
        original, proxy = pipeline.recording("wf-1", "cap-1", "r")
        ops_before = _count(db, Operation)
        emitter.clear()

        result = pipeline.send(
            original,
            proxy,
            {"content_type": "NO_SUCH_TYPE"},
            extra={"original": {"sha1": sha1(original), "file_name": "renamed.mp4"}},
            expect_ok=False,
        )

        assert isinstance(result.error, OperationError)
        assert isinstance(result.error.cause, ValidationError)
        assert emitter.events == []
        db.expire_all()
        assert db.scalars(select(File.name).where(File.sha1 == sha1(original))).one() == "r_orig.mp4"
        assert _count(db, Operation) == ops_before

    def test_unexpected_exception_is_reraised_after_rollback(
        self, session_factory, registry, emitter, db
    ):
        def explode(ctx, req):
            ctx.store.create_operation(OperationType.CAPTURE_START, req.operation)
            raise RuntimeError("boom")

        dispatcher = OperationDispatcher(
            session_factory,
            registry,
            emitter,
            handlers={OperationType.CAPTURE_START: (schemas.CaptureStartRequest, explode)},
        )

        with pytest.raises(RuntimeError):
            dispatcher.process("capture_start", {"operation": OPERATOR, "file_name": "c.mp4"})
        assert _count(db, Operation) == 0
        assert emitter.events == []

    def test_database_errors_become_integrity_errors(self, session_factory, registry, emitter):
        def broken(ctx, req):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        dispatcher = OperationDispatcher(
            session_factory,
            registry,
            emitter,
            handlers={OperationType.CAPTURE_START: (schemas.CaptureStartRequest, broken)},
        )

        result = dispatcher.process("capture_start", {"operation": OPERATOR, "file_name": "c.mp4"})
        assert isinstance(result.error, OperationError)
        assert isinstance(result.error.cause, IntegrityError)

    def test_bad_property_values_become_validation_errors(self, session_factory, registry, emitter, db):
        def nested(ctx, req):
            ctx.store.create_operation(
                OperationType.CAPTURE_START, req.operation, {"source": {"nested": True}}
            )

        dispatcher = OperationDispatcher(
            session_factory,
            registry,
            emitter,
            handlers={OperationType.CAPTURE_START: (schemas.CaptureStartRequest, nested)},
        )

        result = dispatcher.process("capture_start", {"operation": OPERATOR, "file_name": "c.mp4"})
        assert isinstance(result.error, OperationError)
        assert isinstance(result.error.cause, ValidationError)
        assert "'source'" in str(result.error.cause)
        assert _count(db, Operation) == 0


class TestCommit:
    def test_events_emitted_after_commit(self, session_factory, registry):
        seen = []

        class RecordingEmitter:
            def emit(self, evts):
                with session_factory() as s:
                    seen.append(s.scalar(select(func.count()).select_from(Operation)))

        def handler(ctx, req):
            op = ctx.store.create_operation(OperationType.CAPTURE_START, req.operation)
            f = ctx.lineage.create(None, None, name=req.file_name)
            ctx.store.link_files_to_operation(op, f)
            return HandlerOutcome(op, [events.file_insert(f)])

        dispatcher = OperationDispatcher(
            session_factory,
            registry,
            RecordingEmitter(),
            handlers={OperationType.CAPTURE_START: (schemas.CaptureStartRequest, handler)},
        )
        result = dispatcher.process("capture_start", {"operation": OPERATOR, "file_name": "c.mp4"})

        assert result.ok
        assert seen == [1]
        assert [ev.type for ev in result.events] == ["file-inserted"]

    def test_operations_are_write_once(self, pipeline, db):
        pipeline.capture_start("wf-1")
        op = db.scalars(select(Operation)).one()

        op.details = "edited later"
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_operation_records_actor_and_workflow(self, pipeline, db):
        result = pipeline.capture_start("wf-1", capture_source="mltcap")

        op = db.scalars(select(Operation)).one()
        assert op.uid == result.operation_uid
        assert op.type == OperationType.CAPTURE_START
        assert (op.station, op.user_email) == ("studio-1", "operator@example.com")
        assert op.properties == {"capture_source": "mltcap", "workflow_id": "wf-1"}
        assert [f.name for f in op.files] == ["capture.mp4"]
