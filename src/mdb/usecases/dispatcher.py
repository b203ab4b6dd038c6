"""
Operation dispatcher: the transaction boundary for pipeline events.

Every inbound event is validated into its request model, handled inside one
Unit of Work and, only once that has committed, its domain events are handed
to the emitter. A failed handler leaves nothing behind.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..config.registry import Registry, load_registry
from ..domain.events import Event
from ..domain.interfaces import EventEmitter
from ..infra import uow
from ..infra.emitters import LogEmitter
from ..infra.exceptions import IntegrityError, MdbError, OperationError, ValidationError
from ..shared import schemas
from ..shared.properties import PropertyValueError
from ..shared.types import OperationType
from .archive_ops import handle_insert, handle_sirtutim
from .capture_ops import handle_capture_start, handle_capture_stop, handle_demux, handle_trim
from .context import HandlerContext, HandlerOutcome
from .studio_ops import (
    handle_convert,
    handle_join,
    handle_send,
    handle_transcode,
    handle_upload,
)

_log = structlog.get_logger(__name__)

Handler = Callable[[HandlerContext, Any], HandlerOutcome]

HANDLERS: Mapping[OperationType, tuple[type[BaseModel], Handler]] = {
    OperationType.CAPTURE_START: (schemas.CaptureStartRequest, handle_capture_start),
    OperationType.CAPTURE_STOP: (schemas.CaptureStopRequest, handle_capture_stop),
    OperationType.DEMUX: (schemas.DemuxRequest, handle_demux),
    OperationType.TRIM: (schemas.TrimRequest, handle_trim),
    OperationType.SEND: (schemas.SendRequest, handle_send),
    OperationType.CONVERT: (schemas.ConvertRequest, handle_convert),
    OperationType.UPLOAD: (schemas.UploadRequest, handle_upload),
    OperationType.TRANSCODE: (schemas.TranscodeRequest, handle_transcode),
    OperationType.JOIN: (schemas.JoinRequest, handle_join),
    OperationType.INSERT: (schemas.InsertRequest, handle_insert),
    OperationType.SIRTUTIM: (schemas.SirtutimRequest, handle_sirtutim),
}


@dataclass
class DispatchResult:
    events: list[Event] = field(default_factory=list)
    error: MdbError | None = None
    operation_uid: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OperationDispatcher:
    """
    Routes pipeline events to their handlers.

    Args:
        session_factory: Session factory for the Unit of Work (application default if None)
        registry: Lookup registry passed to every handler component
        emitter: Sink receiving the events of committed operations
    """

    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        registry: Registry | None = None,
        emitter: EventEmitter | None = None,
        handlers: Mapping[OperationType, tuple[type[BaseModel], Handler]] | None = None,
    ):
        self.session_factory = session_factory
        self.registry = registry or load_registry()
        self.emitter = emitter or LogEmitter()
        self.handlers = dict(handlers or HANDLERS)

    def _route(self, event_type: str | OperationType) -> tuple[type[BaseModel], Handler] | None:
        try:
            return self.handlers.get(OperationType(event_type))
        except ValueError:
            return None

    def process(self, event_type: str | OperationType, payload: Any) -> DispatchResult:
        """
        Handle one pipeline event.

        Returns a DispatchResult carrying either the emitted events or the
        error. Exceptions other than MdbError, property value errors and
        SQLAlchemy errors are re-raised after the transaction has been rolled back.
        """
        route = self._route(event_type)
        if route is None:
            _log.warning("operation_type_unknown", event_type=str(event_type))
            return DispatchResult(error=ValidationError(f"Unknown operation type: {event_type}"))
        name = OperationType(event_type).value
        model, handler = route

        try:
            req = payload if isinstance(payload, model) else model.model_validate(payload)
        except PayloadValidationError as exc:
            _log.warning("operation_payload_invalid", event_type=name, errors=exc.error_count())
            return DispatchResult(error=ValidationError(f"Invalid {name} payload: {exc}"))

        _log.info("operation_started", event_type=name)
        try:
            with uow.session(self.session_factory) as db:
                outcome = handler(HandlerContext.for_session(db, self.registry), req)
                op_uid = outcome.operation.uid if outcome.operation is not None else None
        except (MdbError, PropertyValueError, SQLAlchemyError) as exc:
            if isinstance(exc, MdbError):
                cause = exc
            elif isinstance(exc, PropertyValueError):
                cause = ValidationError(str(exc))
            else:
                cause = IntegrityError(str(exc))
            _log.error("operation_failed", event_type=name, error=str(cause))
            return DispatchResult(error=OperationError(name, cause))

        _log.info(
            "operation_committed", event_type=name, operation_uid=op_uid, events=len(outcome.events)
        )
        self.emitter.emit(outcome.events)
        return DispatchResult(events=list(outcome.events), operation_uid=op_uid)
