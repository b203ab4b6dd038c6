"""
Pydantic schemas for inbound pipeline events.

Each studio operation reports a payload that is validated into one of the
request models below before it reaches a handler. Field names follow the
JSON the studio workflow sends.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .types import InsertMode, SendMode

SHA1_PATTERN = r"^[0-9a-fA-F]{40}$"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class OperationInfo(_Payload):
    """Who reported the operation and from where."""

    station: str = Field(..., min_length=1, description="Studio station name")
    user: str = Field(..., min_length=1, description="Operator e-mail")
    workflow_id: str | None = Field(None, description="Studio workflow identifier")


class FileAttrs(_Payload):
    """Physical attributes of a file reported by the studio."""

    file_name: str = Field(..., min_length=1)
    sha1: str = Field(..., pattern=SHA1_PATTERN)
    size: int = Field(..., ge=0)
    created_at: datetime | None = Field(None, description="File creation timestamp")
    type: str | None = None
    sub_type: str | None = None
    mime_type: str | None = None
    language: str | None = None


class AVFile(FileAttrs):
    duration: float | None = Field(None, ge=0)


class ConvertOutput(AVFile):
    video_size: str | None = None


class RenamedFile(_Payload):
    sha1: str = Field(..., pattern=SHA1_PATTERN)
    file_name: str = Field(..., min_length=1)


class CITMetadata(_Payload):
    """Content identification metadata accompanying a send operation."""

    content_type: str
    capture_date: date
    week_date: date | None = None
    film_date: date | None = None
    final_name: str | None = None
    language: str = ""
    has_translation: bool = False
    lecturer: str = ""
    number: int | None = None
    part: int | None = None
    part_type: int | None = None
    episode: str | None = None
    sources: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    artifact_type: str | None = None
    collection_uid: str | None = None
    label_id: int | None = None
    manual_name: str | None = None


class CaptureStartRequest(_Payload):
    operation: OperationInfo
    file_name: str = Field(..., min_length=1)
    capture_source: str | None = None
    collection_uid: str | None = None


class CaptureStopRequest(_Payload):
    operation: OperationInfo
    file: AVFile
    capture_source: str | None = None
    collection_uid: str | None = None
    part: str | None = None
    label_id: int | None = None


class DemuxRequest(_Payload):
    operation: OperationInfo
    sha1: str = Field(..., pattern=SHA1_PATTERN, description="Parent (captured) file")
    original: AVFile
    proxy: AVFile
    capture_source: str | None = None


class TrimRequest(_Payload):
    operation: OperationInfo
    original_sha1: str = Field(..., pattern=SHA1_PATTERN)
    proxy_sha1: str = Field(..., pattern=SHA1_PATTERN)
    original: AVFile
    proxy: AVFile
    trim_in: list[float] = Field(default_factory=list, alias="in")
    trim_out: list[float] = Field(default_factory=list, alias="out")
    capture_source: str | None = None


class SendRequest(_Payload):
    operation: OperationInfo
    original: RenamedFile
    proxy: RenamedFile
    workflow_id: str | None = None
    mode: SendMode = SendMode.NEW
    metadata: CITMetadata


class ConvertRequest(_Payload):
    operation: OperationInfo
    sha1: str = Field(..., pattern=SHA1_PATTERN, description="Parent file")
    output: list[ConvertOutput] = Field(default_factory=list)


class UploadRequest(_Payload):
    operation: OperationInfo
    file: FileAttrs
    url: str = Field(..., min_length=1)
    duration: float | None = Field(None, ge=0)


class TranscodeRequest(_Payload):
    operation: OperationInfo
    original_sha1: str = Field(..., pattern=SHA1_PATTERN)
    maybe_file: FileAttrs | None = None
    message: str = ""

    @model_validator(mode="after")
    def _file_unless_failed(self) -> TranscodeRequest:
        if not self.message and self.maybe_file is None:
            raise ValueError("transcode requires an output file unless an error message is given")
        return self


class JoinRequest(_Payload):
    operation: OperationInfo
    original_shas: list[str] = Field(..., min_length=1)
    proxy_shas: list[str] = Field(..., min_length=1)
    original: AVFile
    proxy: AVFile


class SirtutimRequest(_Payload):
    operation: OperationInfo
    file: FileAttrs
    original_sha1: str | None = Field(
        None, pattern=SHA1_PATTERN, description="Original whose content unit receives the image"
    )


class InsertAVInfo(_Payload):
    duration: float | None = Field(None, ge=0)
    video_size: str | None = None


class InsertRequest(_Payload):
    operation: OperationInfo
    mode: InsertMode
    insert_type: str = Field(..., min_length=1)
    content_unit_uid: str = Field(..., min_length=1)
    file: FileAttrs
    old_sha1: str | None = Field(None, pattern=SHA1_PATTERN)
    parent_sha1: str | None = Field(None, pattern=SHA1_PATTERN)
    publisher_uid: str | None = None
    av_file: InsertAVInfo = Field(default_factory=InsertAVInfo)

    @model_validator(mode="after")
    def _old_file_for_update(self) -> InsertRequest:
        if self.mode == InsertMode.UPDATE and not self.old_sha1:
            raise ValueError("insert in update mode requires old_sha1")
        return self


def metadata_properties(metadata: CITMetadata) -> dict[str, Any]:
    """Flatten CIT metadata into operation properties (None values dropped)."""
    return metadata.model_dump(mode="json", exclude_none=True)
