"""
Shared types and enums for MDB.

This module contains common types and enums that are used across
the domain, usecase, CLI, and other layers.
"""

from __future__ import annotations

from enum import Enum


class OperationType(str, Enum):
    """Studio pipeline operations recorded in the archive."""

    CAPTURE_START = "capture_start"
    CAPTURE_STOP = "capture_stop"
    DEMUX = "demux"
    TRIM = "trim"
    SEND = "send"
    CONVERT = "convert"
    UPLOAD = "upload"
    TRANSCODE = "transcode"
    JOIN = "join"
    INSERT = "insert"
    SIRTUTIM = "sirtutim"


class ContentType(str, Enum):
    """Types of content units and collections."""

    # Collection types
    DAILY_LESSON = "DAILY_LESSON"
    SATURDAY_LESSON = "SATURDAY_LESSON"
    FRIENDS_GATHERINGS = "FRIENDS_GATHERINGS"
    CONGRESS = "CONGRESS"
    VIDEO_PROGRAM = "VIDEO_PROGRAM"
    LECTURE_SERIES = "LECTURE_SERIES"
    MEALS = "MEALS"
    HOLIDAY = "HOLIDAY"
    PICNIC = "PICNIC"
    UNITY_DAY = "UNITY_DAY"

    # Content unit types
    LESSON_PART = "LESSON_PART"
    LECTURE = "LECTURE"
    CHILDREN_LESSON_PART = "CHILDREN_LESSON_PART"
    WOMEN_LESSON_PART = "WOMEN_LESSON_PART"
    VIRTUAL_LESSON = "VIRTUAL_LESSON"
    FRIENDS_GATHERING = "FRIENDS_GATHERING"
    MEAL = "MEAL"
    VIDEO_PROGRAM_CHAPTER = "VIDEO_PROGRAM_CHAPTER"
    FULL_LESSON = "FULL_LESSON"
    TEXT = "TEXT"
    EVENT_PART = "EVENT_PART"
    UNKNOWN = "UNKNOWN"
    CLIP = "CLIP"
    TRAINING = "TRAINING"
    KITEI_MAKOR = "KITEI_MAKOR"
    RESEARCH_MATERIAL = "RESEARCH_MATERIAL"
    PUBLICATION = "PUBLICATION"


# Collection types a full lesson occupies with the literal "full" slot
LESSON_COLLECTION_TYPES = frozenset({ContentType.DAILY_LESSON, ContentType.SATURDAY_LESSON})

# Unit types reconciled into a collection through the capture chain
CAPTURE_RECONCILED_TYPES = frozenset({ContentType.LESSON_PART, ContentType.FULL_LESSON})


class ContentRole(str, Enum):
    """Roles a person can play in a content unit."""

    LECTURER = "LECTURER"


class SecurityLevel(int, Enum):
    """File and content unit security levels."""

    PUBLIC = 0
    SENSITIVE = 1
    PRIVATE = 2


class SendMode(str, Enum):
    NEW = "new"
    UPDATE = "update"


class InsertMode(str, Enum):
    NEW = "new"
    UPDATE = "update"
    RENAME = "rename"


# Language codes
LANG_MULTI = "zz"
LANG_UNKNOWN = "xx"

# Artifact type of a main content unit
MAIN_ARTIFACT = "main"
