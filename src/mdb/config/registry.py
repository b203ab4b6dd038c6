"""
Read-only lookup registry for MDB.

Holds the lookup tables the operation handlers consult: language
normalization, lecturer patterns, media types by file extension, insert type
defaults and the misc event part labels used for collection slot names.

The registry is built once per process by ``load_registry()`` and passed
explicitly into every component that needs it.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ..shared.types import LANG_MULTI, LANG_UNKNOWN, ContentType


@dataclass(frozen=True)
class MediaType:
    extension: str
    type: str
    sub_type: str
    mime_type: str


LANGUAGE_CODES = (
    "en", "he", "ru", "es", "it", "de", "nl", "fr", "pt", "tr", "pl", "ar",
    "hu", "fi", "lt", "ja", "bg", "ka", "no", "sv", "hr", "zh", "fa", "ro",
    "hi", "ua", "mk", "sl", "lv", "sk", "cs",
)

# Legacy three letter codes the studio still sends
LANGUAGE_ALIASES = {
    "eng": "en",
    "heb": "he",
    "rus": "ru",
    "spa": "es",
    "ita": "it",
    "ger": "de",
    "deu": "de",
    "dut": "nl",
    "nld": "nl",
    "fre": "fr",
    "fra": "fr",
    "por": "pt",
    "trk": "tr",
    "tur": "tr",
    "pol": "pl",
    "arb": "ar",
    "ara": "ar",
    "hun": "hu",
    "fin": "fi",
    "lit": "lt",
    "jpn": "ja",
    "bul": "bg",
    "geo": "ka",
    "kat": "ka",
    "nor": "no",
    "swe": "sv",
    "hrv": "hr",
    "chn": "zh",
    "zho": "zh",
    "far": "fa",
    "fas": "fa",
    "ron": "ro",
    "rum": "ro",
    "hin": "hi",
    "ukr": "ua",
    "uk": "ua",
    "mkd": "mk",
    "slv": "sl",
    "lav": "lv",
    "slk": "sk",
    "cze": "cs",
    "ces": "cs",
    "mlt": LANG_MULTI,
    "multi": LANG_MULTI,
}

MEDIA_TYPES = (
    MediaType("mp4", "video", "", "video/mp4"),
    MediaType("wmv", "video", "", "video/x-ms-wmv"),
    MediaType("flv", "video", "", "video/x-flv"),
    MediaType("mov", "video", "", "video/quicktime"),
    MediaType("mkv", "video", "", "video/x-matroska"),
    MediaType("mpg", "video", "", "video/mpeg"),
    MediaType("mp3", "audio", "", "audio/mpeg"),
    MediaType("wav", "audio", "", "audio/x-wav"),
    MediaType("wma", "audio", "", "audio/x-ms-wma"),
    MediaType("jpg", "image", "", "image/jpeg"),
    MediaType("png", "image", "", "image/png"),
    MediaType("zip", "image", "", "application/zip"),
    MediaType("pdf", "text", "", "application/pdf"),
    MediaType("doc", "text", "", "application/msword"),
    MediaType(
        "docx",
        "text",
        "",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ),
    MediaType("txt", "text", "", "text/plain"),
    MediaType("html", "text", "", "text/html"),
)

INSERT_FILE_TYPES = {
    "akladot": "text",
    "tamlil": "text",
    "kitei-makor": "text",
    "research-material": "text",
    "article": "text",
    "sirtutim": "image",
    "publication": "image",
    "aricha": "video",
}

# Insert types stored on a derived unit of the given type
INSERT_DERIVED_TYPES = {
    "kitei-makor": ContentType.KITEI_MAKOR,
    "research-material": ContentType.RESEARCH_MATERIAL,
}

MISC_EVENT_PART_TYPES = ("meal_", "friends_gathering_", "unity_day_", "picnic_", "holiday_")

# Part type codes up to this value carry no slot prefix
PART_TYPE_PREFIX_OFFSET = 3

LECTURER_PATTERNS = ("rav",)


@dataclass(frozen=True)
class Registry:
    """Immutable lookup tables shared by all components."""

    languages: Mapping[str, str] = field(default_factory=dict)
    media_types: Mapping[str, MediaType] = field(default_factory=dict)
    insert_file_types: Mapping[str, str] = field(default_factory=dict)
    insert_derived_types: Mapping[str, ContentType] = field(default_factory=dict)
    lecturer_patterns: frozenset[str] = frozenset()
    misc_event_part_types: tuple[str, ...] = ()
    part_type_offset: int = PART_TYPE_PREFIX_OFFSET

    def std_lang(self, raw: str | None) -> str:
        """Normalize a language string to a two letter code, LANG_UNKNOWN when unrecognized."""
        if not raw:
            return LANG_UNKNOWN
        return self.languages.get(raw.strip().lower(), LANG_UNKNOWN)

    def media_type_for(self, file_name: str) -> MediaType | None:
        _, dot, ext = file_name.rpartition(".")
        if not dot:
            return None
        return self.media_types.get(ext.lower())

    def media_type_by_extension(self, ext: str) -> MediaType:
        return self.media_types[ext]

    def lecturer_pattern(self, name: str | None) -> str | None:
        """Return the person pattern for a lecturer name, matching case-insensitively."""
        if not name:
            return None
        candidate = name.strip().lower()
        return candidate if candidate in self.lecturer_patterns else None

    def part_type_prefix(self, part_type: int | None) -> str | None:
        """Label prefixed to a collection slot name for a misc event part type.

        Returns "" for codes with no prefix and None for codes beyond the table.
        """
        if part_type is None or part_type < self.part_type_offset:
            return ""
        idx = part_type - self.part_type_offset
        if idx < len(self.misc_event_part_types):
            return self.misc_event_part_types[idx]
        return None


def build_registry() -> Registry:
    languages = {code: code for code in LANGUAGE_CODES}
    languages.update(LANGUAGE_ALIASES)
    languages[LANG_MULTI] = LANG_MULTI
    return Registry(
        languages=MappingProxyType(languages),
        media_types=MappingProxyType({mt.extension: mt for mt in MEDIA_TYPES}),
        insert_file_types=MappingProxyType(dict(INSERT_FILE_TYPES)),
        insert_derived_types=MappingProxyType(dict(INSERT_DERIVED_TYPES)),
        lecturer_patterns=frozenset(LECTURER_PATTERNS),
        misc_event_part_types=MISC_EVENT_PART_TYPES,
    )


@functools.cache
def load_registry() -> Registry:
    """Process-wide registry, built on first use."""
    return build_registry()
