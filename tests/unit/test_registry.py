from __future__ import annotations

import dataclasses

import pytest

from mdb.config.registry import build_registry, load_registry
from mdb.shared.types import LANG_MULTI, LANG_UNKNOWN


class TestRegistry:
    def setup_method(self):
        self.registry = build_registry()

    @pytest.mark.parametrize(
        "raw,expected",
        [("he", "he"), ("HEB", "he"), (" eng ", "en"), ("rus", "ru"), ("multi", LANG_MULTI)],
    )
    def test_std_lang_normalizes(self, raw, expected):
        assert self.registry.std_lang(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "klingon"])
    def test_std_lang_unknown(self, raw):
        assert self.registry.std_lang(raw) == LANG_UNKNOWN

    def test_media_type_for_file_name(self):
        mt = self.registry.media_type_for("lesson_part_1.MP4")
        assert mt is not None
        assert (mt.type, mt.mime_type) == ("video", "video/mp4")
        assert self.registry.media_type_for("no_extension") is None
        assert self.registry.media_type_for("archive.unknownext") is None

    def test_lecturer_pattern_is_case_insensitive(self):
        assert self.registry.lecturer_pattern("Rav") == "rav"
        assert self.registry.lecturer_pattern("RAV ") == "rav"
        assert self.registry.lecturer_pattern("someone") is None
        assert self.registry.lecturer_pattern("") is None

    def test_part_type_prefix_boundaries(self):
        # codes up to 2 carry no prefix
        for code in (None, 0, 1, 2):
            assert self.registry.part_type_prefix(code) == ""
        # label index is code - 3
        assert self.registry.part_type_prefix(3) == "meal_"
        assert self.registry.part_type_prefix(4) == "friends_gathering_"
        last = 3 + len(self.registry.misc_event_part_types) - 1
        assert self.registry.part_type_prefix(last) == self.registry.misc_event_part_types[-1]
        # beyond the table
        assert self.registry.part_type_prefix(last + 1) is None

    def test_registry_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            self.registry.part_type_offset = 1  # type: ignore[misc]
        with pytest.raises(TypeError):
            self.registry.languages["xx"] = "en"  # type: ignore[index]

    def test_load_registry_is_built_once(self):
        assert load_registry() is load_registry()
