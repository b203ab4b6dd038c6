from __future__ import annotations

import pytest
from sqlalchemy import select

from mdb.config.registry import build_registry
from mdb.domain.entities import Collection, CollectionContentUnit, ContentUnit
from mdb.infra.store import Store
from mdb.shared.schemas import CITMetadata
from mdb.shared.types import ContentType
from mdb.usecases.collection_reconciler import CollectionReconciler


def _unit(db, uid: str) -> ContentUnit:
    return db.scalars(select(ContentUnit).where(ContentUnit.uid == uid)).one()


def _created_uid(result) -> str:
    return next(ev.entity.uid for ev in result.events if ev.type == "content-unit-created")


class TestCaptureReconciliation:
    def test_lesson_part_creates_collection_keyed_by_capture_id(self, pipeline, db):
        pipeline.capture_start("wf-1")
        pipeline.capture_stop("wf-1", "p_capture", collection_uid="cap-42")
        pipeline.demux("p_capture", "p_orig", "p_proxy")

        result = pipeline.send("p_orig", "p_proxy", {"content_type": "LESSON_PART", "part": 2})

        c = db.scalars(select(Collection)).one()
        assert c.type == ContentType.DAILY_LESSON
        assert c.properties["capture_id"] == "cap-42"
        assert c.properties["capture_date"] == "2026-01-05"
        assert c.properties["film_date"] == "2026-01-05"

        ccu = db.scalars(select(CollectionContentUnit)).one()
        assert ccu.collection_id == c.id
        assert ccu.content_unit_id == _unit(db, _created_uid(result)).id
        assert ccu.name == "2"

    def test_parts_of_one_broadcast_converge(self, pipeline, db):
        a = pipeline.recording("wf-1", "cap-7", "a")
        b = pipeline.recording("wf-2", "cap-7", "b")

        pipeline.send(*a, {"content_type": "LESSON_PART", "part": 1})
        pipeline.send(*b, {"content_type": "LESSON_PART", "part": 2})

        c = db.scalars(select(Collection)).one()
        assert [ccu.name for ccu in Store(db).collection_units(c.id)] == ["1", "2"]

    def test_full_lesson_takes_over_collection(self, pipeline, db):
        part = pipeline.recording("wf-1", "cap-9", "part")
        full = pipeline.recording("wf-2", "cap-9", "full")
        pipeline.send(*part, {"content_type": "LESSON_PART", "part": 1})

        result = pipeline.send(
            *full,
            {"content_type": "FULL_LESSON", "week_date": "2026-01-03", "number": 1},
        )

        c = db.scalars(select(Collection)).one()
        assert c.type == ContentType.SATURDAY_LESSON
        assert c.properties["film_date"] == "2026-01-03"
        assert c.properties["number"] == 1
        slots = {ccu.content_unit_id: ccu.name for ccu in Store(db).collection_units(c.id)}
        assert slots[_unit(db, _created_uid(result)).id] == "full"
        assert sorted(slots.values()) == ["1", "full"]

    def test_full_lesson_first_converges_to_the_same_collection(self, pipeline, db):
        part = pipeline.recording("wf-1", "cap-9", "part")
        full = pipeline.recording("wf-2", "cap-9", "full")
        full_result = pipeline.send(
            *full,
            {"content_type": "FULL_LESSON", "week_date": "2026-01-03", "number": 1},
        )

        part_result = pipeline.send(*part, {"content_type": "LESSON_PART", "part": 1})

        c = db.scalars(select(Collection)).one()
        assert c.type == ContentType.SATURDAY_LESSON
        assert c.properties["film_date"] == "2026-01-03"
        assert c.properties["number"] == 1
        slots = {ccu.content_unit_id: ccu.name for ccu in Store(db).collection_units(c.id)}
        assert slots == {
            _unit(db, _created_uid(full_result)).id: "full",
            _unit(db, _created_uid(part_result)).id: "1",
        }

    def test_no_capture_id_means_no_collection(self, pipeline, db):
        original, proxy = pipeline.recording("wf-1", None, "r")
        result = pipeline.send(original, proxy, {"content_type": "LESSON_PART", "part": 1})

        assert result.ok
        assert db.scalars(select(Collection)).all() == []

    def test_capture_stop_missing_from_chain(self, pipeline, db, sha1, attrs):
        # join outputs are lineage roots with no capture_stop above them
        pipeline.recording("wf-1", "cap-1", "a")
        pipeline.run(
            "join",
            {
                "operation": {"station": "s", "user": "u@example.com"},
                "original_shas": [sha1("a_orig")],
                "proxy_shas": [sha1("a_proxy")],
                "original": attrs("j_orig"),
                "proxy": attrs("j_proxy"),
            },
        )
        result = pipeline.send("j_orig", "j_proxy", {"content_type": "LESSON_PART", "part": 1})

        assert result.ok
        assert db.scalars(select(Collection)).all() == []


class TestExplicitCollection:
    @pytest.fixture
    def congress(self, session_factory):
        with session_factory() as s:
            s.add(Collection(uid="cong0001", type=ContentType.CONGRESS, properties={}))
            s.commit()
        return "cong0001"

    def test_event_part_joins_named_collection(self, pipeline, db, congress):
        original, proxy = pipeline.recording("wf-1", None, "e")
        pipeline.send(
            original,
            proxy,
            {"content_type": "EVENT_PART", "collection_uid": congress, "number": 2, "part_type": 3},
        )

        c = db.scalars(select(Collection).where(Collection.uid == congress)).one()
        assert [ccu.name for ccu in Store(db).collection_units(c.id)] == ["meal_2"]

    def test_unknown_collection_uid_is_not_fatal(self, pipeline, db):
        original, proxy = pipeline.recording("wf-1", "cap-1", "e")
        result = pipeline.send(
            original, proxy, {"content_type": "LESSON_PART", "collection_uid": "missing0"}
        )

        assert result.ok
        assert db.scalars(select(CollectionContentUnit)).all() == []
        assert db.scalars(select(Collection)).all() == []


class TestSlotName:
    def setup_method(self):
        self.reconciler = CollectionReconciler(store=None, registry=build_registry())

    def _meta(self, **kw):
        return CITMetadata(content_type="LESSON_PART", capture_date="2026-01-05", **kw)

    def _collection(self, c_type):
        return Collection(uid="c0000001", type=c_type)

    def test_full_lesson_outside_lesson_collection_uses_number(self):
        name = self.reconciler.slot_name(
            ContentType.FULL_LESSON, self._collection(ContentType.CONGRESS), self._meta(number=4)
        )
        assert name == "4"

    def test_video_program_chapter_uses_episode(self):
        name = self.reconciler.slot_name(
            ContentType.VIDEO_PROGRAM_CHAPTER,
            self._collection(ContentType.VIDEO_PROGRAM),
            self._meta(episode="12a"),
        )
        assert name == "12a"

    @pytest.mark.parametrize(
        "part_type,expected",
        [(None, "5"), (2, "5"), (3, "meal_5"), (7, "holiday_5"), (8, "5")],
    )
    def test_event_part_prefix(self, part_type, expected):
        name = self.reconciler.slot_name(
            ContentType.EVENT_PART,
            self._collection(ContentType.CONGRESS),
            self._meta(number=5, part_type=part_type),
        )
        assert name == expected
