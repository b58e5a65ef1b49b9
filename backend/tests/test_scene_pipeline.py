"""Tests for the scene pipeline (run / finalize) and the scene store.

Covers:
- MOCK run: canned analysis + short caption, staged under temp_<id>
- Encode failure: PipelineEncodeError (an EncodeError), no store writes
- DIRECT run with vision HTTP 500: degraded analysis, pipeline completes
- finalize: temp -> scene key, edits kept, missing/double finalize -> NotFoundError
- Store: JSON round trip, key invariants, list ordering, edit/delete helpers
"""

import asyncio
import io
import json
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from autoscene.core.image_processing import EncodeError
from autoscene.models.scene import Base
from autoscene.schemas.scene import SceneRecord, SceneStatus, scene_key, temp_key
from autoscene.services.ai.caption.contracts import LengthClass
from autoscene.services.ai.common.providers.google_vision import GoogleVisionLabelBackend
from autoscene.services.ai.common.providers.mock import MOCK_CAPTIONS, MockCaptionBackend, MockLabelBackend
from autoscene.services.ai.common.providers.openai import OpenAICaptionBackend
from autoscene.services.ai.vision.contracts import AnalysisResult
from autoscene.services.scene_editing import delete_scene, list_scenes, normalize_tags, update_scene
from autoscene.services.scene_pipeline import PipelineEncodeError, PipelineError, PipelineStage, ScenePipeline
from autoscene.services.scene_store import NotFoundError, SceneStore


def _jpeg_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (10, 200, 30)).save(buf, format="JPEG")
    return buf.getvalue()


def _record(scene_id="1760000000000", tags=None, created_at=None) -> SceneRecord:
    ts = created_at or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    return SceneRecord(
        id=scene_id,
        image_ref="file:///photos/cafe.jpg",
        analysis=AnalysisResult(labels=["カフェ", "コーヒー"], affect_score=0.8, recognized_text=""),
        caption="キャプション",
        tags=tags if tags is not None else ["コーヒー", "カフェ", "朝"],
        created_at=ts,
        updated_at=ts,
    )


class _DbTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)
        self.db = self.SessionLocal()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def mock_pipeline(self) -> ScenePipeline:
        return ScenePipeline(self.db, label_backend=MockLabelBackend(), caption_backend=MockCaptionBackend())


class RunTests(_DbTestCase):
    def test_mock_run_short(self):
        record = asyncio.run(self.mock_pipeline().run(_jpeg_bytes(), LengthClass.SHORT, image_uri="file:///a.jpg"))

        self.assertEqual(record.caption, MOCK_CAPTIONS[LengthClass.SHORT])
        self.assertEqual(record.analysis.labels, ["カフェ", "コーヒー", "インテリア"])
        self.assertAlmostEqual(record.analysis.affect_score, 0.8)
        self.assertEqual(record.tags, record.analysis.labels)
        self.assertEqual(record.image_ref, "file:///a.jpg")

        store = SceneStore(self.db)
        self.assertEqual(store.keys(), [temp_key(record.id)])
        self.assertEqual(store.get(temp_key(record.id)), record)

    def test_run_from_path_records_path(self):
        import tempfile
        from pathlib import Path

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "photo.jpg"
            path.write_bytes(_jpeg_bytes())
            record = asyncio.run(self.mock_pipeline().run(str(path)))
        self.assertEqual(record.image_ref, str(path))
        self.assertEqual(record.caption, MOCK_CAPTIONS[LengthClass.LONG])

    def test_tags_are_a_copy_of_labels(self):
        record = asyncio.run(self.mock_pipeline().run(_jpeg_bytes()))
        record.tags.append("extra")
        self.assertEqual(len(record.analysis.labels), 3)

    def test_encode_failure_writes_nothing(self):
        pipeline = self.mock_pipeline()
        with self.assertRaises(EncodeError) as ctx:
            asyncio.run(pipeline.run("/definitely/missing/photo.jpg"))

        self.assertIsInstance(ctx.exception, PipelineEncodeError)
        self.assertEqual(ctx.exception.stage, PipelineStage.ENCODE)
        self.assertEqual(SceneStore(self.db).keys(), [])

    def test_store_failure_is_a_stage_error(self):
        with patch.object(SceneStore, "put", side_effect=SQLAlchemyError("database is locked")):
            with self.assertRaises(PipelineError) as ctx:
                asyncio.run(self.mock_pipeline().run(_jpeg_bytes()))

        self.assertEqual(ctx.exception.stage, PipelineStage.STAGE)
        self.assertIsInstance(ctx.exception.__cause__, SQLAlchemyError)
        self.assertNotIsInstance(ctx.exception, EncodeError)
        self.assertEqual(SceneStore(self.db).keys(), [])

    def test_corrupt_image_fails_before_remote_calls(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        pipeline = ScenePipeline(
            self.db,
            label_backend=GoogleVisionLabelBackend(client, api_key="k"),
            caption_backend=OpenAICaptionBackend(client, api_key="k"),
        )
        with self.assertRaises(PipelineEncodeError):
            asyncio.run(pipeline.run(b"not an image"))
        self.assertEqual(calls, [])

    def test_direct_vision_500_degrades_and_completes(self):
        def handler(request: httpx.Request):
            if "vision" in request.url.host:
                return httpx.Response(500, json={"error": {"message": "internal"}})
            body = json.loads(request.content)
            assert "カフェ" in body["messages"][1]["content"]
            return httpx.Response(200, json={"choices": [{"message": {"content": "窓辺のコーヒー。"}}]})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        pipeline = ScenePipeline(
            self.db,
            label_backend=GoogleVisionLabelBackend(client, api_key="k", url="https://vision.test/v1/images:annotate"),
            caption_backend=OpenAICaptionBackend(client, api_key="k", url="https://openai.test/v1/chat/completions"),
        )
        record = asyncio.run(pipeline.run(_jpeg_bytes(), LengthClass.SHORT))

        self.assertEqual(record.analysis.labels, ["カフェ", "コーヒー", "インテリア"])
        self.assertEqual(record.caption, "窓辺のコーヒー。")
        self.assertTrue(SceneStore(self.db).exists(temp_key(record.id)))

    def test_everything_remote_down_still_yields_caption_and_tags(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        pipeline = ScenePipeline(
            self.db,
            label_backend=GoogleVisionLabelBackend(client, api_key="k"),
            caption_backend=OpenAICaptionBackend(client, api_key="k"),
        )
        record = asyncio.run(pipeline.run(_jpeg_bytes(), LengthClass.LONG))
        self.assertEqual(record.caption, MOCK_CAPTIONS[LengthClass.LONG])
        self.assertTrue(record.tags)

    def test_ids_are_unique_within_one_millisecond(self):
        pipeline = self.mock_pipeline()
        with patch("autoscene.services.scene_pipeline.time.time", return_value=1760000000.5):
            first = asyncio.run(pipeline.run(_jpeg_bytes()))
            second = asyncio.run(pipeline.run(_jpeg_bytes()))
        self.assertEqual(first.id, "1760000000500")
        self.assertEqual(second.id, "1760000000500-1")


class FinalizeTests(_DbTestCase):
    def test_finalize_moves_record(self):
        pipeline = self.mock_pipeline()
        record = asyncio.run(pipeline.run(_jpeg_bytes()))

        permanent = pipeline.finalize(temp_key(record.id))

        store = SceneStore(self.db)
        self.assertEqual(permanent, scene_key(record.id))
        self.assertFalse(store.exists(temp_key(record.id)))
        saved = store.get(permanent)
        self.assertEqual(saved.id, record.id)
        self.assertEqual(saved.caption, record.caption)
        self.assertGreaterEqual(saved.updated_at, record.updated_at)

    def test_finalize_keeps_user_edits(self):
        pipeline = self.mock_pipeline()
        record = asyncio.run(pipeline.run(_jpeg_bytes()))
        update_scene(self.db, temp_key(record.id), caption=" 新しいキャプション ", tags=["朝", "カフェ", "朝", " "])

        saved = SceneStore(self.db).get(pipeline.finalize(record.id))
        self.assertEqual(saved.caption, "新しいキャプション")
        self.assertEqual(saved.tags, ["朝", "カフェ"])

    def test_finalize_missing_raises_and_leaves_store_alone(self):
        store = SceneStore(self.db)
        store.put(scene_key("1"), _record("1"))
        self.db.commit()

        with self.assertRaises(NotFoundError):
            self.mock_pipeline().finalize("temp_X")
        self.assertEqual(store.keys(), [scene_key("1")])

    def test_double_finalize_is_not_found_and_keeps_data(self):
        pipeline = self.mock_pipeline()
        record = asyncio.run(pipeline.run(_jpeg_bytes()))
        key = temp_key(record.id)
        permanent = pipeline.finalize(key)
        before = SceneStore(self.db).get(permanent)

        with self.assertRaises(NotFoundError):
            pipeline.finalize(key)
        self.assertEqual(SceneStore(self.db).get(permanent), before)


class SceneStoreTests(_DbTestCase):
    def test_json_round_trip(self):
        record = _record(tags=["z", "a", "m"])
        store = SceneStore(self.db)
        store.put(temp_key(record.id), record)
        self.db.commit()

        other = self.SessionLocal()
        try:
            loaded = SceneStore(other).get(temp_key(record.id))
        finally:
            other.close()
        self.assertEqual(loaded, record)
        self.assertEqual(loaded.tags, ["z", "a", "m"])

    def test_document_shape(self):
        doc = _record().to_document()
        self.assertEqual(
            set(doc),
            {"id", "imageUri", "visionResult", "generatedCopy", "tags", "createdAt", "updatedAt"},
        )
        self.assertEqual(doc["visionResult"]["affectScore"], 0.8)
        self.assertEqual(SceneRecord.from_document(json.loads(json.dumps(doc))), _record())

    def test_permanent_key_must_match_record_id(self):
        store = SceneStore(self.db)
        with self.assertRaises(ValueError):
            store.put(scene_key("other"), _record("1"))
        with self.assertRaises(ValueError):
            store.put(scene_key("temp_1"), _record("temp_1"))
        with self.assertRaises(ValueError):
            store.put("random_1", _record("1"))

    def test_status_follows_key(self):
        store = SceneStore(self.db)
        store.put(temp_key("1"), _record("1"))
        store.put(scene_key("2"), _record("2"))
        self.assertEqual(store.keys(SceneStatus.STAGED), [temp_key("1")])
        self.assertEqual(store.keys(SceneStatus.FINAL), [scene_key("2")])

    def test_list_newest_first(self):
        base = datetime(2026, 10, 1, tzinfo=timezone.utc)
        store = SceneStore(self.db)
        for i in range(3):
            store.put(scene_key(str(i)), _record(str(i), created_at=base + timedelta(days=i)))
        store.put(temp_key("9"), _record("9", created_at=base + timedelta(days=9)))
        self.db.commit()

        keys = [key for key, _ in list_scenes(self.db)]
        self.assertEqual(keys, [scene_key("2"), scene_key("1"), scene_key("0")])

    def test_delete_scene(self):
        store = SceneStore(self.db)
        store.put(scene_key("1"), _record("1"))
        self.db.commit()

        delete_scene(self.db, scene_key("1"))
        self.assertIsNone(store.get(scene_key("1")))
        with self.assertRaises(NotFoundError):
            delete_scene(self.db, scene_key("1"))

    def test_update_finalized_scene(self):
        store = SceneStore(self.db)
        store.put(scene_key("1"), _record("1"))
        self.db.commit()

        updated = update_scene(self.db, scene_key("1"), tags=["b", "a"])
        self.assertEqual(updated.tags, ["b", "a"])
        self.assertEqual(updated.caption, "キャプション")
        self.assertGreater(updated.updated_at, updated.created_at)

    def test_update_rejects_blank_caption(self):
        store = SceneStore(self.db)
        store.put(scene_key("1"), _record("1"))
        with self.assertRaises(ValueError):
            update_scene(self.db, scene_key("1"), caption="  ")

    def test_update_missing(self):
        with self.assertRaises(NotFoundError):
            update_scene(self.db, scene_key("404"), caption="x")

    def test_normalize_tags(self):
        self.assertEqual(normalize_tags([" a", "b ", "a", "", "c"]), ["a", "b", "c"])
