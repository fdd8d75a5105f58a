from __future__ import annotations

import asyncio
import unittest
from unittest import mock

from mangaweb.pipeline.errors import DetectionPredictionError, GatewayNotReadyError, RecognitionPredictionError
from mangaweb.pipeline.geometry import CoordinateSpace
from mangaweb.pipeline.models import TranslatedEntry
from mangaweb.pipeline.ocr.crops import crop_region
from mangaweb.pipeline.ocr.engine import SequenceRecognizer
from mangaweb.pipeline.ocr.preprocess import Normalization
from mangaweb.pipeline.orchestrator import PipelineOrchestrator, run_pipeline
from mangaweb.pipeline.translate import StaticTranslationGateway
from tests.stubs import (
    TEST_VOCAB,
    BlockingGateway,
    RecordingGateway,
    ScriptedGenerationModel,
    StubDetector,
    StubRecognizer,
    blank_image,
    pixel,
)


def _box(entry: TranslatedEntry):
    b = entry.bounding_box
    return (b.x, b.y, b.width, b.height)


class TestEndToEnd(unittest.TestCase):
    def test_two_bubbles_on_400x300_page(self) -> None:
        detector = StubDetector([pixel(10, 20, 100, 30), pixel(50, 200, 120, 40)])
        recognizer = StubRecognizer({(100, 30): "こんにちは", (120, 40): "ありがとう"})
        gateway = StaticTranslationGateway({"こんにちは": "HELLO", "ありがとう": "THANK YOU"})
        asyncio.run(gateway.prepare())

        orchestrator = PipelineOrchestrator(detector, recognizer)
        entries = asyncio.run(orchestrator.process(blank_image(400, 300), gateway))

        self.assertEqual([e.translated_text for e in entries], ["HELLO", "THANK YOU"])
        self.assertEqual([e.source_text for e in entries], ["こんにちは", "ありがとう"])
        expected = [(0.025, 0.0667, 0.25, 0.1), (0.125, 0.667, 0.3, 0.133)]
        for entry, want in zip(entries, expected):
            self.assertIs(entry.bounding_box.space, CoordinateSpace.UI)
            for got, exp in zip(_box(entry), want):
                self.assertAlmostEqual(got, exp, delta=1e-3)

    def test_real_recognizer_through_pipeline(self) -> None:
        detector = StubDetector([pixel(0, 0, 40, 20)])
        recognizer = SequenceRecognizer(ScriptedGenerationModel([6, 7, 3]), TEST_VOCAB)
        gateway = RecordingGateway({"こんにちは": "Hello"})

        entries = asyncio.run(PipelineOrchestrator(detector, recognizer).process(blank_image(80, 40), gateway))

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].translated_text, "Hello")
        self.assertEqual(_box(entries[0]), (0.0, 0.0, 0.5, 0.5))


class TestPartialFailures(unittest.TestCase):
    def setUp(self) -> None:
        # Five regions of distinct widths so the stub recognizer can tell them apart
        self.regions = [pixel(10 * i, 5, 20 + i, 10) for i in range(5)]
        self.texts = {(20 + i, 10): f"text-{i}" for i in range(5)}
        self.image = blank_image(200, 100)

    def test_one_failed_translation_drops_only_that_region(self) -> None:
        gateway = RecordingGateway({}, fail_on=["text-2"])
        orchestrator = PipelineOrchestrator(StubDetector(self.regions), StubRecognizer(self.texts))

        report = asyncio.run(orchestrator.process_with_report(self.image, gateway))

        self.assertEqual(len(report.entries), 4)
        self.assertEqual([e.source_text for e in report.entries], ["text-0", "text-1", "text-3", "text-4"])
        self.assertEqual([e.translated_text for e in report.entries], ["TEXT-0", "TEXT-1", "TEXT-3", "TEXT-4"])
        self.assertEqual(report.dropped["translation"], 1)
        self.assertAlmostEqual(report.entries[2].bounding_box.x, 30 / 200)

    def test_recognition_failure_and_empty_text_are_dropped(self) -> None:
        texts = dict(self.texts)
        texts[(21, 10)] = ""
        recognizer = StubRecognizer(texts, failures={(23, 10): RecognitionPredictionError("bad step")})
        gateway = RecordingGateway({})

        report = asyncio.run(
            PipelineOrchestrator(StubDetector(self.regions), recognizer).process_with_report(self.image, gateway)
        )

        self.assertEqual([e.source_text for e in report.entries], ["text-0", "text-2", "text-4"])
        self.assertEqual(report.dropped["empty"], 1)
        self.assertEqual(report.dropped["recognition"], 1)
        # empty text never reaches the translator
        self.assertNotIn("", gateway.seen)

    def test_uncroppable_region_is_skipped(self) -> None:
        regions = [pixel(10, 10, 20, 10), pixel(500, 500, 10, 10)]
        report = asyncio.run(
            PipelineOrchestrator(StubDetector(regions), StubRecognizer({(20, 10): "a"})).process_with_report(
                self.image, RecordingGateway({})
            )
        )
        self.assertEqual(len(report.entries), 1)
        self.assertEqual(report.dropped["crop"], 1)
        self.assertEqual(report.num_regions, 2)

    def test_each_region_is_cropped_inside_its_own_task(self) -> None:
        crop_tasks = []

        def recording_crop(image, region):
            crop_tasks.append(asyncio.current_task())
            return crop_region(image, region)

        async def scenario():
            orchestrator = PipelineOrchestrator(StubDetector(self.regions), StubRecognizer(self.texts))
            with mock.patch("mangaweb.pipeline.orchestrator.crop_region", recording_crop):
                entries = await orchestrator.process(self.image, RecordingGateway({}))
            return entries, asyncio.current_task()

        entries, outer = asyncio.run(scenario())

        self.assertEqual(len(entries), 5)
        self.assertEqual(len(crop_tasks), 5)
        self.assertNotIn(outer, crop_tasks)
        self.assertEqual(len(set(map(id, crop_tasks))), 5)

    def test_no_regions_returns_empty(self) -> None:
        recognizer = StubRecognizer({})
        entries = asyncio.run(PipelineOrchestrator(StubDetector([]), recognizer).process(self.image, RecordingGateway({})))
        self.assertEqual(entries, [])
        self.assertEqual(recognizer.normalizations, [])

    def test_detector_failure_fails_the_call(self) -> None:
        orchestrator = PipelineOrchestrator(StubDetector(error=DetectionPredictionError("boom")), StubRecognizer({}))
        with self.assertRaises(DetectionPredictionError):
            asyncio.run(orchestrator.process(self.image, RecordingGateway({})))

    def test_unprepared_gateway_is_a_precondition_failure(self) -> None:
        detector = StubDetector(self.regions)
        orchestrator = PipelineOrchestrator(detector, StubRecognizer(self.texts))
        with self.assertRaises(GatewayNotReadyError):
            asyncio.run(orchestrator.process(self.image, RecordingGateway({}, ready=False)))


class TestConcurrency(unittest.TestCase):
    def test_recognition_respects_concurrency_cap(self) -> None:
        regions = [pixel(i * 10, 0, 5 + i, 5) for i in range(8)]
        recognizer = StubRecognizer({(5 + i, 5): f"t{i}" for i in range(8)}, delay=0.02)
        orchestrator = PipelineOrchestrator(StubDetector(regions), recognizer, max_concurrency=2)

        entries = asyncio.run(orchestrator.process(blank_image(100, 20), RecordingGateway({})))

        self.assertEqual(len(entries), 8)
        self.assertLessEqual(recognizer.max_active, 2)
        self.assertEqual([e.source_text for e in entries], [f"t{i}" for i in range(8)])

    def test_normalization_is_passed_to_recognizer(self) -> None:
        recognizer = StubRecognizer({(5, 5): "x"})
        orchestrator = PipelineOrchestrator(
            StubDetector([pixel(0, 0, 5, 5)]), recognizer, normalization="zero_to_one"
        )
        asyncio.run(orchestrator.process(blank_image(10, 10), RecordingGateway({})))
        self.assertEqual(recognizer.normalizations, [Normalization.ZERO_TO_ONE])

    def test_cancelling_process_cancels_region_tasks(self) -> None:
        regions = [pixel(i * 10, 0, 5 + i, 5) for i in range(3)]
        recognizer = StubRecognizer({(5 + i, 5): f"t{i}" for i in range(3)})

        async def scenario() -> BlockingGateway:
            gateway = BlockingGateway(expected=3)
            orchestrator = PipelineOrchestrator(StubDetector(regions), recognizer)
            task = asyncio.ensure_future(orchestrator.process(blank_image(100, 20), gateway))
            await asyncio.wait_for(gateway.all_started.wait(), timeout=5)
            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task
            return gateway

        gateway = asyncio.run(scenario())
        self.assertEqual(gateway.started, 3)
        self.assertEqual(gateway.cancelled, 3)

    def test_rejects_zero_concurrency(self) -> None:
        with self.assertRaises(ValueError):
            PipelineOrchestrator(StubDetector([]), StubRecognizer({}), max_concurrency=0)


class TestRunPipeline(unittest.TestCase):
    def test_uses_registry_and_settings(self) -> None:
        class Models:
            detector = StubDetector([pixel(0, 0, 5, 5)])
            recognizer = StubRecognizer({(5, 5): "x"})

        class Settings:
            max_concurrency = 1
            normalization = "minus_one_to_one"

        entries = asyncio.run(
            run_pipeline(blank_image(10, 10), RecordingGateway({"x": "y"}), models=Models(), settings=Settings())
        )
        self.assertEqual([e.translated_text for e in entries], ["y"])


if __name__ == "__main__":
    unittest.main()
