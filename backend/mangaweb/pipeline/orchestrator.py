from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, List, Optional, Tuple, Union

from mangaweb.pipeline.detector import RegionDetector
from mangaweb.pipeline.errors import CropError, GatewayNotReadyError
from mangaweb.pipeline.geometry import Region, pixel_to_ui
from mangaweb.pipeline.models import PipelineReport, RecognizedText, TranslatedEntry
from mangaweb.pipeline.ocr.crops import crop_region
from mangaweb.pipeline.ocr.engine import SequenceRecognizer
from mangaweb.pipeline.ocr.preprocess import Normalization
from mangaweb.pipeline.raster import RasterImage
from mangaweb.pipeline.translate.base import TranslationGateway

logger = logging.getLogger(__name__)

# (entry, drop reason); exactly one of the two is set
RegionOutcome = Tuple[Optional[TranslatedEntry], Optional[str]]

DEFAULT_MAX_CONCURRENCY = 4


class PipelineOrchestrator:
    """
    Runs detection once per capture, then crops, recognizes and translates
    every detected region concurrently.

    Per-region failures drop only that region. Only a detector failure (or
    an unprepared gateway) fails the whole call.
    """

    def __init__(
        self,
        detector: RegionDetector,
        recognizer: SequenceRecognizer,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        normalization: Union[str, Normalization] = Normalization.MINUS_ONE_TO_ONE,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.detector = detector
        self.recognizer = recognizer
        self.max_concurrency = max_concurrency
        self.normalization = Normalization.parse(normalization)

    async def process(self, image: RasterImage, gateway: TranslationGateway) -> List[TranslatedEntry]:
        """Translate every text region of `image`; entries follow detector order."""
        report = await self.process_with_report(image, gateway)
        return report.entries

    async def process_with_report(self, image: RasterImage, gateway: TranslationGateway) -> PipelineReport:
        if not gateway.is_ready:
            raise GatewayNotReadyError("translation gateway is not prepared")

        report = PipelineReport(width=image.width, height=image.height)

        # Stage 1: detection. DetectionError propagates to the caller.
        t0 = time.perf_counter()
        regions = await asyncio.to_thread(self.detector.detect, image)
        report.timings_ms["detect"] = int((time.perf_counter() - t0) * 1000)
        report.num_regions = len(regions)
        if not regions:
            logger.info("no_regions_detected", extra={"width": image.width, "height": image.height})
            return report

        # Stage 2: one task per region (crop -> recognize -> translate), joined before returning
        t0 = time.perf_counter()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.ensure_future(self._process_region(index, region, image, gateway, semaphore))
            for index, region in enumerate(regions)
        ]
        try:
            outcomes: List[RegionOutcome] = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        report.timings_ms["regions"] = int((time.perf_counter() - t0) * 1000)

        for entry, reason in outcomes:
            if entry is not None:
                report.entries.append(entry)
            elif reason is not None:
                report.dropped[reason] = report.dropped.get(reason, 0) + 1

        logger.info(
            "pipeline_completed",
            extra={
                "num_regions": report.num_regions,
                "num_entries": len(report.entries),
                "dropped": report.dropped,
                "timings_ms": report.timings_ms,
            },
        )
        return report

    async def _process_region(
        self,
        index: int,
        region: Region,
        image: RasterImage,
        gateway: TranslationGateway,
        semaphore: asyncio.Semaphore,
    ) -> RegionOutcome:
        try:
            crop, _ = crop_region(image, region)
        except CropError:
            logger.warning("region_crop_failed", extra={"region_index": index, "region": region.as_dict()})
            return None, "crop"

        # Recognition is compute-bound; the semaphore caps concurrent model use
        async with semaphore:
            try:
                text = await asyncio.to_thread(self.recognizer.recognize, crop, self.normalization)
            except Exception:  # noqa: BLE001
                logger.exception("region_recognition_failed", extra={"region_index": index})
                return None, "recognition"

        if not text:
            logger.debug("region_empty", extra={"region_index": index})
            return None, "empty"
        recognized = RecognizedText(text=text, source_region=region)
        logger.debug("region_recognized", extra={"region_index": index, "text": recognized.text})

        try:
            translated = await gateway.translate(recognized.text)
        except Exception:  # noqa: BLE001
            logger.exception("region_translation_failed", extra={"region_index": index, "text": recognized.text})
            return None, "translation"

        box = pixel_to_ui(recognized.source_region, image.width, image.height)
        return TranslatedEntry(translated_text=translated, bounding_box=box, source_text=recognized.text), None


async def run_pipeline(
    image: RasterImage,
    gateway: TranslationGateway,
    *,
    models: Any,
    settings: Any = None,
) -> List[TranslatedEntry]:
    """
    High-level wrapper: build an orchestrator from a ModelRegistry and run it.
    """
    if settings is None:
        from mangaweb.core.config import get_settings

        settings = get_settings()
    orchestrator = PipelineOrchestrator(
        models.detector,
        models.recognizer,
        max_concurrency=settings.max_concurrency,
        normalization=settings.normalization,
    )
    return await orchestrator.process(image, gateway)
