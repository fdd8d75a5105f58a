from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from mangaweb.core.config import SUPPORTED_TARGET_LANGUAGES, Settings, get_settings
from mangaweb.core.logging import configure_logging
from mangaweb.pipeline.errors import DetectionError, ImageConversionError, MangaWebError
from mangaweb.pipeline.io import ensure_dir, read_raster, save_png, to_bgr
from mangaweb.pipeline.model_registry import ModelRegistry
from mangaweb.pipeline.orchestrator import PipelineOrchestrator
from mangaweb.pipeline.translate import StaticTranslationGateway, TranslationGateway, create_gateway
from mangaweb.pipeline.utils.visualization import make_overlay

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tif", ".tiff")


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Detect, recognize and translate dialogue in page screenshots",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", type=str, required=True, help="Path to a screenshot or a folder of screenshots")
    parser.add_argument("--out-dir", type=str, required=True, help="Directory to write <stem>.json results")
    parser.add_argument("--target", type=str, default=None, choices=SUPPORTED_TARGET_LANGUAGES, help="Target language")
    parser.add_argument("--profile", type=str, default=None, choices=["accelerator", "all", "cpu"], help="Compute profile")
    parser.add_argument(
        "--normalization",
        type=str,
        default=None,
        choices=["zero_to_one", "minus_one_to_one"],
        help="Pixel normalization fed to the recognizer",
    )
    parser.add_argument("--max-concurrency", type=positive_int, default=None, help="Concurrent region tasks")
    parser.add_argument("--overlay", action="store_true", help="Also write <stem>_overlay.png with the boxes drawn")
    parser.add_argument("--dry-run", action="store_true", help="Skip translation; echo recognized text")
    return parser.parse_args(argv)


def collect_images(input_path: Path) -> List[Path]:
    if input_path.is_file():
        return [input_path]
    if input_path.is_dir():
        return sorted(p for p in input_path.glob("*") if p.suffix.lower() in SUPPORTED_EXTENSIONS)
    raise FileNotFoundError(f"Input path not found: {input_path}")


async def process_images(
    image_paths: Sequence[Path],
    out_dir: Path,
    orchestrator: PipelineOrchestrator,
    gateway: TranslationGateway,
    *,
    overlay: bool = False,
) -> int:
    """Translate each image and write its JSON report. Returns the failure count."""
    failures = 0
    if not gateway.is_ready:
        await gateway.prepare()
    ensure_dir(out_dir)
    for i, image_path in enumerate(image_paths, start=1):
        t0 = time.perf_counter()
        print(f"[{i}/{len(image_paths)}] {image_path.name}")
        try:
            image = read_raster(image_path)
        except ImageConversionError as exc:
            print(f"  skipped: {exc}")
            failures += 1
            continue

        try:
            report = await orchestrator.process_with_report(image, gateway)
            payload = report.as_dict()
        except DetectionError as exc:
            logger.exception("detection_failed", extra={"image": str(image_path)})
            print(f"  detection failed: {exc}")
            payload = {"width": image.width, "height": image.height, "num_regions": 0, "entries": []}
            report = None

        json_path = out_dir / f"{image_path.stem}.json"
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

        if overlay and report is not None:
            save_png(out_dir / f"{image_path.stem}_overlay.png", make_overlay(to_bgr(image), report.entries))

        print(f"  {len(payload['entries'])} entries in {time.perf_counter() - t0:.2f}s -> {json_path}")
    return failures


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings: Settings = get_settings()
    configure_logging(settings.log_level)

    try:
        image_paths = collect_images(Path(args.input))
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    if not image_paths:
        print(f"No supported images found in '{args.input}'.")
        return 0

    print("Preloading models...")
    try:
        models = ModelRegistry.load(
            profile=args.profile or settings.compute_profile,
            detector_model_path=settings.effective_detector_model_path,
            recognizer_model_path=settings.effective_recognizer_model_path,
            vocab_path=settings.effective_vocab_path,
            max_token_length=settings.max_token_length,
        )
    except MangaWebError as exc:
        print(f"Model loading failed: {exc}", file=sys.stderr)
        return 1

    target = args.target or settings.target_language
    if args.dry_run:
        gateway: TranslationGateway = StaticTranslationGateway.identity(target_language=target)
    else:
        gateway = create_gateway(settings, target)

    orchestrator = PipelineOrchestrator(
        models.detector,
        models.recognizer,
        max_concurrency=args.max_concurrency if args.max_concurrency is not None else settings.max_concurrency,
        normalization=args.normalization or settings.normalization,
    )
    try:
        failures = asyncio.run(
            process_images(image_paths, Path(args.out_dir), orchestrator, gateway, overlay=args.overlay)
        )
    except MangaWebError as exc:
        print(f"Translation unavailable: {exc}", file=sys.stderr)
        return 1
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
