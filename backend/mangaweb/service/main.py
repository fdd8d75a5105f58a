from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, model_validator

from mangaweb.core.config import SUPPORTED_TARGET_LANGUAGES, get_settings
from mangaweb.core.logging import configure_logging
from mangaweb.pipeline.errors import DetectionError, GatewayUnavailableError, ImageConversionError
from mangaweb.pipeline.io import decode_raster, read_raster
from mangaweb.pipeline.model_registry import try_load_registry
from mangaweb.pipeline.orchestrator import PipelineOrchestrator
from mangaweb.pipeline.raster import RasterImage
from mangaweb.pipeline.translate import TranslationGateway, create_gateway

logger = logging.getLogger(__name__)


class TranslateBody(BaseModel):
    image_base64: Optional[str] = None
    path: Optional[str] = None
    download_url: Optional[str] = None
    target_language: Optional[str] = None

    @model_validator(mode="after")
    def _one_source(self) -> "TranslateBody":
        given = [v for v in (self.image_base64, self.path, self.download_url) if v]
        if len(given) != 1:
            raise ValueError("provide exactly one of image_base64, path, download_url")
        if self.target_language and self.target_language not in SUPPORTED_TARGET_LANGUAGES:
            raise ValueError(f"unsupported target language: {self.target_language!r}")
        return self


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float


class EntryOut(BaseModel):
    translated_text: str
    source_text: str
    bounding_box: BoundingBox


class TranslateResponse(BaseModel):
    width: int
    height: int
    target_language: str
    entries: List[EntryOut]


app = FastAPI(title="MangaWeb Translation Service", version="0.1.0")


async def _load_image(body: TranslateBody) -> RasterImage:
    if body.image_base64:
        try:
            data = base64.b64decode(body.image_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageConversionError(f"invalid base64 payload: {exc}") from exc
        return decode_raster(data)
    if body.path:
        src_path = Path(body.path)
        if not src_path.is_file():
            raise ImageConversionError(f"input not found: {src_path}")
        return read_raster(src_path)
    async with httpx.AsyncClient(timeout=30.0) as client:
        resp = await client.get(str(body.download_url))
        resp.raise_for_status()
        return decode_raster(resp.content)


async def _get_gateway(target_language: str) -> TranslationGateway:
    """Prepared gateway per target language, created on first use."""
    gateways: Dict[str, TranslationGateway] = app.state.gateways
    gateway = gateways.get(target_language)
    if gateway is None or not gateway.is_ready:
        factory: Callable[[str], TranslationGateway] = app.state.gateway_factory
        gateway = factory(target_language)
        await gateway.prepare()
        gateways[target_language] = gateway
    return gateway


def _ensure_state() -> None:
    if not hasattr(app.state, "gateways"):
        app.state.gateways = {}
    if not hasattr(app.state, "gateway_factory"):
        settings = get_settings()
        app.state.gateway_factory = lambda lang: create_gateway(settings, lang)
    if not hasattr(app.state, "models"):
        app.state.models = None


@app.get("/health")
def health() -> Dict[str, Any]:
    _ensure_state()
    ready = {lang: gw.is_ready for lang, gw in app.state.gateways.items()}
    return {
        "status": "ok",
        "models_loaded": app.state.models is not None,
        "gateways_ready": ready,
    }


@app.post("/translate", response_model=TranslateResponse)
async def translate(body: TranslateBody) -> TranslateResponse:
    _ensure_state()
    settings = get_settings()
    models = app.state.models
    if models is None:
        raise HTTPException(status_code=503, detail="translation models are not loaded")

    target = body.target_language or settings.target_language
    try:
        gateway = await _get_gateway(target)
    except GatewayUnavailableError as exc:
        logger.warning("gateway_unavailable", extra={"target_language": target, "error": str(exc)})
        raise HTTPException(status_code=503, detail=f"translation unavailable: {exc}") from exc

    try:
        image = await _load_image(body)
    except ImageConversionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except httpx.HTTPError as exc:
        raise HTTPException(status_code=502, detail=f"image download failed: {exc}") from exc

    orchestrator = PipelineOrchestrator(
        models.detector,
        models.recognizer,
        max_concurrency=settings.max_concurrency,
        normalization=settings.normalization,
    )
    try:
        entries = await orchestrator.process(image, gateway)
    except DetectionError:
        # Nothing to overlay; the caller sees an empty result, not an error
        logger.exception("detection_failed", extra={"width": image.width, "height": image.height})
        entries = []

    return TranslateResponse(
        width=image.width,
        height=image.height,
        target_language=target,
        entries=[EntryOut(**e.as_dict()) for e in entries],
    )


@app.on_event("startup")
def _startup_load_models() -> None:
    """Preload heavy models once at service startup."""
    settings = get_settings()
    configure_logging(settings.log_level)
    _ensure_state()
    if app.state.models is None:
        # A failed load leaves models unset; /translate then answers 503
        app.state.models = try_load_registry(settings)
