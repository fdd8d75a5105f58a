"""Exception taxonomy for the pipeline.

Errors are grouped two ways: by component (`DetectionError`,
`RecognitionError`, `TranslationError`) and by kind (`ImageConversionError`,
`PredictionError`). Component-specific kinds inherit from both, so callers
can catch whichever axis they care about.
"""

from __future__ import annotations


class MangaWebError(Exception):
    """Base class for all errors raised by mangaweb."""


class ImageConversionError(MangaWebError):
    """An image could not be presented to a model or cropped."""


class PredictionError(MangaWebError):
    """A model invocation failed."""


class CropError(ImageConversionError):
    """A region could not be cropped out of the source image."""


# Detection

class DetectionError(MangaWebError):
    pass


class DetectorLoadError(DetectionError):
    """Detection model missing or corrupt. Fatal for the engine."""


class DetectionImageError(DetectionError, ImageConversionError):
    pass


class DetectionPredictionError(DetectionError, PredictionError):
    pass


# Recognition

class RecognitionError(MangaWebError):
    pass


class RecognizerLoadError(RecognitionError):
    """Generation model or vocabulary could not be loaded. Fatal for the engine."""


class VocabularyError(RecognizerLoadError):
    pass


class RecognitionImageError(RecognitionError, ImageConversionError):
    pass


class RecognitionPredictionError(RecognitionError, PredictionError):
    pass


class UnexpectedModelOutput(RecognitionError):
    """Model output tensor has an unexpected shape or type."""


# Translation

class TranslationError(MangaWebError):
    """A single translation call failed."""


class GatewayUnavailableError(TranslationError):
    """The gateway could not be prepared (missing credentials, SDK, language model)."""


class GatewayNotReadyError(MangaWebError):
    """The pipeline was handed a gateway that has not been prepared."""
