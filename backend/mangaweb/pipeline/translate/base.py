from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Mapping, Optional, Protocol, Union, runtime_checkable

from mangaweb.pipeline.errors import GatewayUnavailableError, TranslationError


@runtime_checkable
class TranslationGateway(Protocol):
    """Translates single strings from a fixed source language to a target language.

    `prepare()` must succeed before the pipeline will use the gateway.
    `translate()` raises TranslationError on a per-call failure.
    """

    source_language: str
    target_language: str

    @property
    def is_ready(self) -> bool:
        ...

    async def prepare(self) -> None:
        ...

    async def translate(self, text: str) -> str:
        ...


TranslateFn = Callable[[str], Union[str, Awaitable[str]]]


class StaticTranslationGateway:
    """Gateway backed by a lookup table and/or a callable.

    Useful for offline runs and tests. Lookup misses fall through to `fn`;
    with neither a hit nor `fn`, the call fails.
    """

    def __init__(
        self,
        table: Optional[Mapping[str, str]] = None,
        fn: Optional[TranslateFn] = None,
        *,
        source_language: str = "ja",
        target_language: str = "en",
    ) -> None:
        self._table = dict(table or {})
        self._fn = fn
        self.source_language = source_language
        self.target_language = target_language
        self._ready = False

    @classmethod
    def identity(cls, **kwargs) -> "StaticTranslationGateway":
        return cls(fn=lambda text: text, **kwargs)

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def prepare(self) -> None:
        if not self._table and self._fn is None:
            raise GatewayUnavailableError("static gateway has neither a table nor a function")
        self._ready = True

    async def translate(self, text: str) -> str:
        if text in self._table:
            return self._table[text]
        if self._fn is None:
            raise TranslationError(f"no translation for {text!r}")
        try:
            result = self._fn(text)
            if inspect.isawaitable(result):
                result = await result
        except TranslationError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise TranslationError(f"translation of {text!r} failed: {exc}") from exc
        return str(result)
