from __future__ import annotations

import asyncio
import unittest
from types import SimpleNamespace

from mangaweb.core.config import Settings
from mangaweb.pipeline.errors import GatewayUnavailableError, TranslationError
from mangaweb.pipeline.translate import (
    GeminiTranslationGateway,
    StaticTranslationGateway,
    TranslationGateway,
    create_gateway,
)
from mangaweb.pipeline.translate.gemini import TranslationResult


class _FakeModels:
    def __init__(self, response=None, error: Exception = None) -> None:
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _client(models: _FakeModels):
    return SimpleNamespace(aio=SimpleNamespace(models=models))


class TestStaticGateway(unittest.TestCase):
    def test_table_then_function(self) -> None:
        gateway = StaticTranslationGateway({"はい": "Yes"}, fn=lambda t: f"<{t}>")
        self.assertFalse(gateway.is_ready)
        asyncio.run(gateway.prepare())
        self.assertTrue(gateway.is_ready)
        self.assertIsInstance(gateway, TranslationGateway)

        self.assertEqual(asyncio.run(gateway.translate("はい")), "Yes")
        self.assertEqual(asyncio.run(gateway.translate("いいえ")), "<いいえ>")

    def test_async_function(self) -> None:
        async def shout(text: str) -> str:
            return text.upper()

        gateway = StaticTranslationGateway(fn=shout)
        self.assertEqual(asyncio.run(gateway.translate("abc")), "ABC")

    def test_miss_without_function_and_failing_function(self) -> None:
        with self.assertRaises(TranslationError):
            asyncio.run(StaticTranslationGateway({"a": "b"}).translate("zzz"))

        def broken(text: str) -> str:
            raise RuntimeError("offline")

        with self.assertRaises(TranslationError):
            asyncio.run(StaticTranslationGateway(fn=broken).translate("x"))

    def test_prepare_needs_something_to_translate_with(self) -> None:
        with self.assertRaises(GatewayUnavailableError):
            asyncio.run(StaticTranslationGateway().prepare())

    def test_identity(self) -> None:
        gateway = StaticTranslationGateway.identity(target_language="fr")
        asyncio.run(gateway.prepare())
        self.assertEqual(gateway.target_language, "fr")
        self.assertEqual(asyncio.run(gateway.translate("そのまま")), "そのまま")


class TestGeminiGateway(unittest.TestCase):
    def test_parsed_response(self) -> None:
        models = _FakeModels(SimpleNamespace(parsed=TranslationResult(translated_text="  Hello!  "), text=None))
        gateway = GeminiTranslationGateway("key", "en", client=_client(models))
        asyncio.run(gateway.prepare())

        self.assertEqual(asyncio.run(gateway.translate("こんにちは")), "Hello!")
        call = models.calls[0]
        self.assertEqual(call["model"], "gemini-2.0-flash")
        self.assertIn("こんにちは", call["contents"])
        self.assertIn("English", call["contents"])
        self.assertEqual(call["config"]["response_mime_type"], "application/json")

    def test_falls_back_to_response_text(self) -> None:
        models = _FakeModels(SimpleNamespace(parsed=None, text='{"translated_text": "Merci"}'))
        gateway = GeminiTranslationGateway(None, "fr", client=_client(models))
        asyncio.run(gateway.prepare())
        self.assertEqual(asyncio.run(gateway.translate("ありがとう")), "Merci")
        self.assertIn("French", models.calls[0]["contents"])

    def test_bad_or_empty_responses_are_translation_errors(self) -> None:
        for response in (
            SimpleNamespace(parsed=None, text="not json"),
            SimpleNamespace(parsed=None, text=None),
            SimpleNamespace(parsed=TranslationResult(translated_text="   "), text=None),
        ):
            gateway = GeminiTranslationGateway("key", client=_client(_FakeModels(response)))
            asyncio.run(gateway.prepare())
            with self.assertRaises(TranslationError):
                asyncio.run(gateway.translate("x"))

    def test_client_failure_is_a_translation_error(self) -> None:
        gateway = GeminiTranslationGateway("key", client=_client(_FakeModels(error=RuntimeError("429"))))
        asyncio.run(gateway.prepare())
        with self.assertRaises(TranslationError):
            asyncio.run(gateway.translate("x"))

    def test_translate_before_prepare_fails(self) -> None:
        gateway = GeminiTranslationGateway("key", client=_client(_FakeModels()))
        self.assertFalse(gateway.is_ready)
        with self.assertRaises(TranslationError):
            asyncio.run(gateway.translate("x"))

    def test_prepare_without_key_is_unavailable(self) -> None:
        gateway = GeminiTranslationGateway(None)
        with self.assertRaises(GatewayUnavailableError):
            asyncio.run(gateway.prepare())
        self.assertFalse(gateway.is_ready)

    def test_unsupported_target_language(self) -> None:
        with self.assertRaises(ValueError):
            GeminiTranslationGateway("key", "tlh")

    def test_create_gateway_uses_settings(self) -> None:
        settings = Settings(google_api_key="k", target_language="de", gemini_model="gemini-x")
        gateway = create_gateway(settings)
        self.assertIsInstance(gateway, GeminiTranslationGateway)
        self.assertEqual(gateway.target_language, "de")
        self.assertEqual(gateway.source_language, "ja")
        self.assertEqual(create_gateway(settings, "ko").target_language, "ko")


if __name__ == "__main__":
    unittest.main()
