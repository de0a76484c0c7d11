import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from sop_fixtures import make_settings
from sop_service.utils.llm import LLM, OPENROUTER_BASE_URL


class LLMUnitTests(unittest.TestCase):
    def test_unsupported_provider(self):
        with self.assertRaises(ValueError):
            LLM(make_settings(llm_provider="google"))

    def test_file_upload_support_by_provider(self):
        self.assertTrue(LLM(make_settings()).supports_file_upload)
        self.assertFalse(LLM(make_settings(llm_provider="openrouter")).supports_file_upload)

    def test_chat_cached_per_model(self):
        with patch("sop_service.utils.llm.ChatOpenAI") as chat_cls:
            llm = LLM(make_settings())
            first = llm.create_chat()
            self.assertIs(llm.create_chat("gpt-4o-mini"), first)
            llm.create_chat("gpt-4o")

        self.assertEqual(chat_cls.call_count, 2)
        self.assertEqual(chat_cls.call_args_list[0].kwargs["model"], "gpt-4o-mini")

    def test_openrouter_base_url(self):
        with patch("sop_service.utils.llm.ChatOpenAI") as chat_cls:
            LLM(make_settings(llm_provider="openrouter", openrouter_api_key="or-key")).create_chat()
        kwargs = chat_cls.call_args.kwargs
        self.assertEqual(kwargs["openai_api_base"], OPENROUTER_BASE_URL)
        self.assertEqual(kwargs["openai_api_key"], "or-key")

    def test_generate_structured_requests_json_schema(self):
        bound = MagicMock()
        bound.ainvoke = AsyncMock(return_value=SimpleNamespace(content='{"Steps": []}'))
        with patch("sop_service.utils.llm.ChatOpenAI") as chat_cls:
            chat_cls.return_value.bind.return_value = bound
            llm = LLM(make_settings())
            text = asyncio.run(llm.generate_structured(["msg"], "manufacturing_sop", {"type": "object"}))

        self.assertEqual(text, '{"Steps": []}')
        response_format = chat_cls.return_value.bind.call_args.kwargs["response_format"]
        self.assertEqual(response_format["type"], "json_schema")
        self.assertEqual(response_format["json_schema"]["name"], "manufacturing_sop")
        bound.ainvoke.assert_awaited_once_with(["msg"])

    def test_upload_file_uses_configured_purpose(self):
        llm = LLM(make_settings(file_upload_purpose="user_data"))
        client = MagicMock()
        client.files.create = AsyncMock(return_value=SimpleNamespace(id="file-abc"))
        llm._files = client

        file_id = asyncio.run(llm.upload_file(b"%PDF", "manual.pdf", "application/pdf"))

        self.assertEqual(file_id, "file-abc")
        client.files.create.assert_awaited_once_with(
            file=("manual.pdf", b"%PDF", "application/pdf"),
            purpose="user_data",
        )


if __name__ == "__main__":
    unittest.main()
