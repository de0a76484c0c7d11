"""LangChain-based LLM abstraction with structured output and file uploads."""

from typing import Any

import structlog
from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI
from openai import AsyncOpenAI

from sop_service.config import Settings

logger = structlog.get_logger()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

SUPPORTED_PROVIDERS = ("openai", "openrouter")


class LLM:
    """Wrapper around LangChain supporting OpenAI and OpenRouter."""

    def __init__(self, settings: Settings):
        """Initialize the LLM with settings."""
        self.settings = settings
        self.provider = settings.llm_provider.lower()
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported LLM provider: {self.provider}")
        self._chats: dict[str, Any] = {}
        self._files: AsyncOpenAI | None = None

    @property
    def supports_file_upload(self) -> bool:
        """Whether the provider exposes a file store (OpenRouter does not)."""
        return self.provider == "openai"

    def create_chat(self, model: str | None = None) -> Any:
        """Create or return cached chat model instance for a model id."""
        model = model or self.settings.llm_model
        if model in self._chats:
            return self._chats[model]

        if self.provider == "openrouter":
            chat = ChatOpenAI(
                model=model,
                openai_api_key=self.settings.openrouter_api_key,
                openai_api_base=OPENROUTER_BASE_URL,
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_tokens,
                default_headers={
                    "HTTP-Referer": "http://localhost:8000",
                    "X-Title": "SOP Generator",
                },
            )
        else:
            chat = ChatOpenAI(
                model=model,
                openai_api_key=self.settings.openai_api_key,
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_tokens,
            )

        logger.info("llm_initialized", provider=self.provider, model=model)
        self._chats[model] = chat
        return chat

    @property
    def files(self) -> AsyncOpenAI:
        """Get or create the OpenAI client used for the file store."""
        if self._files is None:
            self._files = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._files

    async def upload_file(self, content: bytes, filename: str, mime: str) -> str:
        """Upload binary content to the provider file store.

        Returns:
            The provider file id
        """
        uploaded = await self.files.files.create(
            file=(filename, content, mime),
            purpose=self.settings.file_upload_purpose,
        )
        logger.info("file_uploaded", filename=filename, mime=mime, file_id=uploaded.id)
        return uploaded.id

    async def generate_structured(
        self,
        messages: list[BaseMessage],
        schema_name: str,
        schema: dict[str, Any],
        model: str | None = None,
    ) -> str:
        """Generate a response constrained to a JSON Schema.

        The raw text is returned unmodified; parsing is left to the caller.
        """
        chat = self.create_chat(model).bind(
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema},
            }
        )
        response = await chat.ainvoke(messages)
        return response.content
