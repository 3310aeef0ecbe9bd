from typing import Any

from openai import AsyncOpenAI
from openai.types.chat.chat_completion import ChatCompletion

from companion.configuration import ConfigValue

from . import Providers
from .provider import LLMProvider


@Providers.register(key="openai")
class OpenAIProvider(LLMProvider):
    """OpenAI API provider"""

    def __init__(self, api_key: str | None = None, model: str | None = None, base_url: str | None = None) -> None:

        api_key = api_key or ConfigValue(f"llm.{self.key}.api_key").resolve() or ""
        base_url = base_url or ConfigValue(f"llm.{self.key}.base_url").resolve() or None
        self.model: str = model or ConfigValue(f"llm.{self.key}.model").resolve() or ""
        self.timeout: float = float(ConfigValue(f"llm.{self.key}.timeout", default=60).resolve())

        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=self.timeout)

    async def complete(self, prompt: str, roles: dict[str, str] | None = None, **kwargs) -> str:
        messages: list[dict[str, Any]] = self.generate_message_list(prompt, roles)

        attachments = kwargs.get("attachments") or []
        if attachments:
            messages[-1]["content"] = [{"type": "text", "text": prompt}] + [
                {"type": "image_url", "image_url": {"url": attachment.as_data_uri()}} for attachment in attachments
            ]

        opts: dict[str, Any] = self.resolve_options(kwargs)
        if kwargs.get("response_schema") is not None:
            opts["response_format"] = {"type": "json_object"}

        response: ChatCompletion = await self.client.chat.completions.create(
            model=kwargs.get("model") or self.model, messages=messages, **opts
        )  # type: ignore
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def get_options_keys(self) -> list[tuple[str, Any]]:
        return [("temperature", 0.1), ("max_tokens", 4048)]
