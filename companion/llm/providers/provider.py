"""
LLM client abstraction supporting multiple providers
"""

import json
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger
from pydantic import BaseModel

from companion.configuration import ConfigValue
from companion.llm.errors import EmptyOutputError
from companion.llm.models import InvocationRequest
from companion.utility import Registry, strip_code_fence

SCHEMA_INSTRUCTION: str = "Respond only with a JSON object that conforms to this JSON schema:\n{schema}"


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    _registry_key: str = "undefined"

    @property
    def key(self) -> str:
        return getattr(self, "_registry_key", "undefined")

    @abstractmethod
    async def complete(self, prompt: str, roles: dict[str, str] | None = None, **kwargs) -> str:
        """Send the prompt and return the raw text of the reply.

        Recognised kwargs: model, attachments, response_schema, options and any option key.
        """

    @abstractmethod
    def get_options_keys(self) -> list[tuple[str, Any]]:
        """Return a list of supported option keys and their default values"""

    async def generate(self, request: InvocationRequest, model: str | None = None) -> BaseModel:
        """Run a single structured generation; no retries happen here."""
        schema: dict[str, Any] = request.response_model.model_json_schema()
        prompt: str = f"{request.prompt}\n\n{SCHEMA_INSTRUCTION.format(schema=json.dumps(schema))}"

        content: str = await self.complete(
            prompt,
            roles=request.roles,
            model=model,
            attachments=request.attachments,
            response_schema=schema,
        )

        text: str = strip_code_fence(content or "")
        if not text:
            raise EmptyOutputError(f"Provider '{self.key}' returned an empty response")

        logger.debug(f"Provider '{self.key}' returned {len(text)} characters")
        return request.response_model.model_validate_json(text)

    def resolve_options(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        opts: dict[str, Any] = dict(kwargs.get("options") or {})
        for k, default in self.get_options_keys():
            if k in opts:
                continue
            if k in kwargs:
                opts[k] = kwargs[k]
                continue
            opts[k] = ConfigValue(f"llm.{self.key}.options.{k},llm.options.{k}", default=default).resolve()
        return opts

    def generate_message_list(self, prompt: str, roles: dict[str, str] | None = None) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": k, "content": v} for k, v in (roles or {}).items() if k != "user"] + [
            {
                "role": "user",
                "content": prompt,
            },
        ]

        return messages


class ProviderRegistry(Registry):

    items: dict[str, type[LLMProvider]] = {}
