"""Shared plumbing for AI flows: prompt templates, candidate models and invocation"""

import asyncio
from typing import Any, TypeVar

from jinja2 import BaseLoader, Environment, StrictUndefined
from loguru import logger
from pydantic import BaseModel

from companion.configuration import ConfigValue
from companion.llm import Attachment, InvocationRequest, ResilientInvoker
from companion.utility import load_resource_yaml

JINJA = Environment(loader=BaseLoader(), autoescape=False, undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True)

M = TypeVar("M", bound=BaseModel)


def get_prompt_template(name: str) -> str:
    """Template from `prompts.<name>` in config, else from the packaged prompts resource"""
    template: str | None = ConfigValue(f"prompts.{name}").resolve()
    if not template:
        template = (load_resource_yaml("prompts") or {}).get(name)
    if not template:
        raise ValueError(f"No prompt template named '{name}'")
    return template


def render_prompt(name: str, **kwargs: Any) -> str:
    prompt: str = JINJA.from_string(get_prompt_template(name)).render(**kwargs)
    logger.debug(f"Rendered prompt '{name}' ({len(prompt)} characters)")
    return prompt.strip()


def candidate_models(flow: str) -> list[str | None]:
    """Candidate model identifiers for a flow; None stands for the provider default"""
    models: Any = ConfigValue(f"flows.{flow}.models,llm.models").resolve()
    if not models:
        return [None]
    if isinstance(models, str):
        models = models.split(",")
    return [(m.strip() if isinstance(m, str) else m) or None for m in models]


async def run_flow(
    flow: str,
    prompt: str,
    response_model: type[M],
    *,
    attachments: list[Attachment] | None = None,
    invoker: ResilientInvoker | None = None,
    cancel: asyncio.Event | None = None,
) -> M:
    request: InvocationRequest = InvocationRequest(
        prompt=prompt,
        response_model=response_model,
        attachments=attachments or [],
        models=candidate_models(flow),
        roles=ConfigValue(f"flows.{flow}.roles").resolve() or {},
    )
    logger.info(f"Running flow '{flow}' with candidates {[m or 'default' for m in request.models]}")
    return await (invoker or ResilientInvoker()).invoke(request, cancel=cancel)
