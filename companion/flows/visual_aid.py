"""Chalkboard-friendly visual aids, generated as SVG and returned as data URIs"""

import asyncio
import base64

from pydantic import BaseModel, ConfigDict, Field

from companion.llm import EmptyOutputError, ResilientInvoker

from .base import render_prompt, run_flow


class VisualAidInput(BaseModel):
    description: str = Field(..., min_length=1, description="A description of the visual aid to generate.")


class VisualAidSvg(BaseModel):
    svg: str = Field(
        default="",
        description="A complete SVG document string (starting with <svg ...>) representing a simple black-and-white line drawing or chart.",
    )


class VisualAidOutput(BaseModel):
    visual_aid_data_uri: str = Field(..., alias="visualAidDataUri", description="SVG data URI, base64 encoded")

    model_config = ConfigDict(populate_by_name=True)


def svg_to_data_uri(svg: str) -> str:
    encoded: str = base64.b64encode(svg.strip().encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


async def generate_visual_aid(
    data: VisualAidInput,
    *,
    invoker: ResilientInvoker | None = None,
    cancel: asyncio.Event | None = None,
) -> VisualAidOutput:
    prompt: str = render_prompt("visual_aid", description=data.description)
    output: VisualAidSvg = await run_flow("visual_aid", prompt, VisualAidSvg, invoker=invoker, cancel=cancel)

    if "<svg" not in (output.svg or "").lower():
        raise EmptyOutputError("Model returned no SVG output.")

    return VisualAidOutput(visual_aid_data_uri=svg_to_data_uri(output.svg))
