# ahamai/tools/image.py
import logging
from typing import Any, Dict, List, Literal

import httpx
from pydantic import BaseModel, Field

from .. import config
from ..errors import ProviderError
from .base import Tool, ToolContext, error_message

logger = logging.getLogger(__name__)

EDIT_MODEL = "nano-banana"
# image endpoints run far past the default tool timeout
IMAGE_TIMEOUT = 120.0


class GenerateImageArgs(BaseModel):
    prompt: str = Field(description="The text description of the image to generate")
    model: Literal["nano-banana", "imagen-3", "imagen-3.1", "imagen-3.5"] = "imagen-3"
    size: Literal["256x256", "512x512", "1024x1024", "1792x1024", "1024x1792"] = "1024x1024"
    n: int = Field(default=1, ge=1, le=4, description="Number of images to generate")


class EditImageArgs(BaseModel):
    prompt: str = Field(description="Description of how to edit the image")
    image_url: str = Field(description="URL of the image to edit")
    size: Literal["256x256", "512x512", "1024x1024"] = "1024x1024"
    n: int = Field(default=1, ge=1, le=4, description="Number of edited images to generate")


def _auth_headers() -> Dict[str, str]:
    key = config.api_key()
    return {"Authorization": f"Bearer {key}"} if key else {}


def _images(r: httpx.Response, prompt: str, action: str) -> List[Dict[str, Any]]:
    if r.status_code != 200:
        raise ProviderError("images", f"Image {action} failed: {r.status_code}", status_code=r.status_code)
    return [
        {"url": item.get("url"), "revised_prompt": item.get("revised_prompt") or prompt}
        for item in r.json().get("data", [])
    ]


async def generate_image(client: httpx.AsyncClient, prompt: str, model: str = "imagen-3",
                         size: str = "1024x1024", n: int = 1) -> Dict[str, Any]:
    result = {"model": model, "prompt": prompt, "size": size}
    try:
        r = await client.post(
            f"{config.api_base_url()}/images/generations",
            json={"model": model, "prompt": prompt, "size": size, "n": n},
            headers=_auth_headers(),
            timeout=IMAGE_TIMEOUT,
        )
        return {"success": True, "images": _images(r, prompt, "generation"), **result}
    except Exception as e:
        logger.warning("Image generation error: %s", e)
        return {"success": False, "error": error_message(e), **result}


async def edit_image(client: httpx.AsyncClient, prompt: str, image_url: str,
                     size: str = "1024x1024", n: int = 1) -> Dict[str, Any]:
    result = {"model": EDIT_MODEL, "prompt": prompt, "original_image": image_url, "size": size}
    try:
        source = await client.get(image_url)
        if source.status_code != 200:
            raise ProviderError("images", "Failed to fetch image for editing", status_code=source.status_code)

        r = await client.post(
            f"{config.api_base_url()}/images/edits",
            data={"model": EDIT_MODEL, "prompt": prompt, "size": size, "n": str(n)},
            files={"image": ("image.png", source.content, "image/png")},
            headers=_auth_headers(),
            timeout=IMAGE_TIMEOUT,
        )
        return {"success": True, "images": _images(r, prompt, "editing"), **result}
    except Exception as e:
        logger.warning("Image editing error: %s", e)
        return {"success": False, "error": error_message(e), **result}


async def _generate(args: GenerateImageArgs, ctx: ToolContext) -> Dict[str, Any]:
    return await generate_image(ctx.client, args.prompt, args.model, args.size, args.n)


async def _edit(args: EditImageArgs, ctx: ToolContext) -> Dict[str, Any]:
    return await edit_image(ctx.client, args.prompt, args.image_url, args.size, args.n)


GENERATE_TOOL = Tool(
    name="generate_image",
    description="Generate an image from a text description (models: nano-banana, imagen-3, imagen-3.1, imagen-3.5).",
    args_model=GenerateImageArgs,
    execute=_generate,
)

EDIT_TOOL = Tool(
    name="edit_image",
    description="Edit an existing image from a text description: add or remove objects, change styles and more.",
    args_model=EditImageArgs,
    execute=_edit,
)
