# ahamai/tools/screenshot.py
import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, urlparse

import httpx
from pydantic import BaseModel, Field

from .. import config
from ..errors import ProviderError
from ..fallback import run_methods
from .base import Tool, ToolContext, error_message, utc_now_iso

logger = logging.getLogger(__name__)

CAPTURE_TIMEOUT = 30.0

MSHOTS_URL = "https://s0.wp.com/mshots/v1/{target}?w={width}&h={height}"
HCTI_DEMO_URL = "https://htmlcsstoimage.com/demo_run"
SCREENSHOTMACHINE_URL = "https://api.screenshotmachine.com/"
THUMBNAIL_WS_URL = "https://api.thumbnail.ws/api/thumbnail/screenshot"


class InvalidURL(ValueError):
    pass


class ScreenshotArgs(BaseModel):
    url: str = Field(description="The URL of the website to screenshot")
    width: int = Field(default=1200, description="Screenshot width in pixels")
    height: int = Field(default=800, description="Screenshot height in pixels")
    full_page: bool = Field(default=False, description="Capture the full page instead of the viewport")
    wait_for: int = Field(default=2000, description="Time to wait for page load in milliseconds")
    analysis: Optional[str] = Field(default=None, description="Specific analysis request about the screenshot")


DESCRIPTION = """Take a fast screenshot of a website for visual inspection.
Use it to capture how a site looks or its layout. For text extraction, run the
screenshot_analysis tool on the returned image URL afterwards."""


def validate_url(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    parsed = urlparse(url)
    if not parsed.netloc or " " in parsed.netloc or "." not in parsed.netloc:
        raise InvalidURL(f"Invalid URL format: {url}")
    return url


def domain_of(url: str) -> str:
    host = urlparse(url if "://" in url else f"https://{url}").hostname or ""
    return host.lower().removeprefix("www.") or "website"


async def capture(client: httpx.AsyncClient, url: str, width: int, height: int, wait_for: int) -> str:
    """Return an image URL for the page, trying each capture service in turn."""
    target = quote(url, safe="")

    async def mshots():
        shot = MSHOTS_URL.format(target=target, width=width, height=height)
        r = await client.head(shot)
        if r.status_code >= 400:
            raise ProviderError("mshots", f"failed: {r.status_code}", status_code=r.status_code)
        return shot

    async def htmlcsstoimage():
        r = await client.post(HCTI_DEMO_URL, json={
            "html": f'<iframe src="{url}" width="{width}" height="{height}" frameborder="0"></iframe>',
            "css": f"iframe {{ width: {width}px; height: {height}px; }}",
            "selector": "iframe",
            "ms_delay": wait_for,
            "device_scale": 1,
            "viewport_width": width,
            "viewport_height": height,
        })
        if r.status_code != 200:
            raise ProviderError("htmlcsstoimage", f"failed: {r.status_code}", status_code=r.status_code)
        image_url = r.json().get("url")
        if not image_url:
            raise ProviderError("htmlcsstoimage", "no image url in response")
        return image_url

    async def screenshotmachine():
        key = config.provider_key("SCREENSHOTMACHINE_API_KEY", "demo")
        shot = str(httpx.URL(SCREENSHOTMACHINE_URL, params={
            "key": key, "url": url, "dimension": f"{width}x{height}", "format": "png", "cacheLimit": 0,
        }))
        r = await client.head(shot)
        if r.status_code != 200:
            raise ProviderError("screenshotmachine", f"failed: {r.status_code}", status_code=r.status_code)
        return shot

    async def thumbnail_ws():
        return str(httpx.URL(THUMBNAIL_WS_URL, params={
            "url": url, "width": width, "height": height, "format": "png",
        }))

    return await run_methods(f"screenshot {url}", [mshots, htmlcsstoimage, screenshotmachine, thumbnail_ws])


async def execute(args: ScreenshotArgs, ctx: ToolContext) -> Dict[str, Any]:
    try:
        url = validate_url(args.url)
    except InvalidURL:
        return {
            "type": "screenshot",
            "url": args.url,
            "error": "Invalid URL provided. Please provide a valid website URL.",
            "timestamp": utc_now_iso(),
            "status": "error",
        }

    logger.info("Capturing screenshot for URL: %s", url)
    try:
        screenshot_url = await asyncio.wait_for(
            capture(ctx.client, url, args.width, args.height, args.wait_for),
            timeout=CAPTURE_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.warning("Screenshot of %s timed out", url)
        return {
            "type": "screenshot",
            "url": url,
            "error": f"Screenshot operation timed out after {CAPTURE_TIMEOUT:.0f} seconds",
            "timestamp": utc_now_iso(),
            "status": "error",
        }
    except Exception as e:
        logger.warning("Screenshot capture failed for %s: %s", url, e)
        return {
            "type": "screenshot",
            "url": url,
            "error": error_message(e),
            "timestamp": utc_now_iso(),
            "status": "error",
        }

    return {
        "type": "screenshot",
        "url": url,
        "screenshotUrl": screenshot_url,
        "width": args.width,
        "height": args.height,
        "fullPage": args.full_page,
        "ocrText": f"Screenshot captured: {domain_of(url)}",
        "analysis": f"📸 Screenshot captured successfully from {url}",
        "timestamp": utc_now_iso(),
        "status": "success",
    }


TOOL = Tool(name="screenshot", description=DESCRIPTION, args_model=ScreenshotArgs, execute=execute)
