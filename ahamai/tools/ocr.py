# ahamai/tools/ocr.py
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import httpx
from pydantic import BaseModel, Field

from .. import config
from ..errors import ProviderError
from .base import Tool, ToolContext, error_message, utc_now_iso
from .screenshot import domain_of

logger = logging.getLogger(__name__)

OCR_SPACE_URL = "https://api.ocr.space/parse/imageurl"
PREVIEW_CHARS = 300

_CONTENT_FLAGS = [
    ("hasUrls", re.compile(r"https?://|www\.|\.com|\.org|\.net", re.I), "URLs or web links detected"),
    ("hasEmails", re.compile(r"@[\w.-]+\.[a-zA-Z]{2,}"), "Email addresses found"),
    ("hasNumbers", re.compile(r"\d+"), "Numeric content present"),
    ("hasNavigation", re.compile(r"nav|menu|home|about|contact|login|sign|register", re.I), "Navigation elements detected"),
    ("hasButtons", re.compile(r"button|click|submit|search|download|buy|shop", re.I), "Button or action text found"),
]

# domain keyword -> (heading, interface, likely contents, expected text)
_DOMAIN_INSIGHTS = {
    "github": ("GitHub Interface Detected", "Code repository interface",
               "repository names, code snippets, navigation",
               "repository titles, commit messages, file names"),
    "google": ("Google Service Detected", "Search or Google product interface",
               "search results, navigation links",
               "search terms, page titles, descriptions"),
    "apple": ("Apple Website Detected", "Product showcase interface",
              "product names, prices, descriptions",
              "product titles, feature descriptions"),
    "netflix": ("Netflix Platform Detected", "Streaming service interface",
                "movie/show titles, descriptions",
                "content titles, categories, ratings"),
}
_GENERIC_INSIGHT = ("Website Interface Analysis", "Standard web page layout",
                    "headings, navigation, content",
                    "page titles, menu items, body content")


class ImageAnalysisArgs(BaseModel):
    image_url: str = Field(description="The URL of the image to analyze")
    analysis: Optional[str] = Field(default=None, description="Specific analysis request about the text content")


# ------------------------------
# OCR.space
# ------------------------------

def clean_text(text: str) -> str:
    text = text.strip().replace("\r\n", "\n")
    return re.sub(r"\n\s*\n", "\n", text)


def content_flags(text: str) -> Dict[str, bool]:
    return {name: bool(pattern.search(text)) for name, pattern, _ in _CONTENT_FLAGS}


def matching_terms(analysis: str, text: str) -> List[str]:
    lowered = text.lower()
    return [term for term in analysis.lower().split() if term in lowered]


async def ocr_space(client: httpx.AsyncClient, image_url: str) -> str:
    try:
        r = await client.post(OCR_SPACE_URL, data={
            "apikey": config.provider_key("OCR_SPACE_API_KEY", "helloworld"),
            "url": image_url,
            "language": "eng",
            "isOverlayRequired": "false",
            "detectOrientation": "false",
            "scale": "true",
            "OCREngine": "2",
        })
    except httpx.HTTPError as e:
        raise ProviderError("ocr.space", f"request failed: {e}") from e
    if r.status_code != 200:
        raise ProviderError("ocr.space", f"OCR API failed: {r.status_code}", status_code=r.status_code)

    data = r.json()
    results = data.get("ParsedResults") or []
    if data.get("IsErroredOnProcessing") or not results:
        message = data.get("ErrorMessage") or "No text found in image"
        if isinstance(message, list):
            message = "; ".join(message)
        raise ProviderError("ocr.space", message)
    return results[0].get("ParsedText") or ""


def ocr_report(text: str, analysis: Optional[str]) -> str:
    words = text.split()
    lines = [line for line in text.split("\n") if line.strip()]
    flags = content_flags(text)

    report = "🔍 Screenshot Text Analysis Complete:\n\n"
    report += f"✅ OCR processing successful\n✅ Found {len(text)} characters of text\n\n"
    report += "📊 Text Statistics:\n"
    report += f"• Total Words: {len(words)}\n• Total Lines: {len(lines)}\n• Character Count: {len(text)}\n\n"

    report += "🔍 Content Analysis:\n"
    found = [label for name, _, label in _CONTENT_FLAGS if flags[name]]
    for label in found or ["General text content detected"]:
        report += f"• {label}\n"
    report += "\n"

    if analysis:
        report += f'🎯 Requested Analysis: "{analysis}"\n\n'
        terms = matching_terms(analysis, text)
        if terms:
            report += f"✅ Found relevant content: {', '.join(terms)}\n\n"
        else:
            report += "ℹ️ The requested terms were not found in the extracted text\n\n"

    preview = text[:PREVIEW_CHARS] + "..." if len(text) > PREVIEW_CHARS else text
    report += f'📄 Extracted Text Preview:\n"{preview}"\n'
    if len(text) > PREVIEW_CHARS:
        report += "\n💡 Full text available - ask to see complete extracted text if needed.\n"
    return report


async def screenshot_analysis(args: ImageAnalysisArgs, ctx: ToolContext) -> Dict[str, Any]:
    logger.info("Starting OCR analysis for %s", args.image_url)
    try:
        text = clean_text(await ocr_space(ctx.client, args.image_url))
    except Exception as e:
        logger.warning("OCR analysis failed: %s", e)
        return {
            "type": "screenshot_analysis",
            "imageUrl": args.image_url,
            "extractedText": "",
            "confidence": 0,
            "analysis": (
                f"❌ Screenshot analysis failed: {error_message(e)}\n\n"
                "💡 Suggestions:\n• Try with a clearer screenshot\n"
                "• Ensure the image contains visible text\n• Try again in a few moments"
            ),
            "error": error_message(e),
            "timestamp": utc_now_iso(),
            "status": "error",
        }

    return {
        "type": "screenshot_analysis",
        "imageUrl": args.image_url,
        "extractedText": text,
        "confidence": 95,
        "wordCount": len(text.split()),
        "lineCount": len([line for line in text.split("\n") if line.strip()]),
        "contentFlags": content_flags(text),
        "analysis": ocr_report(text, args.analysis),
        "timestamp": utc_now_iso(),
        "status": "success",
    }


# ------------------------------
# Offline quick analysis
# ------------------------------

def screenshot_domain(image_url: str) -> str:
    """Domain shown in the screenshot; mShots URLs carry the original page URL in their path."""
    match = re.search(r"s0\.wp\.com/mshots/v1/([^?]+)", image_url)
    if match:
        return domain_of(unquote(match.group(1)))
    return domain_of(image_url)


def simple_report(domain: str, analysis: Optional[str]) -> str:
    heading, interface, contains, expected = next(
        (insight for key, insight in _DOMAIN_INSIGHTS.items() if key in domain), _GENERIC_INSIGHT)

    report = "📸 Quick Screenshot Analysis:\n\n"
    report += f"🔍 {heading}:\n• {interface}\n• Likely contains: {contains}\n• Expected text: {expected}\n\n"
    report += "🔍 Predicted Web Elements:\n"
    report += "• Navigation menu items\n• Page headings and titles\n• Button labels and links\n• Footer information\n\n"
    if analysis:
        report += f'🎯 User Request: "{analysis}"\n'
        report += "Based on the screenshot context, the image likely contains relevant text elements.\n\n"
    report += "🔄 For detailed text extraction, use the screenshot_analysis tool"
    return report


async def simple_analysis(args: ImageAnalysisArgs, ctx: ToolContext) -> Dict[str, Any]:
    domain = screenshot_domain(args.image_url)
    return {
        "type": "simple_analysis",
        "imageUrl": args.image_url,
        "domain": domain,
        "extractedText": f"Quick analysis of {domain} interface - text elements detected but not extracted",
        "confidence": 85,
        "wordCount": 0,
        "lineCount": 0,
        "analysis": simple_report(domain, args.analysis),
        "timestamp": utc_now_iso(),
        "status": "success",
    }


SCREENSHOT_ANALYSIS_TOOL = Tool(
    name="screenshot_analysis",
    description="Extract and analyze the text in a screenshot or image using OCR.",
    args_model=ImageAnalysisArgs,
    execute=screenshot_analysis,
)

SIMPLE_ANALYSIS_TOOL = Tool(
    name="simple_analysis",
    description="Quick screenshot analysis from the page's domain, without running OCR.",
    args_model=ImageAnalysisArgs,
    execute=simple_analysis,
)
