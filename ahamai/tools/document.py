# ahamai/tools/document.py
import asyncio
import hashlib
import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

import httpx
from ddgs import DDGS
from pydantic import BaseModel, Field

from .. import config
from ..errors import ProviderError
from ..fallback import get_json, run_methods
from .base import Tool, ToolContext, error_message, utc_now_iso

logger = logging.getLogger(__name__)

BRAVE_URL = "https://api.search.brave.com/res/v1/web/search"
TAVILY_URL = "https://api.tavily.com/search"
ARXIV_URL = "https://export.arxiv.org/api/query"
ATOM = "{http://www.w3.org/2005/Atom}"

FileType = Literal["pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx", "all"]
Category = Literal["academic", "books", "technical", "government", "educational", "general"]

FILE_EXTENSIONS = ("pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx")

SITE_FILTERS = {
    "government": "site:.gov",
    "educational": "site:.edu",
    "technical": "(site:readthedocs.io OR site:docs.github.com OR site:developer.mozilla.org)",
}


class DocumentArgs(BaseModel):
    query: str = Field(description='Search query for documents (e.g., "machine learning research", "climate change report")')
    file_type: FileType = Field(default="pdf", description="File type to search for")
    category: Category = Field(default="general", description="Document category")
    limit: int = Field(default=20, ge=5, le=50, description="Maximum number of results to return")
    include_preview: bool = Field(default=True, description="Include a text preview of each document")
    sort_by: Literal["relevance", "date", "size", "popularity"] = Field(default="relevance")


DESCRIPTION = """Search for documents (PDF, DOC, PPT, XLS) with direct download links.
Combines web search with file type operators, site-scoped searches for government, educational
and technical documentation, and arXiv for academic papers."""


# ------------------------------
# Web Search Chain
# ------------------------------

def _ddgs_text(query: str, max_results: int) -> List[Dict[str, Any]]:
    with DDGS() as ddgs:
        return list(ddgs.text(query, max_results=max_results, safesearch="moderate"))


async def web_search(client: httpx.AsyncClient, query: str, count: int = 10) -> List[Dict[str, Any]]:
    """Brave, then Tavily (both only when a key is configured), then DuckDuckGo."""

    async def brave():
        key = config.provider_key("BRAVE_API_KEY")
        if not key:
            raise ProviderError("brave", "BRAVE_API_KEY not set")
        data = await get_json(client, BRAVE_URL, "brave", params={"q": query, "count": min(count, 20)},
                              headers={"X-Subscription-Token": key, "Accept": "application/json"})
        results = [
            {"title": item.get("title", "No Title"), "url": item.get("url", ""),
             "snippet": item.get("description", ""), "date": item.get("page_age"), "engine": "Brave"}
            for item in data.get("web", {}).get("results", [])
        ]
        if not results:
            raise ProviderError("brave", "no results")
        return results

    async def tavily():
        key = config.provider_key("TAVILY_API_KEY")
        if not key:
            raise ProviderError("tavily", "TAVILY_API_KEY not set")
        try:
            r = await client.post(TAVILY_URL, json={"api_key": key, "query": query, "max_results": count})
        except httpx.HTTPError as e:
            raise ProviderError("tavily", f"request failed: {e}") from e
        if r.status_code != 200:
            raise ProviderError("tavily", f"failed: {r.status_code}", status_code=r.status_code)
        results = [
            {"title": item.get("title", "No Title"), "url": item.get("url", ""),
             "snippet": item.get("content", ""), "date": item.get("published_date"), "engine": "Tavily"}
            for item in r.json().get("results", [])
        ]
        if not results:
            raise ProviderError("tavily", "no results")
        return results

    async def duckduckgo():
        rows = await asyncio.to_thread(_ddgs_text, query, count)
        results = [
            {"title": row.get("title", "No Title"), "url": row.get("href", ""),
             "snippet": row.get("body", ""), "date": None, "engine": "DuckDuckGo"}
            for row in rows
        ]
        if not results:
            raise ProviderError("duckduckgo", "no results")
        return results

    return await run_methods(f"web search '{query}'", [brave, tavily, duckduckgo])


# ------------------------------
# Sources
# ------------------------------

def file_type_of(url: str) -> Optional[str]:
    path = urlparse(url).path.lower()
    for ext in FILE_EXTENSIONS:
        if path.endswith(f".{ext}"):
            return ext
    return None


def make_document(url: str, title: str, snippet: str, source: str, rank: int,
                  file_type: str, date: Optional[str] = None, authors: Optional[List[str]] = None) -> Dict[str, Any]:
    detected = file_type_of(url)
    return {
        "id": hashlib.sha1(url.encode("utf-8")).hexdigest()[:12],
        "title": title.strip(),
        "url": url,
        "domain": urlparse(url).netloc.lower().removeprefix("www."),
        "fileType": (detected or (file_type if file_type != "all" else "html")).upper(),
        "directLink": detected is not None,
        "snippet": " ".join(snippet.split()),
        "source": source,
        "rank": rank,
        "publishDate": date[:10] if date else None,
        "authors": authors or [],
    }


def _filetype_query(query: str, file_type: str) -> str:
    return query if file_type == "all" else f"{query} filetype:{file_type}"


async def search_web_documents(client: httpx.AsyncClient, query: str, file_type: str, limit: int) -> List[Dict[str, Any]]:
    hits = await web_search(client, _filetype_query(query, file_type), count=min(limit, 20))
    return [make_document(h["url"], h["title"], h["snippet"], h["engine"], i, file_type, h["date"])
            for i, h in enumerate(hits) if h["url"]]


async def search_site_documents(client: httpx.AsyncClient, query: str, file_type: str, category: str) -> List[Dict[str, Any]]:
    site = SITE_FILTERS.get(category)
    if not site:
        return []
    hits = await web_search(client, f"{_filetype_query(query, file_type)} {site}", count=10)
    label = category.capitalize()
    return [make_document(h["url"], h["title"], h["snippet"], f"{label} ({h['engine']})", i, file_type, h["date"])
            for i, h in enumerate(hits) if h["url"]]


def parse_arxiv(feed: str) -> List[Dict[str, Any]]:
    root = ET.fromstring(feed)
    papers = []
    for i, entry in enumerate(root.findall(f"{ATOM}entry")):
        pdf = next((link.get("href") for link in entry.findall(f"{ATOM}link") if link.get("title") == "pdf"), None)
        url = pdf or entry.findtext(f"{ATOM}id", "")
        if not url:
            continue
        authors = [a.findtext(f"{ATOM}name", "") for a in entry.findall(f"{ATOM}author")]
        doc = make_document(
            url,
            " ".join(entry.findtext(f"{ATOM}title", "").split()),
            entry.findtext(f"{ATOM}summary", ""),
            "arXiv",
            i,
            "pdf",
            entry.findtext(f"{ATOM}published"),
            authors,
        )
        # arXiv pdf links have no extension
        doc["directLink"] = pdf is not None
        doc["fileType"] = "PDF"
        papers.append(doc)
    return papers


async def search_arxiv(client: httpx.AsyncClient, query: str, file_type: str, category: str, limit: int) -> List[Dict[str, Any]]:
    if category not in ("academic", "general") or file_type not in ("pdf", "all"):
        return []
    try:
        r = await client.get(ARXIV_URL, params={"search_query": f"all:{query}", "start": 0, "max_results": min(limit, 20)},
                             headers={"Accept": "application/atom+xml"})
    except httpx.HTTPError as e:
        raise ProviderError("arxiv", f"request failed: {e}") from e
    if r.status_code != 200:
        raise ProviderError("arxiv", f"failed: {r.status_code}", status_code=r.status_code)
    try:
        return parse_arxiv(r.text)
    except ET.ParseError as e:
        raise ProviderError("arxiv", "bad Atom feed") from e


async def _safe(label: str, coro) -> List[Dict[str, Any]]:
    try:
        return await coro
    except Exception as e:
        logger.info("Document source %s returned nothing: %s", label, e)
        return []


# ------------------------------
# Post-processing
# ------------------------------

def deduplicate(documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen_urls, seen_titles = set(), set()
    unique = []
    for doc in documents:
        title_key = (doc["title"].lower(), doc["domain"])
        if doc["url"] in seen_urls or title_key in seen_titles:
            continue
        seen_urls.add(doc["url"])
        seen_titles.add(title_key)
        unique.append(doc)
    return unique


def sort_documents(documents: List[Dict[str, Any]], sort_by: str) -> List[Dict[str, Any]]:
    if sort_by == "date":
        dated = sorted((d for d in documents if d["publishDate"]), key=lambda d: d["publishDate"], reverse=True)
        return dated + [d for d in documents if not d["publishDate"]]
    if sort_by == "popularity":
        return sorted(documents, key=lambda d: d["rank"])
    # relevance (and size, which no source reports): direct file links first, source order otherwise
    return sorted(documents, key=lambda d: not d["directLink"])


def add_previews(documents: List[Dict[str, Any]]) -> None:
    for doc in documents:
        doc["preview"] = {"available": bool(doc["snippet"]), "text": doc["snippet"][:300]}


def recommendations(documents: List[Dict[str, Any]]) -> List[str]:
    recs = []
    if not documents:
        return ["No documents found - try broader keywords or file type 'all'"]
    if any(d["source"] == "arXiv" for d in documents):
        recs.append("Academic papers found - arXiv PDFs are freely downloadable")
    if any(d["fileType"] == "PDF" for d in documents):
        recs.append("PDF documents available for offline reading")
    if any(d["directLink"] for d in documents):
        recs.append("Direct download links point straight at the file")
    if len(documents) > 15:
        recs.append("Many results found - use filters to narrow search")
    return recs


def generate_analysis(query: str, documents: List[Dict[str, Any]], file_type: str, category: str) -> Dict[str, Any]:
    total = len(documents)
    direct = sum(1 for d in documents if d["directLink"])
    dates = sorted(d["publishDate"] for d in documents if d["publishDate"])
    top_sources = list(dict.fromkeys(d["source"] for d in documents))[:5]
    return {
        "summary": f'Found {total} {file_type.upper()} documents for "{query}" with {direct} direct download links',
        "metrics": {
            "totalResults": total,
            "directLinks": direct,
            "topSources": top_sources,
            "categories": [category],
            "newestDocument": dates[-1] if dates else None,
            "oldestDocument": dates[0] if dates else None,
        },
        "recommendations": recommendations(documents),
        "qualityScore": round(direct / total * 100) if total else 0,
    }


async def execute(args: DocumentArgs, ctx: ToolContext) -> Dict[str, Any]:
    logger.info("Searching documents for: %s", args.query)
    try:
        batches = await asyncio.gather(
            _safe("web", search_web_documents(ctx.client, args.query, args.file_type, args.limit)),
            _safe("site", search_site_documents(ctx.client, args.query, args.file_type, args.category)),
            _safe("arxiv", search_arxiv(ctx.client, args.query, args.file_type, args.category, args.limit)),
        )
        documents = deduplicate([doc for batch in batches for doc in batch])
        documents = sort_documents(documents, args.sort_by)[: args.limit]
        if args.include_preview:
            add_previews(documents)

        return {
            "type": "document",
            "query": args.query,
            "fileType": args.file_type,
            "category": args.category,
            "sortBy": args.sort_by,
            "totalFound": len(documents),
            "documents": documents,
            "analysis": generate_analysis(args.query, documents, args.file_type, args.category),
            "sources": list(dict.fromkeys(d["source"] for d in documents)),
            "timestamp": utc_now_iso(),
            "status": "success",
        }
    except Exception as e:
        logger.warning("Document search error: %s", e)
        return {
            "type": "document",
            "query": args.query,
            "error": f"Failed to search documents: {error_message(e)}",
            "timestamp": utc_now_iso(),
            "status": "error",
        }


TOOL = Tool(name="document", description=DESCRIPTION, args_model=DocumentArgs, execute=execute)
