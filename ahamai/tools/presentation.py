# ahamai/tools/presentation.py
import html
import logging
import time
from string import Template
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import quote

from pydantic import BaseModel, Field

from .base import Tool, ToolContext, error_message

logger = logging.getLogger(__name__)

REVEAL_CDN = "https://cdnjs.cloudflare.com/ajax/libs/reveal.js/4.3.1"
HIGHLIGHT_CSS = "https://cdnjs.cloudflare.com/ajax/libs/highlight.js/11.8.0/styles/default.min.css"

Theme = Literal["black", "white", "league", "beige", "sky", "night", "serif", "simple", "solarized", "blood", "moon"]
Transition = Literal["none", "fade", "slide", "convex", "concave", "zoom"]
Layout = Literal["title", "content", "two-column", "image", "quote", "blank"]

INSTRUCTIONS = [
    "Click the download button to save the presentation as an HTML file",
    "Open the HTML file in any modern web browser",
    "Use arrow keys or space to navigate slides",
    "Press ESC for slide overview",
    "Press S for speaker notes view",
    "Press F for fullscreen mode",
]


class Slide(BaseModel):
    title: str = Field(description="Title of the slide")
    content: str = Field(description="Content of the slide (supports markdown)")
    layout: Layout = Field(default="content", description="Layout type for the slide")
    background: Optional[str] = Field(default=None, description="Background color, gradient, or image URL")
    notes: Optional[str] = Field(default=None, description="Speaker notes for the slide")


class PresentationArgs(BaseModel):
    title: str = Field(description="Title of the presentation")
    subtitle: Optional[str] = None
    author: Optional[str] = None
    theme: Theme = "white"
    transition: Transition = "slide"
    slides: List[Slide] = Field(description="Slides in the presentation")
    include_progress: bool = True
    include_controls: bool = True
    auto_slide: Optional[int] = Field(default=None, description="Auto-advance slides after N milliseconds")


DESCRIPTION = """Generate interactive HTML presentations with Reveal.js.
Slide layouts: title, content, two-column (split content with |||), image, quote, blank.
Themes: black, white, league, beige, sky, night, serif, simple, solarized, blood, moon.
Transitions: none, fade, slide, convex, concave, zoom. Content supports markdown and speaker notes."""


_DOCUMENT = Template("""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>$title</title>

    <link rel="stylesheet" href="$cdn/reveal.min.css">
    <link rel="stylesheet" href="$cdn/theme/$theme.min.css">
    <link rel="stylesheet" href="$highlight_css">

    <style>
        .reveal .slides section {
            text-align: left;
            padding: 60px;
            box-sizing: border-box;
            display: flex;
            flex-direction: column;
            justify-content: center;
        }
        .reveal h1, .reveal h2, .reveal h3 {
            text-align: center;
            text-transform: none;
            line-height: 1.2;
        }
        .reveal p, .reveal li {
            font-size: 1.8em;
            line-height: 1.4;
        }
        .reveal .title-slide, .reveal .quote-slide, .reveal .image-slide {
            text-align: center;
        }
        .reveal .two-column {
            display: flex;
            justify-content: space-between;
            align-items: flex-start;
        }
        .reveal .two-column .column {
            width: 48%;
            padding: 0 20px;
        }
        .reveal .quote-slide blockquote {
            font-style: italic;
            font-size: 2.2em;
            padding: 20px;
            border-left: 5px solid #ccc;
        }
        .reveal .image-slide img {
            max-width: 80%;
            max-height: 60vh;
            object-fit: contain;
        }
        .reveal .progress { display: $progress_display; }
        .reveal .controls { display: $controls_display; }
        @media print {
            .reveal .controls, .reveal .progress { display: none !important; }
            .reveal .slides section { page-break-after: always; }
        }
    </style>
</head>
<body>
    <div class="reveal">
        <div class="slides">
$slides
        </div>
    </div>

    <script src="$cdn/reveal.min.js"></script>
    <script src="$cdn/plugin/markdown/markdown.min.js"></script>
    <script src="$cdn/plugin/highlight/highlight.min.js"></script>
    <script src="$cdn/plugin/notes/notes.min.js"></script>
    <script src="$cdn/plugin/zoom/zoom.min.js"></script>

    <script>
        Reveal.initialize({
            hash: true,
            transition: '$transition',$auto_slide
            plugins: [ RevealMarkdown, RevealHighlight, RevealNotes, RevealZoom ]
        });
    </script>
</body>
</html>""")


def escape(text: str) -> str:
    return html.escape(text, quote=True)


def markdown_block(content: str) -> str:
    return f"""<div data-markdown>
                <textarea data-template>
{content}
                </textarea>
            </div>"""


def title_slide(title: str, subtitle: Optional[str] = None, author: Optional[str] = None) -> str:
    parts = [f"<h1>{escape(title)}</h1>"]
    if subtitle:
        parts.append(f"<h3>{escape(subtitle)}</h3>")
    if author:
        parts.append(f"<p><em>by {escape(author)}</em></p>")
    body = "\n            ".join(parts)
    return f"""        <section class="title-slide">
            {body}
        </section>"""


def slide_section(slide: Slide) -> str:
    heading = escape(slide.title)
    if slide.layout == "title":
        body = f"<h1>{heading}</h1>\n            {markdown_block(slide.content)}"
    elif slide.layout == "two-column":
        left, sep, right = slide.content.partition("|||")
        body = f"""<h2>{heading}</h2>
            <div class="two-column">
                <div class="column">{markdown_block(left.strip() if sep else slide.content)}</div>
                <div class="column">{markdown_block(right.strip())}</div>
            </div>"""
    elif slide.layout == "quote":
        body = f"""<div class="quote-slide">
                <h2>{heading}</h2>
                <blockquote>{escape(slide.content)}</blockquote>
            </div>"""
    elif slide.layout == "image":
        body = f"""<div class="image-slide">
                <h2>{heading}</h2>
                {markdown_block(slide.content)}
            </div>"""
    elif slide.layout == "blank":
        body = markdown_block(f"# {slide.title}\n\n{slide.content}")
    else:
        body = f"<h2>{heading}</h2>\n            {markdown_block(slide.content)}"

    background = f' data-background="{escape(slide.background)}"' if slide.background else ""
    notes = f'\n            <aside class="notes">{escape(slide.notes)}</aside>' if slide.notes else ""
    return f"""        <section{background}>
            {body}{notes}
        </section>"""


def render_presentation(args: PresentationArgs) -> str:
    sections = [title_slide(args.title, args.subtitle, args.author)]
    sections.extend(slide_section(slide) for slide in args.slides)
    return _DOCUMENT.substitute(
        title=escape(args.title),
        cdn=REVEAL_CDN,
        highlight_css=HIGHLIGHT_CSS,
        theme=args.theme,
        transition=args.transition,
        progress_display="block" if args.include_progress else "none",
        controls_display="block" if args.include_controls else "none",
        auto_slide=f"\n            autoSlide: {args.auto_slide}," if args.auto_slide else "",
        slides="\n".join(sections),
    )


def data_url(document: str) -> str:
    return "data:text/html;charset=utf-8," + quote(document, safe="")


async def execute(args: PresentationArgs, ctx: ToolContext) -> Dict[str, Any]:
    try:
        document = render_presentation(args)
    except Exception as e:
        logger.warning("Presentation generation failed: %s", e)
        return {
            "type": "presentation",
            "title": args.title,
            "error": f"Failed to generate presentation: {error_message(e)}",
            "status": "error",
        }

    url = data_url(document)
    return {
        "type": "presentation",
        "title": args.title,
        "subtitle": args.subtitle,
        "author": args.author,
        "theme": args.theme,
        "transition": args.transition,
        "slideCount": len(args.slides),
        "html": document,
        "fileName": f"presentation-{int(time.time() * 1000)}.html",
        "downloadUrl": url,
        "previewUrl": url,
        "instructions": INSTRUCTIONS,
        "status": "success",
    }


TOOL = Tool(name="presentation", description=DESCRIPTION, args_model=PresentationArgs, execute=execute)
