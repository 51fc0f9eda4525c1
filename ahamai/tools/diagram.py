# ahamai/tools/diagram.py
import base64
import logging
import re
import zlib
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .base import Tool, ToolContext

logger = logging.getLogger(__name__)

PLANTUML_SERVER = "https://www.plantuml.com/plantuml"
MERMAID_INK = "https://mermaid.ink"
MAX_ATTEMPTS = 3

DiagramType = Literal[
    "sequence", "usecase", "class", "activity", "component", "state", "object",
    "deployment", "timing", "network", "wireframe", "mindmap", "wbs", "gantt",
]

# Diagram types with their own @start/@end keyword
_OWN_TAGS = {"mindmap": "mindmap", "wbs": "wbs", "gantt": "gantt"}

_B64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_PLANTUML_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"
_TO_PLANTUML = str.maketrans(_B64_ALPHABET + "=", _PLANTUML_ALPHABET + "0")

_UNUSUAL_CHARS = re.compile(r"[^\w\s\-()\[\]{}:;.,><!@#$%^&*+=|\\/\"'`~\n]")
_BRACKET_PAIRS = {"]": "[", ")": "(", "}": "{"}


class DiagramArgs(BaseModel):
    type: DiagramType
    title: str = Field(description="Title of the diagram")
    description: Optional[str] = Field(default=None, description="Brief description of what the diagram represents")
    content: str = Field(description="The PlantUML (or Mermaid) content/syntax for the diagram")
    theme: Literal["default", "cerulean", "sketchy", "plain", "amiga"] = Field(
        default="default", description="Visual theme for the diagram")
    syntax: Literal["plantuml", "mermaid"] = Field(default="plantuml", description="Diagram language of `content`")


DESCRIPTION = """Generate PlantUML (or Mermaid) diagrams for processes, relationships and concepts.
Supports sequence, use case, class, activity, component, state, object, deployment, timing,
network, wireframe, mind map, WBS and Gantt diagrams.

The 'content' parameter should contain valid syntax for the diagram type, e.g.:

@startuml
Alice -> Bob: Authentication Request
Bob --> Alice: Authentication Response
@enduml"""


class DiagramValidationError(ValueError):
    pass


def plantuml_encode(code: str) -> str:
    """Raw deflate + PlantUML's base64 alphabet, as expected by the public server."""
    compressor = zlib.compressobj(9, zlib.DEFLATED, -15)
    deflated = compressor.compress(code.encode("utf-8")) + compressor.flush()
    return base64.b64encode(deflated).decode("ascii").translate(_TO_PLANTUML)


def plantuml_urls(code: str) -> Dict[str, str]:
    encoded = plantuml_encode(code)
    return {
        "renderUrl": f"{PLANTUML_SERVER}/png/{encoded}",
        "svgUrl": f"{PLANTUML_SERVER}/svg/{encoded}",
        "editUrl": f"{PLANTUML_SERVER}/uml/{encoded}",
    }


def diagram_tags(diagram_type: str) -> tuple:
    keyword = _OWN_TAGS.get(diagram_type, "uml")
    return f"@start{keyword}", f"@end{keyword}"


def auto_correct(content: str, diagram_type: str, attempt: int) -> str:
    start_tag, end_tag = diagram_tags(diagram_type)
    corrected = content.strip()

    corrected = re.sub("[“”]", '"', corrected)
    corrected = re.sub("[‘’]", "'", corrected)
    corrected = re.sub("[–—]", "-", corrected)

    if start_tag not in corrected:
        corrected = f"{start_tag}\n{corrected}"
    if end_tag not in corrected:
        corrected = f"{corrected}\n{end_tag}"

    if diagram_type == "sequence":
        corrected = corrected.replace("-->>", "-->").replace("->>>", "-->")
    elif diagram_type == "class":
        corrected = re.sub(r"class\s+(\w+)\s*{", r"class \1 {", corrected)
    elif diagram_type == "activity":
        if "start" not in corrected.replace(start_tag, "") and ":" not in corrected:
            corrected = corrected.replace(start_tag, f"{start_tag}\nstart", 1)
        if "stop" not in corrected and "end" not in corrected.replace(end_tag, ""):
            corrected = corrected.replace(end_tag, f"stop\n{end_tag}", 1)
    elif diagram_type == "usecase":
        corrected = re.sub(r":\s*(\w+)\s*:", r":\1:", corrected)

    if attempt > 1:
        corrected = _UNUSUAL_CHARS.sub("", corrected)

    if attempt > 2:
        lines = [line for line in corrected.split("\n") if line.strip() and not line.startswith("@")]
        if len(lines) > 10:
            body = "\n".join(lines[:10])
            corrected = f"{start_tag}\n{body}\n{end_tag}"

    return corrected


def with_title_and_theme(code: str, diagram_type: str, title: str, theme: str) -> str:
    start_tag, _ = diagram_tags(diagram_type)
    directive = f"!theme {theme}\n" if theme != "default" else ""
    if "title " not in code and title:
        return code.replace(start_tag, f"{start_tag}\n{directive}title {title}", 1)
    if directive:
        return code.replace(start_tag, f"{start_tag}\n{directive.rstrip()}", 1)
    return code


def validate(code: str, diagram_type: str) -> None:
    start_tag, end_tag = diagram_tags(diagram_type)
    if not code.strip():
        raise DiagramValidationError("Empty PlantUML code")
    if start_tag not in code:
        raise DiagramValidationError(f"Missing {start_tag} tag")
    if end_tag not in code:
        raise DiagramValidationError(f"Missing {end_tag} tag")

    stack: List[str] = []
    for ch in code:
        if ch in "([{":
            stack.append(ch)
        elif ch in _BRACKET_PAIRS:
            if not stack:
                raise DiagramValidationError("Unmatched closing bracket")
            if stack.pop() != _BRACKET_PAIRS[ch]:
                raise DiagramValidationError("Mismatched brackets")
    if stack:
        raise DiagramValidationError("Unmatched opening bracket")


def fallback_diagram(diagram_type: str, title: str) -> str:
    safe_name = re.sub(r"\s+", "_", re.sub(r"[^a-zA-Z0-9\s]", "", title)) or "Diagram"
    bodies = {
        "sequence": "participant A\nparticipant B\nA -> B: Request\nB --> A: Response",
        "class": f"class {safe_name} {{\n  +method()\n}}",
        "activity": "start\n:Activity;\nstop",
        "usecase": f":User: --> ({safe_name})",
        "component": f"component {safe_name}",
        "state": "[*] --> State1\nState1 --> [*]",
        "mindmap": f"* {title}\n** Simplified diagram",
        "wbs": f"* {title}\n** Simplified diagram",
        "gantt": "[Task 1] lasts 5 days",
    }
    body = bodies.get(diagram_type, f"note as N1\n  {safe_name}\n  Simplified diagram\nend note")
    start_tag, end_tag = diagram_tags(diagram_type)
    if diagram_type == "gantt":
        return f"{start_tag}\n{body}\n{end_tag}"
    return f"{start_tag}\ntitle {title}\n{body}\n{end_tag}"


def build_plantuml(args: DiagramArgs) -> Dict[str, Any]:
    last_error = ""
    for attempt in range(1, MAX_ATTEMPTS + 1):
        code = with_title_and_theme(auto_correct(args.content, args.type, attempt), args.type, args.title, args.theme)
        try:
            validate(code, args.type)
        except DiagramValidationError as e:
            last_error = str(e)
            logger.info("Diagram attempt %d failed: %s", attempt, last_error)
            continue
        return {"plantUMLCode": code, **plantuml_urls(code), "attempts": attempt}

    code = fallback_diagram(args.type, args.title)
    logger.warning("Diagram fell back to a simplified %s diagram: %s", args.type, last_error)
    return {
        "plantUMLCode": code,
        **plantuml_urls(code),
        "attempts": MAX_ATTEMPTS,
        "warnings": [f"Auto-correction applied after {MAX_ATTEMPTS} attempts. Original error: {last_error}"],
    }


def normalize_mermaid(content: str, title: str) -> str:
    code = content.strip()
    if code.startswith("```"):
        code = code.strip("`").strip()
        if code.startswith("mermaid"):
            code = code[len("mermaid"):].strip()
    if title and not code.startswith("---"):
        code = f"---\ntitle: {title}\n---\n{code}"
    return code


def build_mermaid(args: DiagramArgs) -> Dict[str, Any]:
    code = normalize_mermaid(args.content, args.title)
    encoded = base64.urlsafe_b64encode(code.encode("utf-8")).decode("ascii").rstrip("=")
    return {
        "mermaidCode": code,
        "renderUrl": f"{MERMAID_INK}/img/{encoded}",
        "svgUrl": f"{MERMAID_INK}/svg/{encoded}",
        "attempts": 1,
    }


async def execute(args: DiagramArgs, ctx: ToolContext) -> Dict[str, Any]:
    built = build_mermaid(args) if args.syntax == "mermaid" else build_plantuml(args)
    return {
        "type": "diagram",
        "diagramType": args.type,
        "syntax": args.syntax,
        "title": args.title,
        "description": args.description,
        **built,
        "status": "success",
    }


TOOL = Tool(name="diagram", description=DESCRIPTION, args_model=DiagramArgs, execute=execute)
