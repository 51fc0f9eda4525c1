import asyncio
import re
from urllib.parse import unquote

from ahamai.tools import presentation
from ahamai.tools.presentation import PresentationArgs, Slide


def make_args(**overrides):
    values = {
        "title": "Q3 <Review>",
        "subtitle": "Numbers & plans",
        "author": "Sam",
        "theme": "night",
        "transition": "fade",
        "slides": [
            Slide(title="Agenda", content="- Revenue\n- Hiring", notes="Keep it short"),
            Slide(title="Compare", content="**Before** ||| **After**", layout="two-column"),
            Slide(title="Motto", content='Ship <it> "today"', layout="quote", background="#112233"),
        ],
    }
    values.update(overrides)
    return PresentationArgs(**values)


def test_presentation_card():
    card = asyncio.run(presentation.execute(make_args(), ctx=None))

    assert card["status"] == "success"
    assert card["type"] == "presentation"
    assert card["slideCount"] == 3
    assert re.fullmatch(r"presentation-\d+\.html", card["fileName"])
    assert card["instructions"] == presentation.INSTRUCTIONS
    assert card["downloadUrl"] == card["previewUrl"]
    assert card["downloadUrl"].startswith("data:text/html;charset=utf-8,%3C%21DOCTYPE")
    assert unquote(card["downloadUrl"].split(",", 1)[1]) == card["html"]


def test_rendered_document():
    doc = presentation.render_presentation(make_args())

    assert "<title>Q3 &lt;Review&gt;</title>" in doc
    assert f"{presentation.REVEAL_CDN}/theme/night.min.css" in doc
    assert "transition: 'fade'," in doc
    assert "autoSlide" not in doc
    assert ".reveal .progress { display: block; }" in doc

    # title slide plus one section per slide
    assert doc.count("<section") == 4
    assert "<h3>Numbers &amp; plans</h3>" in doc
    assert "<p><em>by Sam</em></p>" in doc
    assert '<aside class="notes">Keep it short</aside>' in doc
    assert doc.count('<div class="column">') == 2
    assert "**Before**\n" in doc and "**After**\n" in doc
    assert '<section data-background="#112233">' in doc
    assert "<blockquote>Ship &lt;it&gt; &quot;today&quot;</blockquote>" in doc


def test_options_toggle_controls_and_auto_slide():
    doc = presentation.render_presentation(make_args(include_progress=False, include_controls=False, auto_slide=5000))

    assert ".reveal .progress { display: none; }" in doc
    assert ".reveal .controls { display: none; }" in doc
    assert "autoSlide: 5000," in doc


def test_blank_and_title_layouts():
    blank = presentation.slide_section(Slide(title="Raw", content="Just text", layout="blank"))
    assert "<h2>" not in blank
    assert "# Raw\n\nJust text" in blank

    title = presentation.slide_section(Slide(title="Part 2", content="Intro", layout="title"))
    assert "<h1>Part 2</h1>" in title


def test_two_column_without_separator_keeps_content_left():
    section = presentation.slide_section(Slide(title="One", content="only left", layout="two-column"))
    assert section.count("only left") == 1


def test_two_column_with_empty_left_side():
    section = presentation.slide_section(Slide(title="Two", content="|||right side", layout="two-column"))
    assert "|||" not in section
    assert section.count("right side") == 1
