"""Description formatting and email-safe text helpers.

Email clients drop most ``<style>`` rules inside the body, so every
paragraph carries its own inline style.
"""

import re
from html import escape

from sessionmailer.services.rules import FALLBACK_SENTENCE

# Fonts served by Google Fonts -> generic family used as the CSS fallback
GOOGLE_FONTS = {
    "Playfair Display": "serif",
    "Open Sans": "sans-serif",
    "Lato": "sans-serif",
    "Montserrat": "sans-serif",
    "Roboto": "sans-serif",
    "Poppins": "sans-serif",
    "Merriweather": "serif",
    "Lora": "serif",
    "Source Sans Pro": "sans-serif",
    "Nunito": "sans-serif",
    "Inter": "sans-serif",
    "Crimson Text": "serif",
}

# Installed on practically every client; never imported
SYSTEM_FONTS = {
    "Georgia": "serif",
    "Times New Roman": "serif",
    "Arial": "sans-serif",
    "Helvetica": "sans-serif",
    "Verdana": "sans-serif",
    "Tahoma": "sans-serif",
}

DEFAULT_HEADING_STACK = "'Playfair Display', serif"
DEFAULT_PARAGRAPH_STACK = "Georgia, serif"

TRANSITION_WORDS = ("However", "But", "Additionally", "Furthermore", "Moreover", "Also")
LONG_SENTENCE_CHARS = 100
MAX_SENTENCES_PER_PARAGRAPH = 3

_EMAIL_CHAR_MAP = str.maketrans(
    {
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u2013": "-",
        "\u2014": "-",
        "\u2026": "...",
        "\u00a0": " ",
    }
)
_INVISIBLE_RE = re.compile("[\u200b-\u200f\u2028-\u202f\u205f-\u206f\ufeff]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_CSS_UNSAFE_RE = re.compile(r"""[<>{};"'\\]""")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"'(])")
_TRANSITION_RE = re.compile(rf"^(?:{'|'.join(TRANSITION_WORDS)})\b", re.I)


def normalize_email_text(text: str) -> str:
    """Replace characters that render as boxes or brackets in mail clients."""
    text = text.translate(_EMAIL_CHAR_MAP)
    text = _INVISIBLE_RE.sub("", text)
    return _CONTROL_RE.sub("", text)


def css_value(value: object) -> str:
    """Make ``value`` safe to interpolate into a CSS declaration or style attribute."""
    return _CSS_UNSAFE_RE.sub("", str(value)).strip()


def font_stack(font: str, default: str) -> str:
    if font in GOOGLE_FONTS:
        return f"'{font}', {GOOGLE_FONTS[font]}"
    if font in SYSTEM_FONTS:
        name = f"'{font}'" if " " in font else font
        return f"{name}, {SYSTEM_FONTS[font]}"
    return default


def paragraph_style(font: str, font_size: int, color: str) -> str:
    return (
        f"font-size: {int(font_size)}px; color: {css_value(color)}; margin: 0 0 20px 0; "
        f"line-height: 1.7; font-family: {font_stack(font, DEFAULT_PARAGRAPH_STACK)};"
    )


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def group_sentences(sentences: list[str]) -> list[list[str]]:
    """Greedy grouping into paragraphs of two or three sentences.

    A group closes at three sentences, or at two when the current sentence
    is long or the next one opens with a transition word.
    """
    groups: list[list[str]] = []
    current: list[str] = []
    for index, sentence in enumerate(sentences):
        current.append(sentence)
        next_sentence = sentences[index + 1] if index + 1 < len(sentences) else ""
        natural_break = len(sentence) > LONG_SENTENCE_CHARS or bool(
            _TRANSITION_RE.match(next_sentence)
        )
        if len(current) >= MAX_SENTENCES_PER_PARAGRAPH or (len(current) >= 2 and natural_break):
            groups.append(current)
            current = []
    if current:
        groups.append(current)
    return groups


def format_description(
    text: str,
    font: str = "Georgia",
    font_size: int = 16,
    color: str = "#333333",
) -> str:
    """Turn a plain-text description into inline-styled, escaped ``<p>`` elements."""
    style = paragraph_style(font, font_size, color)
    text = normalize_email_text(text or "").strip()
    if not text:
        return f'<p style="{style}">{escape(FALLBACK_SENTENCE)}</p>'

    paragraphs: list[str] = []
    for block in _PARAGRAPH_SPLIT_RE.split(text):
        for group in group_sentences(split_sentences(" ".join(block.split()))):
            paragraphs.append(" ".join(group))

    return "".join(f'<p style="{style}">{escape(p)}</p>' for p in paragraphs)
