"""Structured content extraction from rendered booking-page HTML.

Each field is produced by an ordered list of small strategy functions
``(soup, rules) -> value | None`` combined with ``first_success``. Every
field has a documented fallback, so ``extract_session`` always returns a
complete ``SessionData`` even for empty or hostile markup.
"""

import logging
import re
from typing import Any, Callable, Sequence
from urllib.parse import quote

from bs4 import BeautifulSoup, Tag

from sessionmailer.config import settings
from sessionmailer.schemas.session import DateTimePair, SessionData, TimeSlot
from sessionmailer.services import images as image_classifier
from sessionmailer.services.rules import (
    DEFAULT_RULES,
    FALLBACK_DATE,
    FALLBACK_DESCRIPTION,
    FALLBACK_LOCATION,
    FALLBACK_PRICE,
    FALLBACK_SENTENCE,
    FALLBACK_TITLE,
    TIME_RE,
    VALID_TIME_RE,
    WEEKDAY_DATE_RE,
    ExtractionRules,
)

logger = logging.getLogger(__name__)

# Never carry visible content
_STRIP_TAGS = ["script", "style", "noscript", "template", "svg", "iframe"]
_CHROME_TAGS = ["nav", "header", "footer"]
_BLOCK_TAGS = ["p", "div", "li", "section", "article", "blockquote", "h2", "h3", "h4", "h5", "h6"]
_LARGEST_BLOCK_TAGS = ["div", "section", "article", "p"]
_UNUSABLE_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_TIME_PARTS_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.I)

Strategy = Callable[..., Any]


def first_success(strategies: Sequence[Strategy], *args: Any) -> Any:
    """Return the first truthy result of ``strategies`` called with ``args``.

    A strategy that raises is logged at debug level and skipped.
    """
    for strategy in strategies:
        try:
            result = strategy(*args)
        except Exception as e:
            logger.debug(f"{strategy.__name__} failed: {e}")
            continue
        if result:
            return result
    return None


def parse_html(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html or "", "lxml")
    for tag in soup(_STRIP_TAGS):
        tag.decompose()
    return soup


def _text(el: Tag | None) -> str:
    if el is None:
        return ""
    return " ".join(el.get_text(" ", strip=True).split())


def _body_text(soup: BeautifulSoup) -> str:
    return _text(soup.body or soup)


def _in_chrome(el: Tag) -> bool:
    return el.name in _CHROME_TAGS or el.find_parent(_CHROME_TAGS) is not None


def _looks_like_code(text: str, rules: ExtractionRules) -> bool:
    if any(marker in text for marker in rules.code_markers):
        return True
    return bool(rules.code_line_re.search(text))


# ---------------------------------------------------------------------------
# Title
# ---------------------------------------------------------------------------


def title_from_h1(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    return _text(soup.find("h1")) or None


def title_from_document(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    return _text(soup.title) or None


def title_from_class_hint(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    for el in soup.find_all(class_=rules.title_class_pattern):
        text = _text(el)
        if text:
            return text
    return None


def extract_title(soup: BeautifulSoup, rules: ExtractionRules = DEFAULT_RULES) -> str:
    strategies = (title_from_h1, title_from_document, title_from_class_hint)
    return first_success(strategies, soup, rules) or FALLBACK_TITLE


# ---------------------------------------------------------------------------
# Description
# ---------------------------------------------------------------------------


def _is_content_block(text: str, rules: ExtractionRules) -> bool:
    if not 10 <= len(text) <= 2000 or len(text.split()) <= 3:
        return False
    if rules.booking_action_re.match(text):
        return False
    if not TIME_RE.sub("", text).strip(" -|"):
        return False
    return not _looks_like_code(text, rules)


def _innermost_blocks(container: Tag, rules: ExtractionRules) -> list[str]:
    blocks: list[str] = []
    for node in [container, *container.find_all(_BLOCK_TAGS)]:
        if node.find(_BLOCK_TAGS) is not None:
            continue
        text = _text(node)
        if text and text not in blocks and _is_content_block(text, rules):
            blocks.append(text)
    return blocks


def description_from_selectors(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    """Paragraphs of the first content container with enough text."""
    for selector in rules.description_selectors:
        for el in soup.select(selector):
            if _in_chrome(el) or len(_text(el)) <= rules.min_selector_text:
                continue
            blocks = _innermost_blocks(el, rules)
            if blocks:
                return "\n\n".join(blocks[: rules.max_paragraphs])
    return None


def description_from_largest_block(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    """The single largest prose-like block on the page."""
    best = ""
    for el in soup.find_all(_LARGEST_BLOCK_TAGS):
        if _in_chrome(el):
            continue
        text = _text(el)
        if not rules.min_block_text <= len(text) <= rules.max_block_text:
            continue
        if len(text.split()) <= rules.min_block_words:
            continue
        if _looks_like_code(text, rules) or rules.booking_action_re.match(text):
            continue
        if len(text) > len(best):
            best = text
    return best or None


def _is_sentence(sentence: str, rules: ExtractionRules) -> bool:
    return (
        len(sentence) > 10
        and len(sentence.split()) > 2
        and not _looks_like_code(sentence, rules)
    )


def _is_plausible(text: str, rules: ExtractionRules) -> bool:
    if len(text) < rules.min_description_chars or len(text.split()) < rules.min_description_words:
        return False
    return "{" not in text and not _looks_like_code(text, rules)


def clean_description(text: str, rules: ExtractionRules = DEFAULT_RULES) -> str:
    """Scrub leaked markup remnants and fragments; keep paragraph breaks."""
    paragraphs: list[str] = []
    for block in _PARAGRAPH_SPLIT_RE.split(text):
        for pattern in rules.description_scrubbers:
            block = pattern.sub(" ", block)
        block = " ".join(block.split())
        sentences = [
            sentence.strip()
            for sentence in _SENTENCE_SPLIT_RE.split(block)
            if _is_sentence(sentence.strip(), rules)
        ]
        if sentences:
            paragraphs.append(" ".join(sentences))

    cleaned = "\n\n".join(paragraphs)
    if not _is_plausible(cleaned, rules):
        return FALLBACK_SENTENCE
    return cleaned


def extract_description(soup: BeautifulSoup, rules: ExtractionRules = DEFAULT_RULES) -> str:
    strategies = (description_from_selectors, description_from_largest_block)
    text = first_success(strategies, soup, rules)
    if not text:
        return FALLBACK_DESCRIPTION
    return clean_description(text, rules)


# ---------------------------------------------------------------------------
# Price
# ---------------------------------------------------------------------------


def extract_price(soup: BeautifulSoup, rules: ExtractionRules = DEFAULT_RULES) -> str:
    """First price in a leaf element; containers would repeat nested text."""
    root = soup.body or soup
    for el in root.find_all(True):
        if el.find(True) is not None:
            continue
        match = rules.price_re.search(_text(el))
        if match:
            return " ".join(match.group(0).split())
    return FALLBACK_PRICE


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def find_dates(text: str, rules: ExtractionRules = DEFAULT_RULES) -> list[str]:
    """Distinct dates in document order; weaker overlapping matches dropped."""
    spans: list[tuple[int, int, str]] = []
    for pattern in rules.date_patterns:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < s_end and s_start < end for s_start, s_end, _ in spans):
                continue
            spans.append((start, end, " ".join(match.group(0).split())))

    dates: list[str] = []
    for _, _, value in sorted(spans):
        if value not in dates:
            dates.append(value)
    return dates


def dates_from_class_hints(soup: BeautifulSoup, rules: ExtractionRules) -> list[str]:
    dates: list[str] = []
    for el in soup.select(", ".join(rules.date_class_selectors)):
        if _in_chrome(el):
            continue
        for value in find_dates(_text(el), rules):
            if value not in dates:
                dates.append(value)
    return dates


def dates_from_body(soup: BeautifulSoup, rules: ExtractionRules) -> list[str]:
    return find_dates(_body_text(soup), rules)


def extract_date(soup: BeautifulSoup, rules: ExtractionRules = DEFAULT_RULES) -> str:
    dates = first_success((dates_from_class_hints, dates_from_body), soup, rules)
    return ", ".join(dates) if dates else FALLBACK_DATE


def normalize_time(raw: str) -> str | None:
    """``"07:00pm"`` -> ``"7:00 PM"``; None for anything not a 12-hour time."""
    match = _TIME_PARTS_RE.match(" ".join(raw.split()))
    if not match:
        return None
    value = f"{int(match.group(1))}:{match.group(2)} {match.group(3).upper()}"
    return value if VALID_TIME_RE.match(value) else None


def _is_skipped_container(el: Tag, rules: ExtractionRules) -> bool:
    attrs = image_classifier.class_and_id(el)
    return any(word in attrs for word in rules.container_skip_words)


def extract_date_time_pairs(
    soup: BeautifulSoup, rules: ExtractionRules = DEFAULT_RULES
) -> list[DateTimePair]:
    """Group times under the single weekday date of their container."""
    grouped: dict[str, list[str]] = {}
    for el in soup.select(", ".join(rules.session_container_selectors)):
        if _in_chrome(el) or _is_skipped_container(el, rules):
            continue
        text = _text(el)
        dates = {" ".join(m.group(0).split()) for m in WEEKDAY_DATE_RE.finditer(text)}
        if len(dates) != 1:
            continue
        times = [t for t in (normalize_time(m) for m in TIME_RE.findall(text)) if t]
        if not times:
            continue
        bucket = grouped.setdefault(dates.pop(), [])
        for time in times:
            if time not in bucket:
                bucket.append(time)
    return [DateTimePair(date=date, times=times) for date, times in grouped.items()]


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------


def location_from_class_hints(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    for el in soup.select(", ".join(rules.location_selectors)):
        text = _text(el)
        if text and len(text) < rules.max_location_chars:
            return text
    return None


def location_from_address(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    match = rules.address_re.search(_body_text(soup))
    return match.group(0) if match else None


def location_from_short_text(soup: BeautifulSoup, rules: ExtractionRules) -> str | None:
    root = soup.body or soup
    for el in root.find_all(True):
        text = _text(el)
        if 10 <= len(text) <= 100:
            match = rules.loose_address_re.search(text)
            if match:
                return match.group(0).strip()
    return None


def extract_location(soup: BeautifulSoup, rules: ExtractionRules = DEFAULT_RULES) -> str:
    strategies = (location_from_class_hints, location_from_address, location_from_short_text)
    return first_success(strategies, soup, rules) or FALLBACK_LOCATION


# ---------------------------------------------------------------------------
# Time slots
# ---------------------------------------------------------------------------


def time_hint_url(source_url: str, time: str) -> str:
    separator = "&" if "?" in source_url else "?"
    return f"{source_url}{separator}time={quote(time, safe='')}"


def _usable_href(href: str | None) -> bool:
    return bool(href and href.strip()) and not href.strip().lower().startswith(_UNUSABLE_HREF_PREFIXES)


def _booking_candidates(el: Tag, rules: ExtractionRules):
    if el.name == "a" and _usable_href(el.get("href")):
        yield el["href"]
    for attr in rules.booking_url_attrs:
        if _usable_href(el.get(attr)):
            yield el[attr]
    match = rules.onclick_url_re.search(el.get("onclick") or "")
    if match:
        yield match.group(1)
    anchor = el.find_parent("a")
    if anchor is not None and _usable_href(anchor.get("href")):
        yield anchor["href"]


def _booking_url(
    el: Tag, time: str, source_url: str, rules: ExtractionRules
) -> tuple[str, bool]:
    """Booking link for a slot element and whether it is a real deep link.

    Only http(s) links are used; anything else falls through to the next
    source and finally to the ``?time=`` hint on the session URL.
    """
    for raw in _booking_candidates(el, rules):
        url = image_classifier.resolve_url(raw, source_url)
        if url:
            return url, True
    return time_hint_url(source_url, time), False


def time_slots_from_elements(
    soup: BeautifulSoup, source_url: str, rules: ExtractionRules
) -> list[TimeSlot]:
    slots: dict[str, TimeSlot] = {}
    hinted: set[str] = set()
    for el in soup.select(", ".join(rules.time_element_selectors)):
        matches = TIME_RE.findall(_text(el))
        # Containers listing several times are handled through their children
        if len(matches) != 1:
            continue
        time = normalize_time(matches[0])
        if not time:
            continue
        booking_url, deep_link = _booking_url(el, time, source_url, rules)
        if time not in slots or (time in hinted and deep_link):
            slots[time] = TimeSlot(time=time, booking_url=booking_url)
            if deep_link:
                hinted.discard(time)
            else:
                hinted.add(time)
    return list(slots.values())


def time_slots_from_text(
    soup: BeautifulSoup, source_url: str, rules: ExtractionRules
) -> list[TimeSlot]:
    slots: list[TimeSlot] = []
    seen: set[str] = set()
    for raw in TIME_RE.findall(_body_text(soup)):
        time = normalize_time(raw)
        if not time or time in seen:
            continue
        seen.add(time)
        slots.append(TimeSlot(time=time, booking_url=time_hint_url(source_url, time)))
        if len(slots) >= rules.max_fallback_time_slots:
            break
    return slots


def extract_time_slots(
    soup: BeautifulSoup, source_url: str, rules: ExtractionRules = DEFAULT_RULES
) -> list[TimeSlot]:
    strategies = (time_slots_from_elements, time_slots_from_text)
    slots = first_success(strategies, soup, source_url, rules) or []
    return slots[: rules.max_time_slots]


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def extract_images(
    soup: BeautifulSoup, source_url: str, rules: ExtractionRules = DEFAULT_RULES
) -> list[str]:
    candidates = image_classifier.collect_candidates(soup, rules)
    return image_classifier.classify(candidates, source_url, rules)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _guarded(step: Callable[..., Any], fallback: Any, *args: Any) -> Any:
    try:
        return step(*args) or fallback
    except Exception as e:
        logger.debug(f"{step.__name__} degraded to fallback: {e}")
        return fallback


def extract_session(
    html: str,
    source_url: str,
    rules: ExtractionRules = DEFAULT_RULES,
    base_url: str | None = None,
) -> SessionData:
    """Build a ``SessionData`` from rendered HTML. Never raises.

    ``source_url`` identifies the session; ``base_url`` (the post-redirect
    URL, when it differs) is used to resolve relative links.
    """
    base = base_url or source_url
    try:
        soup = parse_html(html)
    except Exception as e:
        logger.debug(f"Could not parse HTML for {source_url}: {e}")
        soup = BeautifulSoup("", "lxml")

    return SessionData(
        url=source_url,
        title=_guarded(extract_title, FALLBACK_TITLE, soup, rules),
        description=_guarded(extract_description, FALLBACK_DESCRIPTION, soup, rules),
        price=_guarded(extract_price, FALLBACK_PRICE, soup, rules),
        date=_guarded(extract_date, FALLBACK_DATE, soup, rules),
        location=_guarded(extract_location, FALLBACK_LOCATION, soup, rules),
        date_time_pairs=_guarded(extract_date_time_pairs, [], soup, rules),
        time_slots=_guarded(extract_time_slots, [], soup, source_url, rules),
        images=_guarded(extract_images, list(settings.STOCK_IMAGE_URLS), soup, base, rules),
    )
