"""Tunable extraction heuristics.

Every pattern and keyword list the extractor and image classifier rely on
lives here. The defaults are tuned against usesession.com booking pages;
other booking platforms can pass their own ``ExtractionRules`` instance
(e.g. ``dataclasses.replace(DEFAULT_RULES, max_images=10)``).
"""

import re
from dataclasses import dataclass

FALLBACK_TITLE = "Photography Session"
FALLBACK_PRICE = "Contact for pricing"
FALLBACK_DATE = "Contact for available dates"
FALLBACK_LOCATION = "Location details available upon booking"
FALLBACK_SENTENCE = "Beautiful photography session available for booking."
FALLBACK_DESCRIPTION = (
    "Join us for a beautiful photography session designed to capture the moments "
    "that matter most. Every session is relaxed, fun and tailored to you.\n\n"
    "Spots are limited, so pick the time that works best for you and reserve it "
    "today. All the details you need are listed below."
)

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)
_WEEKDAYS = "Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday"
_STREET_SUFFIXES = (
    "St|Street|Ave|Avenue|Rd|Road|Dr|Drive|Ln|Lane|Blvd|Boulevard|Hwy|Highway|"
    "Pkwy|Parkway|Ct|Court|Pl|Place|Way|Circle|Cir"
)

WEEKDAY_DATE_RE = re.compile(
    rf"\b(?:{_WEEKDAYS}),?\s+(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}", re.I
)
TIME_RE = re.compile(r"\b\d{1,2}:\d{2}\s*(?:AM|PM)\b", re.I)
VALID_TIME_RE = re.compile(r"^(?:1[0-2]|[1-9]):[0-5]\d\s*(?:AM|PM)$", re.I)


@dataclass(frozen=True)
class ExtractionRules:
    # -- title -------------------------------------------------------------
    title_class_pattern: re.Pattern = re.compile(r"title|heading|headline", re.I)

    # -- description -------------------------------------------------------
    description_selectors: tuple[str, ...] = (
        ".Mobiledoc",
        '[class*="description"]',
        '[class*="content"]',
        '[class*="body"]',
        '[class*="text"]',
        "main",
        ".main-content",
        "article",
        ".article-content",
    )
    min_selector_text: int = 100
    min_block_text: int = 100
    max_block_text: int = 8000
    min_block_words: int = 10
    max_paragraphs: int = 10
    booking_action_re: re.Pattern = re.compile(
        r"^(?:book|select|choose|click|powered\s+by|reserve)\b", re.I
    )
    booking_phrase_re: re.Pattern = re.compile(
        r"Book Now|Select Time|Choose Date|Powered by", re.I
    )
    code_markers: tuple[str, ...] = (
        "function(",
        "function (",
        "setTimeout",
        "setInterval",
        "fbq(",
        "gtag(",
        "dataLayer",
        "addEventListener",
        "querySelector",
    )
    code_line_re: re.Pattern = re.compile(
        r"^(?:\{|\}|function\b|var\s+|const\s+|let\s+|setTimeout|setInterval)"
        r"|^[.#][A-Za-z_-]+\s*\{"
        r"|^(?:https?://|www\.)"
        r"|^[A-Za-z0-9+/]{20,}={0,2}$",
        re.I,
    )
    # Applied in order to extracted description text
    description_scrubbers: tuple[re.Pattern, ...] = (
        re.compile(r"Book Now|Select Time|Choose Date|Powered by", re.I),
        re.compile(r"setTimeout\([^)]*\)[^;]*;?", re.I),
        re.compile(r"function\s*\([^)]*\)[^}]*\}", re.I),
        re.compile(r"\{[^}]*\}"),
        re.compile(r"fbq\([^)]*\)[^;]*;?", re.I),
        re.compile(r"gtag\([^)]*\)[^;]*;?", re.I),
        re.compile(r"\$\d+(?:\.\d{2})?\s*\+\s*Tax\b", re.I),
        re.compile(r"\b\d{1,2}:\d{2}\s*(?:AM|PM)\b", re.I),
        re.compile(r"Choose from \d+ available spots?", re.I),
        WEEKDAY_DATE_RE,
    )
    min_description_chars: int = 30
    min_description_words: int = 8

    # -- price -------------------------------------------------------------
    price_re: re.Pattern = re.compile(r"\$\d[\d,]*(?:\.\d{2})?(?:\s*\+\s*Tax)?", re.I)

    # -- dates -------------------------------------------------------------
    date_class_selectors: tuple[str, ...] = (
        '[class*="date"]',
        '[class*="day"]',
        '[class*="schedule"]',
        "[data-date]",
        "time",
    )
    # Strongest first; a weaker match overlapping a stronger one is dropped
    date_patterns: tuple[re.Pattern, ...] = (
        WEEKDAY_DATE_RE,
        re.compile(rf"\b(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}", re.I),
        re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
        re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    )
    session_container_selectors: tuple[str, ...] = (
        '[class*="session"]',
        '[class*="date"]',
        '[class*="day"]',
        '[class*="schedule"]',
        '[class*="booking"]',
        '[class*="event"]',
        '[class*="slot"]',
        ".card",
        ".item",
    )
    container_skip_words: tuple[str, ...] = (
        "nav",
        "header",
        "footer",
        "menu",
        "logo",
        "copyright",
        "social",
        "breadcrumb",
    )

    # -- location ----------------------------------------------------------
    location_selectors: tuple[str, ...] = (
        ".location",
        ".address",
        '[class*="location"]',
        '[class*="address"]',
        '[class*="venue"]',
    )
    max_location_chars: int = 200
    address_re: re.Pattern = re.compile(
        rf"\b\d{{1,6}}\s+(?:[A-Z0-9][A-Za-z0-9.'-]*\s+){{0,5}}?(?:{_STREET_SUFFIXES})\b\.?"
        r"(?:\s+[A-Za-z0-9#.]+){0,3}?,\s*[A-Za-z .]+?,?\s+[A-Z]{2}\s+\d{5}(?:-\d{4})?\b"
    )
    loose_address_re: re.Pattern = re.compile(
        r"\d+.*?\b(?:Hwy|Highway|St|Street|Ave|Avenue|Rd|Road|Dr|Drive)\b.*?[A-Z]{2}\s*\d{5}"
    )

    # -- time slots --------------------------------------------------------
    time_element_selectors: tuple[str, ...] = (
        "button",
        "a",
        ".btn",
        ".time-slot",
        ".slot",
        '[class*="time"]',
        '[class*="slot"]',
        '[class*="available"]',
        "[data-time]",
    )
    booking_url_attrs: tuple[str, ...] = ("data-url", "data-href", "data-booking-url")
    onclick_url_re: re.Pattern = re.compile(r"""["']((?:https?:)?/[^"'\s]+)["']""")
    max_fallback_time_slots: int = 8
    max_time_slots: int = 8

    # -- images ------------------------------------------------------------
    meta_image_attrs: tuple[tuple[str, str], ...] = (
        ("property", "og:image"),
        ("name", "image"),
        ("name", "twitter:image"),
        ("property", "twitter:image"),
    )
    image_src_attrs: tuple[str, ...] = ("src", "data-src", "data-lazy", "data-lazy-src")
    logo_url_keywords: tuple[str, ...] = (
        "logo",
        "brand",
        "watermark",
        "signature",
        "stamp",
        "icon",
        "badge",
        "emblem",
        "avatar",
        "profile",
        "photographer",
        "studio",
        "byline",
        "sprite",
    )
    small_suffix_re: re.Pattern = re.compile(
        r"[-_](?:sm|small|xs|thumb|icon|md|avatar)\.[a-z0-9]+$"
    )
    dimensions_re: re.Pattern = re.compile(r"(\d{1,4})x(\d{1,4})")
    min_image_dimension: int = 300
    cdn_logo_patterns: tuple[re.Pattern, ...] = (
        re.compile(r"digitaloceanspaces\.com/\d+/[a-f0-9-]+-(?:md|sm|thumb)\."),
        re.compile(r"amazonaws\.com/.*profile"),
        re.compile(r"cloudfront\.net/.*logo"),
        re.compile(r"gravatar\.com"),
        re.compile(r"/avatars?/"),
        re.compile(r"/profiles?/"),
        re.compile(r"/logos?/"),
    )
    logo_container_keywords: tuple[str, ...] = (
        "logo",
        "brand",
        "header",
        "nav",
        "menu",
        "photographer",
        "studio",
        "watermark",
        "signature",
        "byline",
        "footer",
        "avatar",
        "profile",
    )
    logo_container_tags: tuple[str, ...] = ("header", "nav", "footer")
    business_name_re: re.Pattern = re.compile(
        r"\bphotograph(?:y|er)\b|\bstudios?\b|\b[a-z]+\s+by\s+[a-z]+\b", re.I
    )
    max_business_text: int = 60
    min_declared_dimension: int = 200
    max_images: int = 5


DEFAULT_RULES = ExtractionRules()
