"""Image classification: separate hero/content photos from logos, avatars and icons."""

import logging
import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from sessionmailer.config import settings
from sessionmailer.services.rules import DEFAULT_RULES, ExtractionRules

logger = logging.getLogger(__name__)

_BACKGROUND_URL_RE = re.compile(r"""url\(\s*['"]?(.*?)['"]?\s*\)""", re.I)


@dataclass
class ImageCandidate:
    url: str
    source: str  # "meta", "img" or "background"
    in_logo_context: bool = False


def class_and_id(el: Tag) -> str:
    classes = el.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    return " ".join(classes + [el.get("id") or ""]).lower()


def _declared_size(el: Tag, attr: str) -> int | None:
    value = (el.get(attr) or "").strip().lower().removesuffix("px")
    return int(value) if value.isdigit() else None


def _in_logo_context(el: Tag, rules: ExtractionRules) -> bool:
    """True when the element sits in a logo, branding, header/nav or footer block."""
    if el.find_parent(list(rules.logo_container_tags)):
        return True

    parent = el.parent if isinstance(el.parent, Tag) else None
    for node in (el, parent):
        if node is None:
            continue
        attrs = class_and_id(node)
        if any(keyword in attrs for keyword in rules.logo_container_keywords):
            return True

    # "Studio Name Photography" / "Moments by Jane" captions next to a logo
    if parent is not None:
        text = parent.get_text(" ", strip=True)
        if text and len(text) <= rules.max_business_text and rules.business_name_re.search(text):
            return True

    if el.name == "img":
        label = f"{el.get('alt') or ''} {el.get('title') or ''}".lower()
        if "logo" in label or "photographer" in label:
            return True
        width = _declared_size(el, "width")
        height = _declared_size(el, "height")
        if (
            width is not None
            and height is not None
            and width < rules.min_declared_dimension
            and height < rules.min_declared_dimension
        ):
            return True

    return False


def collect_candidates(
    soup: BeautifulSoup, rules: ExtractionRules = DEFAULT_RULES
) -> list[ImageCandidate]:
    """Gather image URLs in priority order: meta tags, <img>, inline backgrounds."""
    candidates: list[ImageCandidate] = []

    for attr, value in rules.meta_image_attrs:
        meta = soup.find("meta", attrs={attr: value})
        if meta and meta.get("content"):
            candidates.append(ImageCandidate(url=meta["content"].strip(), source="meta"))

    for img in soup.find_all("img"):
        src = ""
        for attr in rules.image_src_attrs:
            src = (img.get(attr) or "").strip()
            if src and not src.startswith("data:"):
                break
            src = ""
        if src:
            candidates.append(
                ImageCandidate(url=src, source="img", in_logo_context=_in_logo_context(img, rules))
            )

    for el in soup.find_all(style=_BACKGROUND_URL_RE):
        style = el.get("style") or ""
        if "background" not in style.lower():
            continue
        match = _BACKGROUND_URL_RE.search(style)
        if match and match.group(1) and not match.group(1).startswith("data:"):
            candidates.append(
                ImageCandidate(
                    url=match.group(1).strip(),
                    source="background",
                    in_logo_context=_in_logo_context(el, rules),
                )
            )

    return candidates


def is_logo_or_branding(url: str, rules: ExtractionRules = DEFAULT_RULES) -> bool:
    """URL-only heuristics for logos, avatars, icons and thumbnails."""
    lowered = url.lower()
    path = urlparse(lowered).path

    if any(keyword in path for keyword in rules.logo_url_keywords):
        return True
    if rules.small_suffix_re.search(path):
        return True
    for match in rules.dimensions_re.finditer(path):
        width, height = int(match.group(1)), int(match.group(2))
        if width < rules.min_image_dimension and height < rules.min_image_dimension:
            return True
    return any(pattern.search(lowered) for pattern in rules.cdn_logo_patterns)


def resolve_url(raw: str, base_url: str) -> str | None:
    """Absolute http(s) URL for ``raw`` (root-relative, protocol-relative or bare)."""
    absolute = urljoin(base_url, raw.strip())
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute


def classify(
    candidates: list[ImageCandidate],
    source_url: str,
    rules: ExtractionRules = DEFAULT_RULES,
    fallback: list[str] | None = None,
) -> list[str]:
    """Ordered, deduplicated content images; stock images if nothing survives."""
    images: list[str] = []
    seen: set[str] = set()

    for candidate in candidates:
        if candidate.in_logo_context:
            continue
        url = resolve_url(candidate.url, source_url)
        if not url or url in seen:
            continue
        if is_logo_or_branding(url, rules):
            logger.debug(f"Dropping branding image {url}")
            continue
        seen.add(url)
        images.append(url)
        if len(images) >= rules.max_images:
            break

    if not images:
        images = list(fallback if fallback is not None else settings.STOCK_IMAGE_URLS)
    return images


def apply_hero_override(images: list[str], hero: str | None) -> list[str]:
    """Promote ``hero`` to index 0 if it is one of ``images``; otherwise no-op."""
    if not hero or hero not in images:
        return list(images)
    return [hero] + [img for img in images if img != hero]
