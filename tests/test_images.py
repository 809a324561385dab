"""Tests for image collection and logo/branding classification."""

import dataclasses

import pytest

from sessionmailer.config import settings
from sessionmailer.services.extractor import parse_html
from sessionmailer.services.images import (
    ImageCandidate,
    apply_hero_override,
    classify,
    collect_candidates,
    is_logo_or_branding,
    resolve_url,
)
from sessionmailer.services.rules import DEFAULT_RULES

SOURCE_URL = "https://jane.usesession.com/s/fall-minis"


class TestIsLogoOrBranding:
    @pytest.mark.parametrize(
        "url",
        [
            "https://cdn.example.com/uploads/logo-sm.png",
            "https://cdn.example.com/uploads/photo_200x150.jpg",
            "https://www.gravatar.com/avatar/abc123",
            "https://cdn.example.com/team/photographer.jpg",
            "https://cdn.example.com/uploads/cover-thumb.jpg",
            "https://nyc3.digitaloceanspaces.com/1234/0f3a-9bc1-md.jpg",
        ],
    )
    def test_branding_urls(self, url):
        assert is_logo_or_branding(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "https://cdn.example.com/uploads/photo_1200x800.jpg",
            "https://cdn.example.com/uploads/family-portrait.jpg",
            "https://images.example.com/sessions/fall/hero.jpeg",
        ],
    )
    def test_content_urls(self, url):
        assert is_logo_or_branding(url) is False


class TestResolveUrl:
    def test_root_relative(self):
        assert resolve_url("/a/b.jpg", SOURCE_URL) == "https://jane.usesession.com/a/b.jpg"

    def test_protocol_relative(self):
        assert resolve_url("//cdn.example.com/b.jpg", SOURCE_URL) == "https://cdn.example.com/b.jpg"

    def test_non_http_rejected(self):
        assert resolve_url("mailto:jane@example.com", SOURCE_URL) is None
        assert resolve_url("ftp://files.example.com/a.jpg", SOURCE_URL) is None


class TestCollectCandidates:
    def test_priority_order_meta_img_background(self):
        soup = parse_html(
            '<html><head><meta property="og:image" content="https://cdn.example.com/og.jpg">'
            '</head><body><div style="background-image: url(\'/bg/cover.jpg\')">'
            '<img src="/photos/a.jpg"></div></body></html>'
        )
        candidates = collect_candidates(soup)

        assert [(c.source, c.url) for c in candidates] == [
            ("meta", "https://cdn.example.com/og.jpg"),
            ("img", "/photos/a.jpg"),
            ("background", "/bg/cover.jpg"),
        ]

    def test_lazy_src_and_data_uri_skipped(self):
        soup = parse_html(
            '<body><img src="data:image/gif;base64,R0lGOD" data-src="/photos/lazy.jpg"></body>'
        )
        assert [c.url for c in collect_candidates(soup)] == ["/photos/lazy.jpg"]

    def test_declared_small_size_is_logo_context(self):
        soup = parse_html('<body><img src="/a.jpg" width="120" height="40px"></body>')
        assert collect_candidates(soup)[0].in_logo_context is True

    def test_alt_text_marks_logo(self):
        soup = parse_html('<body><img src="/a.jpg" alt="Studio Logo"></body>')
        assert collect_candidates(soup)[0].in_logo_context is True

    def test_business_name_caption(self):
        soup = parse_html('<body><div><img src="/a.jpg"> Moments by Jane</div></body>')
        assert collect_candidates(soup)[0].in_logo_context is True

    def test_brand_container_class(self):
        soup = parse_html('<body><div class="brand-wrap"><img src="/a.jpg"></div></body>')
        assert collect_candidates(soup)[0].in_logo_context is True

    def test_plain_content_image(self):
        soup = parse_html(
            "<body><section><p>A long paragraph of session details that is well beyond "
            'a short business caption.</p><img src="/a.jpg"></section></body>'
        )
        assert collect_candidates(soup)[0].in_logo_context is False


class TestClassify:
    def test_resolves_deduplicates_and_filters(self):
        candidates = [
            ImageCandidate(url="/photos/a.jpg", source="img"),
            ImageCandidate(url="https://jane.usesession.com/photos/a.jpg", source="img"),
            ImageCandidate(url="mailto:jane@example.com", source="img"),
            ImageCandidate(url="/logos/studio.png", source="img"),
            ImageCandidate(url="/photos/b.jpg", source="img", in_logo_context=True),
            ImageCandidate(url="/photos/c.jpg", source="background"),
        ]

        assert classify(candidates, SOURCE_URL) == [
            "https://jane.usesession.com/photos/a.jpg",
            "https://jane.usesession.com/photos/c.jpg",
        ]

    def test_stock_images_when_nothing_survives(self):
        candidates = [ImageCandidate(url="/logo.png", source="img")]
        assert classify(candidates, SOURCE_URL) == settings.STOCK_IMAGE_URLS

    def test_explicit_fallback(self):
        assert classify([], SOURCE_URL, fallback=["https://x.example.com/f.jpg"]) == [
            "https://x.example.com/f.jpg"
        ]

    def test_max_images(self):
        rules = dataclasses.replace(DEFAULT_RULES, max_images=2)
        candidates = [ImageCandidate(url=f"/photos/{i}.jpg", source="img") for i in range(5)]
        assert len(classify(candidates, SOURCE_URL, rules)) == 2

    def test_default_cap_is_hero_plus_gallery(self):
        candidates = [ImageCandidate(url=f"/photos/{i}.jpg", source="img") for i in range(8)]
        images = classify(candidates, SOURCE_URL)
        assert images[-1] == "https://jane.usesession.com/photos/4.jpg"
        assert len(images) == 5


class TestApplyHeroOverride:
    def test_promotes_known_image(self):
        assert apply_hero_override(["a", "b", "c"], "c") == ["c", "a", "b"]

    def test_unknown_image_is_ignored(self):
        assert apply_hero_override(["a", "b"], "z") == ["a", "b"]

    def test_no_hero(self):
        images = ["a", "b"]
        result = apply_hero_override(images, None)
        assert result == images
        assert result is not images
