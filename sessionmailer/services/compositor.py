"""Email template composition.

Pure functions: ``SessionData`` + ``BrandingOptions`` in, HTML out. The
output depends only on the arguments, so recomposing with the same inputs
is byte-identical. All text and URLs pass through ``escape``; all branding
values interpolated into CSS pass through ``css_value``.
"""

from html import escape
from urllib.parse import quote

from sessionmailer.core.exceptions import ComposeError
from sessionmailer.schemas.session import BrandingOptions, SessionData
from sessionmailer.services.formatter import (
    DEFAULT_HEADING_STACK,
    DEFAULT_PARAGRAPH_STACK,
    GOOGLE_FONTS,
    css_value,
    font_stack,
    format_description,
)

MULTI_SESSION_TITLE = "Photography Sessions"
GALLERY_LIMIT = 4


def google_fonts_url(fonts: list[str]) -> str:
    """Stylesheet URL for the Google-hosted fonts among ``fonts``, or ``""``."""
    families: list[str] = []
    for font in fonts:
        if font in GOOGLE_FONTS and font not in families:
            families.append(font)
    if not families:
        return ""
    query = "&".join(f"family={'+'.join(font.split())}" for font in families)
    return f"https://fonts.googleapis.com/css2?{query}&display=swap"


def _font_link(branding: BrandingOptions) -> str:
    url = google_fonts_url([branding.heading_font, branding.paragraph_font])
    return f'<link href="{escape(url)}" rel="stylesheet">' if url else ""


def _gradient(branding: BrandingOptions) -> str:
    return (
        f"linear-gradient(135deg, {css_value(branding.primary_color)} 0%, "
        f"{css_value(branding.secondary_color)} 100%)"
    )


def _with_query(url: str, **params: str) -> str:
    query = "&".join(f"{key}={quote(value, safe='')}" for key, value in params.items())
    return f"{url}{'&' if '?' in url else '?'}{query}"


def stylesheet(branding: BrandingOptions, max_width: int = 600) -> str:
    """Shared ``<style>`` rules, including the <=600px and <=480px breakpoints."""
    primary = css_value(branding.primary_color)
    heading_color = css_value(branding.heading_text_color)
    heading_size = int(branding.heading_font_size)
    paragraph_size = int(branding.paragraph_font_size)
    heading_family = font_stack(branding.heading_font, DEFAULT_HEADING_STACK)
    paragraph_family = font_stack(branding.paragraph_font, DEFAULT_PARAGRAPH_STACK)

    return f"""
        body {{
            margin: 0;
            padding: 0;
            font-family: {paragraph_family};
            background-color: #ffffff;
            line-height: 1.6;
            -webkit-text-size-adjust: 100%;
            -ms-text-size-adjust: 100%;
        }}
        .email-wrapper {{
            max-width: {max_width}px;
            margin: 0 auto;
            background: #fff;
            box-shadow: 0 4px 6px rgba(0,0,0,0.1);
            border-radius: 8px;
            overflow: hidden;
        }}
        .hero-image {{
            width: 100%;
            height: auto;
            display: block;
            max-height: 400px;
            object-fit: cover;
        }}
        .header {{
            background: {_gradient(branding)};
            padding: 40px 30px;
            text-align: center;
        }}
        .content {{
            padding: 30px;
        }}
        .title {{
            font-size: {heading_size}px;
            font-weight: 700;
            margin: 0;
            font-family: {heading_family};
            color: {heading_color};
        }}
        .details-box {{
            background-color: #f8f9fa;
            border-radius: 8px;
            padding: 20px;
            margin: 25px 0;
            border-left: 4px solid {primary};
        }}
        .detail-item {{
            margin: 10px 0;
            font-size: 15px;
            color: #555;
        }}
        .detail-label {{
            font-weight: 600;
            color: #333;
            display: inline-block;
            min-width: 70px;
        }}
        .gallery-container {{
            text-align: center;
            padding: 10px 0;
        }}
        .gallery-image {{
            width: 110px;
            height: 110px;
            object-fit: cover;
            border-radius: 8px;
            margin: 6px;
        }}
        .time-slots-container {{
            text-align: center;
        }}
        .time-slot {{
            display: inline-block;
            background-color: #f8f9fa;
            color: #333;
            padding: 8px 16px;
            margin: 4px;
            border-radius: 20px;
            border: 1px solid #dee2e6;
            font-size: 14px;
            font-weight: 500;
        }}
        .cta-section {{
            text-align: center;
            margin: 30px 0;
            padding: 30px 20px;
            background-color: #fafafa;
            border-radius: 8px;
        }}
        .book-now-btn {{
            display: inline-block !important;
            background-color: {primary} !important;
            color: #ffffff !important;
            padding: 15px 35px !important;
            text-decoration: none !important;
            border-radius: 25px !important;
            font-weight: bold !important;
            font-size: 16px !important;
            margin: 20px 0 !important;
            min-width: 200px !important;
            box-sizing: border-box !important;
        }}

        @media only screen and (max-width: 600px) {{
            .email-wrapper {{
                margin: 0 !important;
                border-radius: 0 !important;
                box-shadow: none !important;
            }}
            .header {{
                padding: 25px 20px !important;
            }}
            .title {{
                font-size: {max(20, heading_size - 8)}px !important;
                line-height: 1.3 !important;
            }}
            .content {{
                padding: 20px !important;
            }}
            .details-box {{
                padding: 15px !important;
                margin: 20px 0 !important;
            }}
            .detail-item {{
                font-size: {max(12, paragraph_size - 2)}px !important;
                margin: 8px 0 !important;
            }}
            .detail-label {{
                display: block !important;
                margin-bottom: 2px !important;
                min-width: auto !important;
            }}
            .gallery-image {{
                width: 80px !important;
                height: 80px !important;
            }}
            .time-slot {{
                padding: 6px 12px !important;
                margin: 2px !important;
                font-size: 13px !important;
            }}
            .book-now-btn {{
                width: 90% !important;
                max-width: 280px !important;
                padding: 18px 20px !important;
                font-size: 18px !important;
                margin: 25px auto !important;
                display: block !important;
            }}
            .hero-image {{
                max-height: 250px !important;
            }}
        }}

        @media only screen and (max-width: 480px) {{
            .title {{
                font-size: {max(18, heading_size - 10)}px !important;
            }}
            .content {{
                padding: 15px !important;
            }}
            .gallery-image {{
                width: 70px !important;
                height: 70px !important;
            }}
        }}
"""


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _hero_section(session: SessionData) -> str:
    if not session.images:
        return ""
    return (
        f'<img src="{escape(session.images[0])}" alt="{escape(session.title)}" class="hero-image" '
        f'style="width: 100%; height: auto; display: block; max-height: 400px; object-fit: cover;">'
    )


def _title_section(session: SessionData, branding: BrandingOptions) -> str:
    heading_family = font_stack(branding.heading_font, DEFAULT_HEADING_STACK)
    return f"""
        <div class="header" style="background: {_gradient(branding)}; padding: 40px 30px; text-align: center;">
            <h1 class="title" style="font-size: {int(branding.heading_font_size)}px; font-weight: 700; margin: 0; font-family: {heading_family}; color: {css_value(branding.heading_text_color)};">{escape(session.title)}</h1>
        </div>"""


def _gallery_section(session: SessionData) -> str:
    gallery = session.images[1 : 1 + GALLERY_LIMIT]
    if not gallery:
        return ""
    items = "".join(
        f'<a href="{escape(image)}" target="_blank" style="text-decoration: none;">'
        f'<img src="{escape(image)}" alt="{escape(session.title)} - Image {index}" class="gallery-image" '
        f'style="width: 110px; height: 110px; object-fit: cover; border-radius: 8px; margin: 6px;"></a>'
        for index, image in enumerate(gallery, start=2)
    )
    return f"""
            <div style="margin: 30px 0; text-align: center;">
                <div class="gallery-container">{items}</div>
            </div>"""


def _details_section(session: SessionData, branding: BrandingOptions) -> str:
    rows = (("📅 Date:", session.date), ("📍 Location:", session.location), ("💰 Price:", session.price))
    items = "".join(
        f'<div class="detail-item" style="margin: 10px 0; font-size: 15px; color: #555;">'
        f'<span class="detail-label" style="font-weight: 600; color: #333;">{label}</span> {escape(value)}</div>'
        for label, value in rows
    )
    return f"""
            <div class="details-box" style="background-color: #f8f9fa; border-radius: 8px; padding: 20px; margin: 25px 0; border-left: 4px solid {css_value(branding.primary_color)};">{items}</div>"""


def _time_chip(href: str, label: str) -> str:
    return (
        f'<a href="{escape(href)}" target="_blank" style="text-decoration: none;">'
        f'<span class="time-slot" style="display: inline-block; margin: 3px 5px 3px 0; padding: 8px 16px; '
        f'background: #f8f9fa; border: 1px solid #dee2e6; border-radius: 20px; font-size: 14px; color: #333;">'
        f"{escape(label)}</span></a>"
    )


def _scheduling_section(session: SessionData, source_url: str, branding: BrandingOptions) -> str:
    primary = css_value(branding.primary_color)
    heading = '<h3 style="font-size: 18px; color: #333; margin: 0 0 15px 0; font-weight: 600;">{}</h3>'

    if any(pair.times for pair in session.date_time_pairs):
        groups = []
        for pair in session.date_time_pairs:
            if pair.times:
                chips = "".join(
                    _time_chip(_with_query(source_url, date=pair.date, time=time), time)
                    for time in pair.times
                )
                body = f'<div class="time-slots-container">{chips}</div>'
            else:
                body = '<p style="margin: 0; color: #666; font-style: italic;">Time slots to be announced</p>'
            groups.append(
                f'<div class="session-date-group" style="margin-bottom: 20px; padding: 15px; background: #f8f9fa; '
                f'border-radius: 8px; border-left: 4px solid {primary};">'
                f'<h4 style="margin: 0 0 10px 0; color: {primary}; font-size: 16px; font-weight: 600;">'
                f"{escape(pair.date)}</h4>{body}</div>"
            )
        return f"""
            <div style="margin: 25px 0;">
                {heading.format("Available Sessions:")}
                <div class="date-groups">{"".join(groups)}</div>
            </div>"""

    if session.time_slots:
        chips = "".join(
            _time_chip(slot.booking_url or source_url, slot.time) for slot in session.time_slots
        )
        return f"""
            <div style="margin: 25px 0;">
                {heading.format("Available Times:")}
                <div class="time-slots-container">{chips}</div>
            </div>"""

    return ""


def _cta_section(source_url: str, branding: BrandingOptions) -> str:
    color = css_value(branding.paragraph_text_color)
    return f"""
            <div class="cta-section" style="text-align: center; margin: 30px 0; padding: 30px 20px; background-color: #fafafa; border-radius: 8px;">
                <h3 style="margin: 0 0 15px 0; color: {color};">Ready to Book?</h3>
                <p style="margin: 0 0 20px 0; color: {color}; font-size: 14px;">Secure your spot for this amazing photography session!</p>
                <a href="{escape(source_url)}" class="book-now-btn" style="display: inline-block; background-color: {css_value(branding.primary_color)}; color: #ffffff; padding: 15px 35px; text-decoration: none; border-radius: 25px; font-weight: bold; font-size: 16px;">Book This Session</a>
            </div>"""


def _divider(branding: BrandingOptions) -> str:
    return (
        '<div class="session-divider" style="margin: 20px 0; text-align: center;">'
        f'<div style="height: 2px; background: {_gradient(branding)}; margin: 20px auto; '
        'width: 100px; border-radius: 2px;"></div></div>'
    )


def _document(title: str, branding: BrandingOptions, body: str, max_width: int = 600) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape(title)}</title>
    {_font_link(branding)}
    <style>{stylesheet(branding, max_width)}    </style>
</head>
<body>
    <div class="email-wrapper">{body}
    </div>
</body>
</html>"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compose_session_content(
    session: SessionData, branding: BrandingOptions, source_url: str | None = None
) -> str:
    """One session's sections without the ``<html>`` wrapper."""
    source_url = source_url or session.url
    description = format_description(
        session.description,
        branding.paragraph_font,
        branding.paragraph_font_size,
        branding.paragraph_text_color,
    )
    return f"""
        <div class="session-content">
        {_hero_section(session)}{_title_section(session, branding)}
        <div class="content" style="padding: 30px;">
            {description}{_gallery_section(session)}{_details_section(session, branding)}{_scheduling_section(session, source_url, branding)}{_cta_section(source_url, branding)}
        </div>
        </div>"""


def compose_single(
    session: SessionData, branding: BrandingOptions, source_url: str | None = None
) -> str:
    """Complete single-session email document."""
    return _document(session.title, branding, compose_session_content(session, branding, source_url))


def compose_multiple(sessions: list[SessionData], branding: BrandingOptions) -> str:
    """Several sessions in one document, separated by a single gradient divider each."""
    if not sessions:
        raise ComposeError("compose_multiple needs at least one session")
    body = _divider(branding).join(
        compose_session_content(session, branding) for session in sessions
    )
    return _document(
        MULTI_SESSION_TITLE,
        branding,
        f'\n        <div class="sessions-container">{body}\n        </div>',
        max_width=650,
    )
