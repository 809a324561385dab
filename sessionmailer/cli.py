"""Command-line interface for SessionMailer.

Usage:
    python -m sessionmailer.cli extract https://example.usesession.com/s/abc
    python -m sessionmailer.cli extract URL1 URL2 --mode auto --out email.html
    python -m sessionmailer.cli extract URL --primary-color "#1d3557" --heading-font Lora
    python -m sessionmailer.cli extract URL --hero URL=https://cdn.example.com/hero.jpg
    python -m sessionmailer.cli extract URL --output json > sessions.json
    python -m sessionmailer.cli compose sessions.json --paragraph-font Inter
"""

import argparse
import asyncio
import json
import re
import sys
from pathlib import Path

from sessionmailer.core.exceptions import ValidationError
from sessionmailer.core.logging_config import configure_logging
from sessionmailer.schemas.extract import ExtractSessionsResponse
from sessionmailer.schemas.session import BrandingOptions, SessionData

_HERO_SPLIT_RE = re.compile(r"=(?=https?://)")

_BRANDING_ARGS = (
    "primary_color",
    "secondary_color",
    "heading_text_color",
    "paragraph_text_color",
    "heading_font",
    "paragraph_font",
    "heading_font_size",
    "paragraph_font_size",
)


def _parse_hero(value: str) -> tuple[str, str]:
    # Both sides may carry query strings; the image starts at "=http"
    parts = _HERO_SPLIT_RE.split(value, maxsplit=1)
    if len(parts) != 2 or not parts[0]:
        raise argparse.ArgumentTypeError(f"expected URL=IMAGE, got {value!r}")
    return parts[0], parts[1]


def _font_size(value: str) -> int:
    try:
        size = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number of pixels, got {value!r}")
    if size < 1:
        raise argparse.ArgumentTypeError(f"font size must be at least 1, got {size}")
    return size


def _branding_from_args(args) -> BrandingOptions:
    values = {
        key: getattr(args, key) for key in _BRANDING_ARGS if getattr(args, key) is not None
    }
    if args.hero:
        values["session_hero_images"] = dict(args.hero)
    return BrandingOptions(**values)


def _emit(args, response: ExtractSessionsResponse):
    if args.output == "json":
        text = json.dumps(response.model_dump(by_alias=True, exclude_none=True), indent=2, ensure_ascii=False)
    else:
        text = response.email_html

    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
        print(f"Wrote {args.out}", file=sys.stderr)
    else:
        print(text)


async def _cmd_extract(args) -> int:
    """Fetch booking pages and compose the email."""
    from sessionmailer.services.orchestrator import SessionOrchestrator

    orchestrator = SessionOrchestrator(mode=args.mode)
    result = await orchestrator.process(args.urls, _branding_from_args(args))

    for session in result.sessions:
        status = f"FAILED ({session.error})" if session.error else "ok"
        print(f"[{status}] {session.url}: {session.title}", file=sys.stderr)

    _emit(
        args,
        ExtractSessionsResponse(
            success=True,
            sessions=result.sessions,
            email_html=result.email_html,
            raw_html=result.raw_html,
            is_multiple=result.is_multiple,
        ),
    )
    return 0


def _cmd_compose(args) -> int:
    """Recompose an email from a JSON file written by ``extract --output json``."""
    from sessionmailer.services.orchestrator import apply_hero_overrides, compose_email

    payload = json.loads(Path(args.sessions_file).read_text(encoding="utf-8"))
    raw_sessions = payload.get("sessions", []) if isinstance(payload, dict) else payload
    if not raw_sessions:
        print("error: no sessions in input file", file=sys.stderr)
        return 2

    branding = _branding_from_args(args)
    sessions = [
        apply_hero_overrides(SessionData.model_validate(item), branding) for item in raw_sessions
    ]
    email_html = compose_email(sessions, branding)
    _emit(
        args,
        ExtractSessionsResponse(
            success=True,
            sessions=sessions,
            email_html=email_html,
            raw_html=email_html,
            is_multiple=len(sessions) > 1,
        ),
    )
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--output", default="html", choices=["html", "json"],
        help="html: the email document; json: sessions + email (default: html)",
    )
    parser.add_argument("--out", default=None, help="Write output to FILE instead of stdout")

    branding = parser.add_argument_group("branding")
    branding.add_argument("--primary-color", default=None)
    branding.add_argument("--secondary-color", default=None)
    branding.add_argument("--heading-text-color", default=None)
    branding.add_argument("--paragraph-text-color", default=None)
    branding.add_argument("--heading-font", default=None)
    branding.add_argument("--paragraph-font", default=None)
    branding.add_argument("--heading-font-size", type=_font_size, default=None)
    branding.add_argument("--paragraph-font-size", type=_font_size, default=None)
    branding.add_argument(
        "--hero", action="append", type=_parse_hero, default=[], metavar="URL=IMAGE",
        help="Use IMAGE as the hero for session URL (repeatable)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sessionmailer",
        description="SessionMailer CLI: turn booking pages into HTML emails",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # --- extract ---
    extract_parser = subparsers.add_parser("extract", help="Extract sessions and compose an email")
    extract_parser.add_argument("urls", nargs="+", help="Booking page URL(s)")
    extract_parser.add_argument(
        "--mode", default=None, choices=["static", "dynamic", "auto"],
        help="Fetch strategy (default: FETCH_MODE setting)",
    )
    _add_common_arguments(extract_parser)

    # --- compose ---
    compose_parser = subparsers.add_parser(
        "compose", help="Recompose an email from previously extracted sessions"
    )
    compose_parser.add_argument("sessions_file", help="JSON file from `extract --output json`")
    _add_common_arguments(compose_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Logs go to stderr so the HTML on stdout stays clean
    configure_logging(
        log_format="text", log_level="DEBUG" if args.verbose else "WARNING", stream=sys.stderr
    )

    try:
        if args.command == "extract":
            return asyncio.run(_cmd_extract(args))
        return _cmd_compose(args)
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
