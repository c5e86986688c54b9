"""Rendering helpers for billing email notifications."""
from __future__ import annotations

import html
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .providers import OutboundEmail

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_PLACEHOLDER = re.compile(r"{{\s*(\w+)\s*}}")


@lru_cache(maxsize=None)
def _template_source(name: str) -> str:
    return (_TEMPLATE_DIR / name).read_text(encoding="utf-8")


def render(name: str, context: Dict[str, Any]) -> str:
    """Substitute ``{{ key }}`` placeholders; values are escaped in html templates."""

    escape = name.endswith(".html.j2")

    def _value(match: re.Match[str]) -> str:
        value = context.get(match.group(1))
        text = "" if value is None else str(value)
        return html.escape(text) if escape else text

    return _PLACEHOLDER.sub(_value, _template_source(name)).strip()


def render_upgrade_email(*, email: str, name: Optional[str], plan: str, app_name: str) -> OutboundEmail:
    context = {"name": name or "there", "email": email, "plan": plan, "app_name": app_name}
    return OutboundEmail(
        recipients=(email,),
        subject=render("upgrade_subject.txt.j2", context),
        text_body=render("upgrade_body.txt.j2", context),
        html_body=render("upgrade_body.html.j2", context),
    )


def render_cancellation_survey(
    *, recipients: Sequence[str], app_name: str, sender: Optional[str] = None
) -> OutboundEmail:
    """Plain-text feedback request sent once to every member of a cancelled project."""

    context = {"app_name": app_name}
    return OutboundEmail(
        recipients=tuple(address for address in recipients if address),
        subject=render("cancellation_survey_subject.txt.j2", context),
        text_body=render("cancellation_survey_body.txt.j2", context),
        sender=sender,
    )


__all__ = ["render", "render_cancellation_survey", "render_upgrade_email"]
