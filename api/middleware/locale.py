from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.i18n import DEFAULT_LOCALE, set_locale


def _pick_from_accept_language(al: str) -> str:
    """Best tag by q weight, e.g. 'pt-BR,pt;q=0.9,en;q=0.7' -> 'pt-BR'."""
    items = []
    for position, part in enumerate(al.split(",")):
        lang, _, q_part = part.strip().partition(";")
        if not lang:
            continue
        q = 1.0
        if q_part.strip().startswith("q="):
            try:
                q = float(q_part.strip()[2:])
            except ValueError:
                q = 0.0
        items.append((-q, position, lang.strip()))
    if not items:
        return DEFAULT_LOCALE
    return min(items)[2]


def normalize_locale(lang: str) -> str:
    """Map browser tags onto the supported locales (pt_BR, en)."""
    tag = (lang or DEFAULT_LOCALE).replace("_", "-").lower()
    if tag == "pt" or tag.startswith("pt-"):
        return "pt_BR"
    return DEFAULT_LOCALE


class LocaleMiddleware(BaseHTTPMiddleware):
    """Locale for responses and notification emails.

    Priority: ?lang=xx > X-Lang > Accept-Language > 'en'.
    """

    async def dispatch(self, request: Request, call_next):
        lang = request.query_params.get("lang") or request.headers.get("X-Lang")
        if not lang:
            al = request.headers.get("Accept-Language", "")
            lang = _pick_from_accept_language(al) if al else DEFAULT_LOCALE
        locale = normalize_locale(lang)
        set_locale(locale)
        request.state.locale = locale
        return await call_next(request)
