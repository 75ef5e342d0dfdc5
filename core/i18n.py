from __future__ import annotations

import gettext
from contextvars import ContextVar
from pathlib import Path

import polib

from core.logging_config import get_logger

DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES = frozenset({"en", "pt_BR"})
LOCALE_DIR = Path(__file__).resolve().parent.parent / "locales"
DOMAIN = "messages"

_current_locale: ContextVar[str] = ContextVar("current_locale", default=DEFAULT_LOCALE)
_translators: dict[str, gettext.NullTranslations] = {}
_logger = get_logger(__name__)


class POTranslations(gettext.NullTranslations):
    """Translations read straight from a .po catalog with polib."""

    def __init__(self, path: Path):
        super().__init__()
        self._catalog = {
            entry.msgid: entry.msgstr
            for entry in polib.pofile(str(path)).translated_entries()
        }

    def gettext(self, message: str) -> str:
        text = self._catalog.get(message)
        if text:
            return text
        if self._fallback:
            return self._fallback.gettext(message)
        return message


def set_locale(locale: str) -> None:
    """Set current request locale; unsupported tags fall back to 'en'."""
    _current_locale.set(locale if locale in SUPPORTED_LOCALES else DEFAULT_LOCALE)


def get_locale() -> str:
    return _current_locale.get()


def _load(locale: str) -> gettext.NullTranslations:
    """Compiled .mo when one was built, the .po source otherwise."""
    tr = gettext.translation(
        domain=DOMAIN,
        localedir=str(LOCALE_DIR),
        languages=[locale],
        fallback=True,
    )
    if type(tr) is gettext.NullTranslations:
        po_path = LOCALE_DIR / locale / "LC_MESSAGES" / f"{DOMAIN}.po"
        if po_path.exists():
            tr = POTranslations(po_path)
    return tr


def _get_translator(locale: str) -> gettext.NullTranslations:
    tr = _translators.get(locale)
    if tr is not None:
        return tr
    tr = _load(locale)
    if locale != DEFAULT_LOCALE:
        tr.add_fallback(_get_translator(DEFAULT_LOCALE))
    _translators[locale] = tr
    return tr


def translate(msgid: str, locale: str | None = None) -> str:
    """Catalog text for msgid; English catalog, then msgid itself, as fallbacks."""
    return _get_translator(locale or get_locale()).gettext(msgid)


def t(msgid: str, **params) -> str:
    """Translate msgid for the current locale and format it with params."""
    text = translate(msgid)
    if not params:
        return text
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError) as exc:
        _logger.warning("i18n_format_failed", msgid=msgid, params=list(params.keys()), error=str(exc))
        return text
