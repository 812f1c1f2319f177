from __future__ import annotations

"""
Internationalization (i18n) utility module for user-facing messages.

This module provides functionality for:
- Loading the gettext catalogs shipped under `verigate/locales`
- Translating message keys for a requested language
- Falling back to the default language, then to the key itself

Catalogs are read from their *.po* sources with Babel, so a deployment never
depends on a separate compilation step for the *.mo* files.
"""

from pathlib import Path
from typing import Dict, Optional

from babel.messages.catalog import Catalog
from babel.messages.pofile import read_po
from structlog import get_logger

from verigate.core.config.settings import settings

logger = get_logger(__name__)

LOCALES_PATH = Path(__file__).resolve().parent.parent / "locales"
DOMAIN = "messages"

# Loaded catalogs keyed by language code
_catalogs: Dict[str, Catalog] = {}


def _load_catalog(lang: str) -> Optional[Catalog]:
    if lang in _catalogs:
        return _catalogs[lang]

    po_path = LOCALES_PATH / lang / "LC_MESSAGES" / f"{DOMAIN}.po"
    if not po_path.exists():
        logger.warning("i18n_catalog_missing", lang=lang, path=str(po_path))
        return None

    with po_path.open("rb") as po_file:
        catalog = read_po(po_file, locale=lang, domain=DOMAIN)
    _catalogs[lang] = catalog
    logger.debug("i18n_catalog_loaded", lang=lang, entries=len(catalog))
    return catalog


def setup_i18n() -> None:
    """Load the catalog of every supported language.

    Raises:
        FileNotFoundError: If the locales directory is not found.
    """
    if not LOCALES_PATH.exists():
        raise FileNotFoundError(f"Locales directory not found: {LOCALES_PATH}")

    for lang in settings.SUPPORTED_LANGUAGES:
        _load_catalog(lang)

    logger.info(
        "i18n_setup_complete",
        default_locale=settings.DEFAULT_LANGUAGE,
        languages=sorted(_catalogs),
    )


def get_translated_message(key: str, locale: Optional[str] = None) -> str:
    """
    Retrieve a translated message for the given key and locale.

    Unsupported locales fall back to DEFAULT_LANGUAGE; keys missing from the
    catalog come back unchanged.

    Args:
        key: The message key to translate.
        locale: The target language code (defaults to DEFAULT_LANGUAGE).

    Returns:
        The translated message or the original key if translation fails.
    """
    if locale is None:
        locale = settings.DEFAULT_LANGUAGE
    elif locale not in settings.SUPPORTED_LANGUAGES:
        logger.warning(
            "unsupported_locale_requested",
            requested_locale=locale,
            fallback_locale=settings.DEFAULT_LANGUAGE,
        )
        locale = settings.DEFAULT_LANGUAGE

    catalog = _load_catalog(locale)
    message = catalog.get(key) if catalog is not None else None
    if message is None or not message.string:
        logger.warning("translation_key_not_found", key=key, locale=locale)
        return key
    return message.string
