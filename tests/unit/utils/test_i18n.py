"""Unit tests for message translation."""

import pytest

from verigate.core.config.settings import settings
from verigate.utils import i18n
from verigate.utils.i18n import get_translated_message, setup_i18n


def test_setup_loads_every_supported_language():
    setup_i18n()

    assert set(settings.SUPPORTED_LANGUAGES) <= set(i18n._catalogs)


@pytest.mark.parametrize(
    "locale, expected",
    [
        ("en", "Email is already verified"),
        ("es", "El correo electrónico ya está verificado"),
        (None, "Email is already verified"),
        ("xx", "Email is already verified"),
    ],
)
def test_translates_with_default_fallback(locale, expected):
    assert get_translated_message("email_already_verified", locale) == expected


def test_placeholders_survive_translation():
    message = get_translated_message("verification_rate_limited", "es")

    assert message.format(seconds=42) == (
        "Demasiadas solicitudes de código de verificación. Inténtelo de nuevo en 42 segundos."
    )


def test_unknown_key_is_returned_unchanged():
    assert get_translated_message("no_such_message", "en") == "no_such_message"
