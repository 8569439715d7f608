"""
Localized strings for messages sent to end users.

Lookups take a (locale, key, substitutions) triple and never raise: an
unsupported locale falls back to the default table and a missing key falls
back to the key itself.
"""

from typing import Optional

MESSAGES = {
    "en": {
        "downtimeMessage": (
            "<b>The bot is temporarily unavailable.</b>\n\n"
            "We are already working on it and will be back shortly. "
            "Your data is safe and nothing needs to be done on your side.\n\n"
            "Questions? Contact support: {support}"
        ),
    },
    "ru": {
        "downtimeMessage": (
            "<b>Бот временно недоступен.</b>\n\n"
            "Мы уже работаем над восстановлением и скоро вернёмся. "
            "Ваши данные в безопасности, от вас ничего не требуется.\n\n"
            "Есть вопросы? Напишите в поддержку: {support}"
        ),
    },
}


def resolve_locale(language_code: Optional[str], default: str = "en") -> str:
    """Map a Telegram ``language_code`` (e.g. ``en-GB``) onto a supported locale."""
    if not language_code:
        return default
    primary = language_code.replace("_", "-").split("-", 1)[0].lower()
    if primary in MESSAGES:
        return primary
    return default


def translate(locale: str, key: str, default: str = "en", **substitutions) -> str:
    table = MESSAGES.get(locale) or MESSAGES.get(default, {})
    template = table.get(key)
    if template is None:
        template = MESSAGES.get(default, {}).get(key, key)
    return template.format(**substitutions)
