from __future__ import annotations

from keyboard_heroes.api.models import CharacterSet

LOWERCASE_LATIN = "abcdefghijklmnopqrstuvwxyz"
UPPERCASE_LATIN = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS = "0123456789"
SPECIAL = "!@#$%^&*()"
LOWERCASE_CYRILLIC = "абвгдеёжзийклмнопрстуфхцчшщъыьэюя"
UPPERCASE_CYRILLIC = "АБВГДЕЁЖЗИЙКЛМНОПРСТУФХЦЧШЩЪЫЬЭЮЯ"

FALLBACK_POOL: tuple[str, ...] = ("a", "b", "c")


def generate_character_pool(character_set: CharacterSet) -> list[str]:
    """Build the spawn pool for a character set.

    Order is fixed: Latin lower, Latin upper, digits, punctuation, Cyrillic lower,
    Cyrillic upper. Uppercase Cyrillic is gated on the shared `uppercase` flag.
    `english` only labels results and never changes the pool.
    """

    pool: list[str] = []
    if character_set.lowercase:
        pool.extend(LOWERCASE_LATIN)
    if character_set.uppercase:
        pool.extend(UPPERCASE_LATIN)
    if character_set.numbers:
        pool.extend(DIGITS)
    if character_set.special:
        pool.extend(SPECIAL)
    if character_set.russian:
        pool.extend(LOWERCASE_CYRILLIC)
        if character_set.uppercase:
            pool.extend(UPPERCASE_CYRILLIC)

    return pool or list(FALLBACK_POOL)
