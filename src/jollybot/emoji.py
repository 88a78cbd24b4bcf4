"""Skull emoji classification.

A "skull" is any of the unicode skull glyphs, or a custom emoji whose name
contains ``skull`` (case-insensitive). The jollyskull itself is never a skull,
otherwise every replacement would trigger another one.
"""

from __future__ import annotations

from typing import Callable

from jollybot.models import Emoji

# Variation-selector form first so the bare glyph doesn't leave a stray U+FE0F
UNICODE_SKULLS: tuple[str, ...] = ("💀", "☠️", "☠")

SKULL = "skull"
JOLLYSKULL = "jollyskull"

_WHITESPACE = (" ", "\n", "\t")


def is_skull_name(name: str) -> bool:
    """Check whether an emoji name reads as a skull but not the jollyskull."""
    lowered = name.lower()
    return SKULL in lowered and JOLLYSKULL not in lowered


def is_skull_emoji(emoji: Emoji) -> bool:
    """Check if an emoji is skull-class.

    Args:
        emoji: Emoji from a reaction event or reaction summary.

    Returns:
        True for unicode skull glyphs and skull-named custom emoji,
        False for the jollyskull and everything else.
    """
    if emoji.name in UNICODE_SKULLS:
        return True
    return is_skull_name(emoji.name)


def is_skull_custom_emoji(tag: str) -> bool:
    """Check if a custom emoji tag like ``<:name:id>`` or ``<a:name:id>`` is a skull."""
    parts = tag.split(":")
    if len(parts) < 2:
        return False
    return is_skull_name(parts[1])


def filter_custom_emojis(content: str, should_remove: Callable[[str], bool]) -> str:
    """Drop ``<...>`` tags matching a predicate and keep everything else.

    The scan only looks for ``<`` and ``>``; it does not check that a tag is
    actually an emoji. A ``<`` with no closing ``>`` is kept as-is.

    Args:
        content: Text to scan.
        should_remove: Called with each full tag, including the brackets.

    Returns:
        The text with matching tags removed.
    """
    result: list[str] = []
    while content:
        start = content.find("<")
        if start == -1:
            result.append(content)
            break

        result.append(content[:start])
        content = content[start:]

        end = content.find(">")
        if end == -1:
            result.append(content)
            break

        tag = content[: end + 1]
        content = content[end + 1 :]

        if not should_remove(tag):
            result.append(tag)
    return "".join(result)


def is_skull_only_content(content: str) -> bool:
    """Check if message text is nothing but skull emoji and whitespace.

    Empty and whitespace-only messages are not skull-only.
    """
    for ws in _WHITESPACE:
        content = content.replace(ws, "")
    if not content:
        return False

    for skull in UNICODE_SKULLS:
        content = content.replace(skull, "")

    return filter_custom_emojis(content, is_skull_custom_emoji) == ""


def emoji_api_string(emoji: Emoji) -> str:
    """Format an emoji the way the reaction endpoints expect it.

    Custom emoji become ``name:id``; unicode emoji are passed through.
    """
    if emoji.id:
        return f"{emoji.name}:{emoji.id}"
    return emoji.name
