"""Detection of character mentions in message text."""

import re
from typing import List, Optional

from .types import CharacterProfile, Message


EXPLICIT = "explicit"   # @Name, @id, or listed in message.mentions
NAMED = "named"         # name appears in the text

MENTION_RE = re.compile(r'@([^@\s,，。！？；：\n]+)')


def parse_mentions(text: str) -> List[str]:
    """Names following an @, in order, without duplicates."""
    names: List[str] = []
    for match in MENTION_RE.finditer(text or ""):
        name = match.group(1).strip()
        if name and name not in names:
            names.append(name)
    return names


def mention_kind(message: Message, character: Optional[CharacterProfile]) -> Optional[str]:
    """
    Classify how a message refers to a character.

    Returns:
        EXPLICIT, NAMED, or None when the character is not referenced
    """
    if character is None:
        return None

    text = (message.text or "").lower()
    name = (character.name or "").lower()
    char_id = (character.id or "").lower()

    if (name and f"@{name}" in text) or (char_id and f"@{char_id}" in text):
        return EXPLICIT
    listed = {m.lower() for m in message.mentions}
    if (name and name in listed) or (char_id and char_id in listed):
        return EXPLICIT
    if name and name in text:
        return NAMED
    return None
