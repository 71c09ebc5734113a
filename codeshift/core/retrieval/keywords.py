"""Command expansion for semantic search."""

import re
from typing import List

from ..migration.technology import MIGRATION_LEXICON, TECHNOLOGY_KEYWORDS

_WORD_RE = re.compile(r"\S+")


def technology_keywords(command: str) -> List[str]:
    """Tag plus keyword set of every technology the command mentions.

    A technology counts as mentioned when its tag or any of its keywords
    occurs in the command (case-insensitive substring).
    """
    lowered = (command or "").lower()
    found: List[str] = []
    for tech, keywords in TECHNOLOGY_KEYWORDS.items():
        if tech in lowered or any(k in lowered for k in keywords):
            found.append(tech)
            found.extend(keywords)
    return list(dict.fromkeys(found))


def lexicon_terms(command: str) -> List[str]:
    lowered = (command or "").lower()
    return [term for term in MIGRATION_LEXICON if term in lowered]


def expand_command(command: str) -> str:
    """Raw command followed by technology keywords and lexicon terms.

    Appended terms are deduplicated and skipped when the command already
    contains them as a word.
    """
    command = (command or "").strip()
    present = {w.lower() for w in _WORD_RE.findall(command)}
    extra: List[str] = []
    for term in technology_keywords(command) + lexicon_terms(command):
        if term not in present:
            present.add(term)
            extra.append(term)
    return " ".join([command] + extra) if extra else command


def command_tokens(command: str, min_length: int = 4) -> List[str]:
    """Lower-cased whitespace tokens of at least ``min_length`` characters."""
    return [w for w in (command or "").lower().split() if len(w) >= min_length]
