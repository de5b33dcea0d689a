"""Text analysis used identically at index and query time."""

import re
import unicodedata
from collections.abc import Iterable

_HASH_TAG_RE = re.compile(r"#([\w-]+)")
_TOKEN_RE = re.compile(r"\w+")


def normalize_text(
    text: str,
    *,
    lowercase: bool = True,
    remove_accents: bool = True,
    remove_punctuation: bool = True,
    collapse_whitespace: bool = True,
) -> str:
    """
    Normalize text for matching purposes.

    Args:
        text: Input text to normalize
        lowercase: Convert to lowercase
        remove_accents: Remove diacritical marks (e -> e)
        remove_punctuation: Replace punctuation with whitespace
        collapse_whitespace: Replace multiple spaces with single space

    Returns:
        Normalized string suitable for comparison
    """
    if not text:
        return ""

    result = text

    if remove_accents:
        # Decompose unicode characters and remove combining marks
        nfkd = unicodedata.normalize("NFKD", result)
        result = "".join(c for c in nfkd if not unicodedata.combining(c))

    if lowercase:
        result = result.lower()

    if remove_punctuation:
        # Word boundaries survive so "fair-trade" tokenizes like "fair trade"
        result = re.sub(r"[^\w\s]", " ", result)

    if collapse_whitespace:
        result = re.sub(r"\s+", " ", result).strip()

    return result


def tokenize(text: str | None) -> list[str]:
    """Split text into lowercase, accent-free terms."""
    if not text:
        return []
    return _TOKEN_RE.findall(normalize_text(text))


def normalize_tag(tag: str) -> str | None:
    """
    Normalize a single tag.

    Handles the formats seen in user input:
    - "Solar" -> "solar"
    - "#solar" -> "solar"
    - " fair  trade " -> "fair-trade"

    Returns None for tags that are empty after normalization.
    """
    normalized = tag.strip().lstrip("#").strip().lower()
    normalized = re.sub(r"\s+", "-", normalized)
    return normalized or None


def normalize_tags(tags: Iterable[str] | None) -> frozenset[str]:
    """Normalize a collection of tags, dropping empties and duplicates."""
    if not tags:
        return frozenset()
    result = set()
    for tag in tags:
        normalized = normalize_tag(tag)
        if normalized:
            result.add(normalized)
    return frozenset(result)


def extract_hash_tags(text: str | None) -> list[str]:
    """Return the normalized `#tags` embedded in free text, in order of appearance."""
    if not text:
        return []
    tags: list[str] = []
    for match in _HASH_TAG_RE.findall(text):
        tag = normalize_tag(match)
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def remove_hash_tags(text: str | None) -> str:
    """Strip `#tags` from free text and collapse the remaining whitespace."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", _HASH_TAG_RE.sub(" ", text)).strip()
