"""Tag normalization and construction helpers."""

from collections.abc import Iterable

_ESCAPE_MAP = {"\\": "\\\\", ":": "\\:"}


def normalize_tag(tag: str) -> str | None:
    """Return the stripped tag, or None when nothing is left."""
    tag = str(tag).strip()
    return tag or None


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Normalize tags in order, dropping empty ones. Duplicates are kept."""
    result: list[str] = []
    for tag in tags:
        normalized = normalize_tag(tag)
        if normalized is not None:
            result.append(normalized)
    return result


def join_tag(*parts: object) -> str:
    """
    Build a string tag from hierarchical parts.

    Example:
        join_tag("catalog", 12)          # "catalog:12"
        join_tag("catalog", "a:b")       # "catalog:a\\:b"
    """

    def escape(part: str) -> str:
        result = part
        for char, escaped in _ESCAPE_MAP.items():
            result = result.replace(char, escaped)
        return result

    return ":".join(escape(str(p)) for p in parts)


def entity_tag(kind: str, entity_id: int) -> str | None:
    """Tag shared by every entry built from one entity, e.g. "iblock_id_5".

    Returns None for non-positive ids.
    """
    if int(entity_id) <= 0:
        return None
    return f"{kind}_id_{int(entity_id)}"
