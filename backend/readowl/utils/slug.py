import re
import unicodedata


def slugify(value: str) -> str:
    """ASCII, lowercase, hyphen-separated form of a title ("Ação Épica" -> "acao-epica")."""
    text = unicodedata.normalize("NFKD", str(value or "")).encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def unique_slug(base: str, taken) -> str:
    """
    Return ``base`` or the first of ``base-2``, ``base-3``... that ``taken`` rejects.

    ``taken`` is a callable answering whether a candidate slug is already used.
    """
    candidate = base
    suffix = 2
    while taken(candidate):
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate
