# validators.py
import re

from errors import ValidationError

MAX_NAME_LENGTH = 50
_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")


def validate_peer_name(name):
    """Проверяет имя пира.

    Имя должно быть длиной от 1 до 50 символов и содержать только
    ASCII-буквы, цифры, ``_`` и ``-``.

    Args:
        name (str): Имя пира.

    Returns:
        str: То же имя, если оно валидно.

    Raises:
        ValidationError: ``reason`` равен "length" или "charset".
    """
    if not isinstance(name, str) or not 1 <= len(name) <= MAX_NAME_LENGTH:
        length = len(name) if isinstance(name, str) else 0
        raise ValidationError(
            f"peer_name length must be 1-{MAX_NAME_LENGTH} characters. Given: {length}",
            reason="length",
        )
    if not _NAME_RE.fullmatch(name):
        raise ValidationError(
            "peer_name must only contain [a-zA-Z0-9_-] characters "
            "(no spaces, no special characters).",
            reason="charset",
        )
    return name
