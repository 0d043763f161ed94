import re
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_DIGIT = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")


def derive_client_id(
    email: Optional[str] = None,
    phone: Optional[str] = None,
    name: Optional[str] = None,
) -> str:
    """
    Stable primary key for a client record built from its contact data.

    First match wins: email, then phone (more than 5 digits), then the name
    slug. Two people sharing an email or phone resolve to the same key.
    """
    if email and email.strip():
        cleaned = _NON_ALNUM.sub("", email.strip().lower())
        if cleaned:
            return f"client_{cleaned}"

    digits = _NON_DIGIT.sub("", phone or "")
    if len(digits) > 5:
        return f"client_tel_{digits}"

    slug = _WHITESPACE.sub("_", (name or "").strip().lower())
    if not slug:
        raise ValueError("cannot derive a client id without email, phone or name")
    return f"client_{slug}"
