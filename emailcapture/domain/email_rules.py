"""
Email address grammar and normalization.

The grammar is deliberately permissive (it is not full RFC 5322):

    address     = local-part "@" domain
    local-part  = atom *("." atom) | '"' 1*(any char except '"' and '@') '"'
    atom        = 1*(any char except  < > ( ) [ ] \\ . , ; : @ "  and whitespace)
    domain      = 1*(label ".") alpha-label | "[" ipv4 "]"
    label       = 1*(ALPHA | DIGIT | "-")
    alpha-label = 2*ALPHA
    ipv4        = 1*3DIGIT "." 1*3DIGIT "." 1*3DIGIT "." 1*3DIGIT

At most one "@" can appear, since neither side of the grammar admits one.
"""
from __future__ import annotations

import re
from typing import Any

from .errors import EMAIL_INVALID, EMAIL_REQUIRED, ValidationError

_ATOM = r'[^<>()\[\]\\.,;:\s@"]+'
_LOCAL = rf'(?:{_ATOM}(?:\.{_ATOM})*|"[^"@]+")'
_IPV4_LITERAL = r"\[[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\]"
_HOSTNAME = r"(?:[a-zA-Z0-9\-]+\.)+[a-zA-Z]{2,}"

EMAIL_PATTERN = re.compile(rf"^{_LOCAL}@(?:{_IPV4_LITERAL}|{_HOSTNAME})$")


def is_valid_email(value: str) -> bool:
    return EMAIL_PATTERN.fullmatch(value) is not None


def normalize_email(value: str) -> str:
    """Canonical identity used for lookups and storage."""
    return value.strip().lower()


def validate_email(raw: Any) -> str:
    """Presence check, format check, then normalization.

    Returns the normalized email or raises ValidationError. The format is
    checked on the trimmed value, so surrounding whitespace never makes an
    otherwise valid address invalid.
    """
    if raw is None:
        raise ValidationError(EMAIL_REQUIRED)
    if not isinstance(raw, str):
        raise ValidationError(EMAIL_INVALID)
    trimmed = raw.strip()
    if not trimmed:
        raise ValidationError(EMAIL_REQUIRED)
    if not is_valid_email(trimmed):
        raise ValidationError(EMAIL_INVALID)
    return normalize_email(trimmed)
