"""
URL resolution for rewritten references.

Turns whatever appears in a reference-bearing attribute into one of
three outcomes: an absolute URL that should be routed through the
gateway, a reference that must be left exactly as written (script,
data and mail links, in-page fragments), or nothing usable at all.
Only the first outcome ever causes an attribute to change.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urljoin, urlsplit

# References the browser handles itself; routing them through the
# gateway would break anchors, inline scripts and embedded data.
PASS_THROUGH_PATTERN = re.compile(r"^(javascript:|data:|mailto:|#)", re.IGNORECASE)


class ResolutionKind(str, Enum):
    """Possible outcomes of resolving a reference."""

    ABSOLUTE = "absolute"
    PASS_THROUGH = "pass_through"
    UNRESOLVABLE = "unresolvable"


@dataclass(frozen=True)
class Resolution:
    """Result of ``resolve``; ``value`` is empty for ``UNRESOLVABLE``."""

    kind: ResolutionKind
    value: str = ""

    @property
    def is_absolute(self) -> bool:
        return self.kind is ResolutionKind.ABSOLUTE


UNRESOLVABLE = Resolution(ResolutionKind.UNRESOLVABLE)


def resolve(reference: object, base: str) -> Resolution:
    """
    Resolve *reference* against *base*.

    Scheme-relative (``//host/path``), absolute-path (``/path``) and
    relative (``path``) forms are all resolved with standard relative-URL
    rules.  Surrounding whitespace is ignored, as browsers ignore it.

    Args:
        reference: The raw attribute value.  Anything that is not a
            non-empty string is unresolvable.
        base: The URL the document was served from after redirects.

    Returns:
        A ``Resolution`` describing what the caller should do.
    """
    if not isinstance(reference, str):
        return UNRESOLVABLE
    reference = reference.strip()
    if not reference:
        return UNRESOLVABLE
    if PASS_THROUGH_PATTERN.match(reference):
        return Resolution(ResolutionKind.PASS_THROUGH, reference)

    try:
        absolute = urljoin(base, reference)
        parts = urlsplit(absolute)
        parts.port  # raises ValueError on a non-numeric or out-of-range port
    except ValueError:
        return UNRESOLVABLE

    if not parts.scheme:
        return UNRESOLVABLE
    return Resolution(ResolutionKind.ABSOLUTE, absolute)
