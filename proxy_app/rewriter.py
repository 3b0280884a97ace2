"""
HTML Reference Rewriter.

Walks a parsed HTML document and rewrites every reference-bearing
attribute so that following it leads back through the gateway's
``/proxy`` route instead of straight to the origin site.  Rewriting is
driven by a static rule table; each rule names a tag, an attribute and
the kind of value the attribute holds:

  * **Single URL attributes** (``a[href]``, ``img[src]`` ...) are
    resolved and replaced wholesale.
  * **Form actions** fall back to the page URL when absent, and POST
    forms get a hidden marker field recording the original method.
  * **Responsive image candidate lists** (``srcset``) are rewritten one
    candidate at a time, keeping descriptors and order.

References the resolver reports as pass-through or unresolvable are
never touched, so a broken reference cannot break the page.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import NamedTuple
from urllib.parse import quote

from bs4 import BeautifulSoup, Doctype, Tag

from proxy_app.resolver import resolve

logger = logging.getLogger(__name__)

# =====================================================================
# Constants
# =====================================================================

PROXY_ROUTE = "/proxy"
HOME_ROUTE = "/"

# Tree builder shipped with Python; tolerant of unclosed and misnested tags.
HTML_PARSER = "html.parser"

POST_MARKER_NAME = "_proxied_original_method"

BANNER_CLASS = "mini-proxy-banner"
BANNER_STYLE = "background:#f2f2f2;padding:6px 10px;border-bottom:1px solid #ddd;font-size:13px;"

_WHITESPACE = re.compile(r"\s+")
_DATA_URL = re.compile(r"^data:", re.IGNORECASE)


class RewriteKind(str, Enum):
    """How the value of a reference-bearing attribute is interpreted."""

    SINGLE_URL_ATTRIBUTE = "single_url_attribute"
    FORM_ACTION = "form_action"
    RESPONSIVE_LIST = "responsive_list"


class RewriteRule(NamedTuple):
    tag: str
    attribute: str
    kind: RewriteKind


REWRITE_RULES: tuple[RewriteRule, ...] = (
    RewriteRule("a", "href", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("area", "href", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("img", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("script", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("link", "href", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("iframe", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("source", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("video", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("video", "poster", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("audio", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("track", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("embed", "src", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("object", "data", RewriteKind.SINGLE_URL_ATTRIBUTE),
    RewriteRule("form", "action", RewriteKind.FORM_ACTION),
    RewriteRule("img", "srcset", RewriteKind.RESPONSIVE_LIST),
    RewriteRule("source", "srcset", RewriteKind.RESPONSIVE_LIST),
)

# =====================================================================
# Link Builders
# =====================================================================


def percent_encode(value: str) -> str:
    """Escape every reserved character so the value survives as one query parameter."""
    return quote(value, safe="")


def build_gateway_link(
    absolute_url: str,
    access_key: str | None = None,
    gateway_path: str = PROXY_ROUTE,
) -> str:
    """
    Encode *absolute_url* as a gateway-relative link.

    Args:
        absolute_url: The fully-resolved upstream URL.
        access_key: The caller's key; appended as ``&key=`` when present.
        gateway_path: Route that serves proxied content.

    Returns:
        A string such as ``/proxy?url=https%3A%2F%2Fexample.com%2F&key=abc``.
    """
    link = f"{gateway_path}?url={percent_encode(absolute_url)}"
    if access_key:
        link += f"&key={percent_encode(access_key)}"
    return link


def split_candidates(value: str) -> list[str]:
    """
    Split a ``srcset`` value on commas into trimmed candidates.

    A ``data:`` URL carries its own comma, so a piece that starts with
    ``data:`` and has not yet reached its descriptor absorbs the next
    piece.
    """
    candidates: list[str] = []
    for part in value.split(","):
        previous = candidates[-1].strip() if candidates else ""
        if _DATA_URL.match(previous) and not _WHITESPACE.search(previous):
            candidates[-1] += "," + part
        else:
            candidates.append(part)
    return [candidate.strip() for candidate in candidates]


def build_home_link(access_key: str | None = None) -> str:
    if access_key:
        return f"{HOME_ROUTE}?key={percent_encode(access_key)}"
    return HOME_ROUTE

# =====================================================================
# Rewriter
# =====================================================================


class LinkRewriter:
    """
    Rewrites one parsed document in place.

    A rewriter is bound to the URL the document was served from (after
    redirects) and to the caller's access key, and is discarded with
    the request.
    """

    def __init__(
        self,
        base_url: str,
        access_key: str | None = None,
        gateway_path: str = PROXY_ROUTE,
    ):
        self.base_url = base_url
        self.access_key = access_key or None
        self.gateway_path = gateway_path
        self._handlers = {
            RewriteKind.SINGLE_URL_ATTRIBUTE: self._rewrite_single_url,
            RewriteKind.FORM_ACTION: self._rewrite_form_action,
            RewriteKind.RESPONSIVE_LIST: self._rewrite_responsive_list,
        }

    def link_for(self, absolute_url: str) -> str:
        return build_gateway_link(absolute_url, self.access_key, self.gateway_path)

    def proxied(self, reference: object) -> str | None:
        """Return the gateway link for *reference*, or ``None`` to leave it alone."""
        resolution = resolve(reference, self.base_url)
        if not resolution.is_absolute:
            return None
        return self.link_for(resolution.value)

    def rewrite(self, soup: BeautifulSoup) -> None:
        """Apply every rule in ``REWRITE_RULES`` to *soup*."""
        for rule in REWRITE_RULES:
            handler = self._handlers[rule.kind]
            for element in soup.find_all(rule.tag):
                handler(soup, element, rule.attribute)

    def _rewrite_single_url(self, soup: BeautifulSoup, element: Tag, attribute: str) -> None:
        original = element.get(attribute)
        if not original:
            return
        link = self.proxied(original)
        if link is not None:
            element[attribute] = link

    def _rewrite_form_action(self, soup: BeautifulSoup, form: Tag, attribute: str) -> None:
        # An absent or empty action submits to the current page.
        action = form.get(attribute)
        if not isinstance(action, str) or not action.strip():
            action = self.base_url
        link = self.proxied(action)
        if link is None:
            return
        form[attribute] = link

        # POST is not replayed upstream; the marker only records the intent.
        method = form.get("method")
        if isinstance(method, str) and method.strip().upper() == "POST":
            marker = soup.new_tag(
                "input",
                attrs={"type": "hidden", "name": POST_MARKER_NAME, "value": "POST"},
            )
            form.insert(0, marker)

    def _rewrite_responsive_list(self, soup: BeautifulSoup, element: Tag, attribute: str) -> None:
        original = element.get(attribute)
        if not original or not isinstance(original, str):
            return
        element[attribute] = self.rewrite_candidates(original)

    def rewrite_candidates(self, value: str) -> str:
        """
        Rewrite a ``srcset``-style candidate list.

        Each comma-separated candidate is split on its first run of
        whitespace into a URL and an optional descriptor.  Candidates
        whose URL cannot be resolved are kept verbatim.
        """
        rewritten: list[str] = []
        for candidate in split_candidates(value):
            pieces = _WHITESPACE.split(candidate, maxsplit=1)
            url_part = pieces[0]
            descriptor = pieces[1] if len(pieces) > 1 else ""
            link = self.proxied(url_part)
            if link is None:
                rewritten.append(candidate)
            elif descriptor:
                rewritten.append(f"{link} {descriptor}")
            else:
                rewritten.append(link)
        return ", ".join(rewritten)

    def inject_banner(self, soup: BeautifulSoup) -> Tag:
        """
        Prepend the gateway banner to the document body.

        Must run after ``rewrite`` so the banner's own home link is left
        as written.  Without a ``<body>`` the banner goes where body
        content would start: after ``<head>``, else at the top of
        ``<html>``, else after any doctype.
        """
        banner = soup.new_tag("div", attrs={"class": BANNER_CLASS, "style": BANNER_STYLE})
        banner.append("Proxied via Mini Proxy | ")
        home = soup.new_tag("a", attrs={"href": build_home_link(self.access_key)})
        home.string = "Home"
        banner.append(home)

        if soup.body is not None:
            soup.body.insert(0, banner)
        elif soup.head is not None:
            soup.head.insert_after(banner)
        elif soup.html is not None:
            soup.html.insert(0, banner)
        else:
            soup.insert(_document_start(soup), banner)
        return banner


def _document_start(soup: BeautifulSoup) -> int:
    """Index of the first node after a leading doctype, or 0."""
    for index, node in enumerate(soup.contents):
        if isinstance(node, Doctype):
            return index + 1
        if isinstance(node, Tag):
            break
    return 0


def rewrite_html(
    markup: str,
    base_url: str,
    access_key: str | None = None,
    gateway_path: str = PROXY_ROUTE,
) -> str:
    """
    Parse *markup*, rewrite its references, add the banner and serialise.

    Args:
        markup: The upstream HTML as text.
        base_url: The post-redirect URL the markup was served from.
        access_key: The caller's key, propagated into every generated link.
        gateway_path: Route that serves proxied content.

    Returns:
        The rewritten document as a string.
    """
    soup = BeautifulSoup(markup, HTML_PARSER)
    rewriter = LinkRewriter(base_url, access_key, gateway_path)
    rewriter.rewrite(soup)
    rewriter.inject_banner(soup)
    logger.debug("Rewrote document from %s", base_url)
    return str(soup)
