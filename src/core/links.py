"""URL helpers for notice links (core domain).

Notice posts carry a link to a known bonus domain, either as a clickable
text link or as plain text. The code lives in the URL and the kind of
notice (weekly, monthly, ...) is inferred from the caption and the URL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import parse_qs, quote, urlparse

from core.models import AnnotationKind, InboundMessage

_TRAILING_PUNCTUATION = re.compile(r"[)\]}.,;!?]+$")
_CODE_TOKEN = re.compile(r"^[A-Za-z0-9]{3,40}$")
_CODE_PARAMS = ("code", "bonus", "c")


@dataclass(frozen=True)
class NoticeKind:
    """A recognized notice type with its title and description templates."""

    name: str
    title: str
    description: str


# Checked in order; "pre monthly" must win over plain "monthly".
NOTICE_KINDS = (
    (
        re.compile(r"pre[\s_-]?monthly", re.IGNORECASE),
        NoticeKind(
            name="pre_monthly",
            title="BONUS PRE-MONTHLY - {MONTH}",
            description="Le bonus pre-monthly de {MONTH} est disponible dès le rang {RANK_MIN}.",
        ),
    ),
    (
        re.compile(r"post[\s_-]?monthly", re.IGNORECASE),
        NoticeKind(
            name="post_monthly",
            title="BONUS POST-MONTHLY - {MONTH}",
            description="Le bonus post-monthly de {MONTH} est disponible dès le rang {RANK_MIN}.",
        ),
    ),
    (
        re.compile(r"monthly", re.IGNORECASE),
        NoticeKind(
            name="monthly",
            title="BONUS MONTHLY - {MONTH}",
            description="Le bonus mensuel de {MONTH} est disponible dès le rang {RANK_MIN}.",
        ),
    ),
    (
        re.compile(r"weekly", re.IGNORECASE),
        NoticeKind(
            name="weekly",
            title="BONUS WEEKLY - {DATE}",
            description="Le bonus hebdomadaire du {DATE} est disponible dès le rang {RANK_MIN}.",
        ),
    ),
)


def _domain_pattern(domain: str) -> str:
    return rf"(?:www\.)?{re.escape(domain.lower())}"


def is_known_host(host: str, domains: Iterable[str]) -> bool:
    host = (host or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host in {domain.lower() for domain in domains}


def normalize_url(raw_url: Optional[str], domains: Iterable[str] = ()) -> Optional[str]:
    """Clean up a URL as it appears in chat text."""

    if not raw_url:
        return None
    domains = tuple(domains)
    url = _TRAILING_PUNCTUATION.sub("", str(raw_url).strip())
    if url.startswith("//"):
        url = "https:" + url
    for domain in domains:
        if re.match(rf"^{_domain_pattern(domain)}\b", url, re.IGNORECASE):
            url = "https://" + url
            break
    parsed = urlparse(url)
    # Instant-view wrappers hide the real link in the "url" parameter.
    if parsed.hostname == "t.me" and parsed.path == "/iv":
        inner = parse_qs(parsed.query).get("url")
        if inner:
            return normalize_url(inner[0], domains)
    return url


def find_notice_url(message: InboundMessage, domains: Iterable[str]) -> Optional[str]:
    """Return the first known-domain URL, preferring clickable text links."""

    domains = tuple(domains)
    if not domains:
        return None
    for annotation in message.annotations:
        if annotation.kind is AnnotationKind.TEXT_URL and annotation.url:
            candidate = normalize_url(annotation.url, domains)
            if candidate and is_known_host(urlparse(candidate).hostname or "", domains):
                return candidate

    alternatives = "|".join(_domain_pattern(domain) for domain in domains)
    match = re.search(rf"https?://(?:{alternatives})[^\s)]+", message.text or "", re.IGNORECASE)
    if match:
        return normalize_url(match.group(0), domains)
    return None


def extract_code_from_url(url: str) -> Optional[str]:
    """Read the code from a query parameter or the last path segment."""

    parsed = urlparse(url)
    params = parse_qs(parsed.query)
    for name in _CODE_PARAMS:
        for value in params.get(name, []):
            value = value.strip()
            if _CODE_TOKEN.match(value):
                return value
    segments = [segment for segment in parsed.path.split("/") if segment]
    if not segments or not _CODE_TOKEN.match(segments[-1]):
        return None
    # "/weekly" names the notice, not the code.
    if any(pattern.search(segments[-1]) for pattern, _ in NOTICE_KINDS):
        return None
    return segments[-1]


def classify_notice(text: str, url: str) -> Optional[NoticeKind]:
    haystack = f"{text or ''}\n{url or ''}"
    for pattern, kind in NOTICE_KINDS:
        if pattern.search(haystack):
            return kind
    return None


def build_link(template: str, code: str) -> str:
    return template.replace("{code}", quote(code, safe=""))
