"""Accept-Language parsing (RFC 7231 §5.3.5, RFC 5646 language tags).

parse_accept_language() turns every Accept-Language header value into a list
of canonical language tags, highest quality first. Ties keep header order.

Entries are dropped (never raised) when:
  - the range is ``*`` (it names no locale)
  - the tag is not ``alpha{1,8}(-alnum{1,8})*``
  - the quality is not a number in 0..1, or is 0 ("not acceptable")
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from httpmeta.headers.tokenizer import split_quoted
from httpmeta.utils.logger import get_logger

logger = get_logger(__name__)

_LANGUAGE_TAG = re.compile(r"^[A-Za-z]{1,8}(?:-[A-Za-z0-9]{1,8})*$")

_WILDCARD = "*"


def canonical_language_tag(tag: str) -> str:
    """Case-normalize a language tag: ``EN-us`` → ``en-US``, ``zh-hant-tw`` → ``zh-Hant-TW``."""
    primary, *subtags = tag.replace("_", "-").split("-")
    parts = [primary.lower()]
    for subtag in subtags:
        if len(subtag) == 2 and subtag.isalpha():
            parts.append(subtag.upper())
        elif len(subtag) == 4 and subtag.isalpha():
            parts.append(subtag.title())
        else:
            parts.append(subtag.lower())
    return "-".join(parts)


def _quality(params: str) -> Optional[float]:
    for param in params.split(";"):
        key, _, value = param.partition("=")
        if key.strip().lower() != "q":
            continue
        try:
            quality = float(value.strip())
        except ValueError:
            return None
        return quality if 0.0 <= quality <= 1.0 else None
    return 1.0


def parse_accept_language(values: Iterable[str]) -> list[str]:
    """Parse Accept-Language header values into ranked language tags.

    Args:
        values: Every Accept-Language header value, in header order.

    Returns:
        Distinct canonical tags, highest quality first; empty when nothing usable.

    Example::

        parse_accept_language(["da, en-gb;q=0.8, en;q=0.7"])
        # ['da', 'en-GB', 'en']
    """
    ranked: list[tuple[float, str]] = []
    for value in values:
        for item in split_quoted(value, ","):
            tag, _, params = item.partition(";")
            tag = tag.strip().replace("_", "-")
            if not tag or tag == _WILDCARD:
                continue
            if not _LANGUAGE_TAG.match(tag):
                logger.debug("Ignoring malformed language range", value=item.strip())
                continue
            quality = _quality(params)
            if quality is None:
                logger.debug("Ignoring language range with invalid quality", value=item.strip())
                continue
            if quality > 0.0:
                ranked.append((quality, canonical_language_tag(tag)))

    ranked.sort(key=lambda entry: entry[0], reverse=True)
    return list(dict.fromkeys(tag for _, tag in ranked))
