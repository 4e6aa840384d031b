"""Pure helpers for canonical keys, label names, and run markers."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date

LABEL_PREFIX = "VOD."
SUMMARY_SEPARATOR = "; \n"

_CANONICAL_URL_RE = re.compile(r"\((?P<url>https://www\.filmweb\.pl/[^)]+)\)$", re.MULTILINE)
_NON_WORD_RE = re.compile(r"\W")


def extract_canonical_key(text: str | None) -> str | None:
    """Return the Filmweb URL a task line ends with, or ``None``.

    The URL must be parenthesized and close a line, as in
    ``"Dune (https://www.filmweb.pl/film/Diuna-2021-...)"``.
    """

    if not text:
        return None
    match = _CANONICAL_URL_RE.search(text)
    if match is None:
        return None
    return match.group("url")


def normalize_provider_name(provider_name: str) -> str:
    """Strip non-word characters and upper-case: ``"Disney+"`` -> ``"DISNEY"``."""

    return _NON_WORD_RE.sub("", provider_name).upper()


def normalize_label_name(provider_name: str) -> str:
    return f"{LABEL_PREFIX}{normalize_provider_name(provider_name)}"


def build_label_names(
    provider_names: Iterable[str],
    *,
    excluded_names: frozenset[str] = frozenset(),
) -> list[str]:
    """Map provider names to label names, dropping excluded, empty, and repeated ones."""

    names: list[str] = []
    seen: set[str] = set()
    for provider_name in provider_names:
        normalized = normalize_provider_name(provider_name)
        if not normalized or normalized in excluded_names:
            continue
        label_name = f"{LABEL_PREFIX}{normalized}"
        if label_name in seen:
            continue
        seen.add(label_name)
        names.append(label_name)
    return names


def is_managed_label(name: str) -> bool:
    return name.startswith(LABEL_PREFIX)


def build_run_marker(today: date) -> str:
    return today.isoformat()


def is_marked(description: str | None, marker: str) -> bool:
    """True when a description equals the marker or starts with a marker line."""

    if not description:
        return False
    if description == marker:
        return True
    return description.splitlines()[0] == marker


def build_description(
    *,
    marker: str,
    labels: list[str],
    schedule: list[str],
    summary: bool,
) -> str:
    if not summary:
        return marker
    return "\n".join([marker, SUMMARY_SEPARATOR.join([*labels, *schedule])]).rstrip("\n")
