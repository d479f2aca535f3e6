from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

MAX_EXAMPLES = 3

SELECTOR_KEYS = ("selector", "fullPath")
XPATH_KEYS = ("xpath", "xPath")

# Applied in order; every rule is idempotent on its own output.
POSITIONAL_PSEUDO = re.compile(
    r":(?:nth-child|nth-of-type|nth-last-child|nth-last-of-type)\(\s*\d+\s*\)"
    r"|:(?:first|last)-(?:child|of-type)(?![\w-])"
)
NUMERIC_ATTRIBUTE = re.compile(r"\[\s*([^\]=~|^$*\s]+)\s*=\s*([\"']?)\d+\2\s*\]")
# Hex-like build hashes after the last separator; must contain a digit.
HASH_TAIL = re.compile(r"(\.[\w-]*[-_])(?=[A-Fa-f]*\d)[A-Fa-f0-9]{6,}(?![\w-])")
NUMERIC_TAIL = re.compile(r"([#.][\w-]*?)\d+(?![\w-])")
REPEATED_COMBINATOR = re.compile(r">\s*(?:>\s*)+")
EDGE_COMBINATOR = re.compile(r"^\s*>\s*|\s*>\s*$")
WHITESPACE = re.compile(r"\s+")

XPATH_INDEX = re.compile(r"\[\s*\d+\s*\]")
XPATH_NUMERIC_PREDICATE = re.compile(r"\[\s*@([\w:.-]+)\s*=\s*(['\"]?)\d+\2\s*\]")


def normalize_selector(selector: Optional[str]) -> str:
    """Reduce a CSS selector to its structural template.

    ``.card:nth-child(7) > img`` and ``.card:nth-child(2) > img`` both become
    ``.card > img``; ``#item-123`` becomes ``#item-*`` and ``#item123`` becomes
    ``#item*``; hex build hashes such as ``.Component-abc123`` become
    ``.Component-*``. Static tokens such as ``header > img.logo`` are left alone.
    """
    if not selector:
        return ""

    value = POSITIONAL_PSEUDO.sub("", selector)
    value = NUMERIC_ATTRIBUTE.sub(r"[\1]", value)
    value = HASH_TAIL.sub(r"\1*", value)
    value = NUMERIC_TAIL.sub(r"\1*", value)

    value = WHITESPACE.sub(" ", value).strip()
    value = REPEATED_COMBINATOR.sub("> ", value)
    value = EDGE_COMBINATOR.sub("", value)
    return value.strip()


def normalize_xpath(xpath: Optional[str]) -> str:
    """Strip positional indices and numeric predicates from an XPath."""
    if not xpath:
        return ""

    value = XPATH_INDEX.sub("", xpath)
    value = XPATH_NUMERIC_PREDICATE.sub(r"[@\1]", value)
    return WHITESPACE.sub(" ", value).strip()


def _locator(element: object, use_xpath: bool) -> Optional[str]:
    if isinstance(element, str):
        return element
    if not isinstance(element, dict):
        return None
    for key in XPATH_KEYS if use_xpath else SELECTOR_KEYS:
        value = element.get(key)
        if value:
            return str(value)
    return None


def group_by_pattern(elements: Iterable[object], use_xpath: bool = False) -> dict[str, list[str]]:
    """Map each normalized template to the original locators that produce it.

    Elements without the requested locator are skipped. Buckets (and the
    locators inside them) keep first-seen order.
    """
    normalize = normalize_xpath if use_xpath else normalize_selector
    groups: dict[str, list[str]] = {}
    skipped = 0

    for element in elements or []:
        original = _locator(element, use_xpath)
        if not original:
            skipped += 1
            continue
        pattern = normalize(original)
        if not pattern:
            skipped += 1
            continue
        groups.setdefault(pattern, []).append(original)

    if skipped:
        logger.debug("Skipped %d element(s) without a usable %s", skipped, "xpath" if use_xpath else "selector")
    return groups


def count_unique_patterns(elements: Iterable[object], use_xpath: bool = False) -> int:
    return len(group_by_pattern(elements, use_xpath))


def get_pattern_groups(elements: Iterable[object], use_xpath: bool = False) -> list[dict]:
    groups = [
        {
            "pattern": pattern,
            "occurrences": len(originals),
            "examples": originals[:MAX_EXAMPLES],
        }
        for pattern, originals in group_by_pattern(elements, use_xpath).items()
    ]
    # sorted() is stable, so ties keep first-seen order.
    return sorted(groups, key=lambda group: group["occurrences"], reverse=True)


def calculate_pattern_stats(elements: Iterable[object], use_xpath: bool = False) -> dict:
    groups = get_pattern_groups(elements, use_xpath)

    total = sum(group["occurrences"] for group in groups)
    singletons = sum(1 for group in groups if group["occurrences"] == 1)
    template_ratio = round((total - singletons) / total, 4) if total else 0.0

    return {
        "total_occurrences": total,
        "unique_patterns": len(groups),
        "template_ratio": template_ratio,
        "by_pattern": groups,
    }
