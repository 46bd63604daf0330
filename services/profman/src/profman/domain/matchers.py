"""Selection of manifest elements from user selectors.

A selector is classified once, in a fixed order: a digit-only string selects a
position, a string the store recognizes as a store path selects elements
containing that path, and anything else is a case-insensitive regular
expression that must match an element's whole attribute path. An element is
selected when any matcher accepts it; selectors that match nothing are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Callable, Iterable, Sequence

from profman.domain.errors import InvalidSelector
from profman.domain.manifest import ProfileElement

_POSITION_PATTERN = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class PositionMatcher:
    position: int

    def matches(self, element: ProfileElement, position: int) -> bool:
        return position == self.position


@dataclass(frozen=True)
class StorePathMatcher:
    path: str

    def matches(self, element: ProfileElement, position: int) -> bool:
        return self.path in element.store_paths


@dataclass(frozen=True)
class PatternMatcher:
    pattern: re.Pattern[str]

    def matches(self, element: ProfileElement, position: int) -> bool:
        if element.source is None:
            return False
        return self.pattern.fullmatch(element.source.attr_path) is not None


Matcher = PositionMatcher | StorePathMatcher | PatternMatcher


def parse_matcher(selector: str, is_store_path: Callable[[str], bool]) -> Matcher:
    if _POSITION_PATTERN.fullmatch(selector):
        return PositionMatcher(int(selector))
    if is_store_path(selector):
        return StorePathMatcher(selector)
    try:
        return PatternMatcher(re.compile(selector, re.IGNORECASE))
    except re.error as e:
        raise InvalidSelector(
            f"invalid element selector '{selector}': {e}",
            details={"selector": selector},
            cause=e,
        ) from e


def parse_matchers(
    selectors: Iterable[str], is_store_path: Callable[[str], bool]
) -> list[Matcher]:
    return [parse_matcher(selector, is_store_path) for selector in selectors]


def matches(element: ProfileElement, position: int, matchers: Sequence[Matcher]) -> bool:
    return any(matcher.matches(element, position) for matcher in matchers)
