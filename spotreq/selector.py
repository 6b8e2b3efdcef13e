"""Resolve the image, key pair and security group to launch with."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import TypeVar

from rich.pretty import pretty_repr

from spotreq.exceptions import AmbiguousMatchError, NoRecordsAvailableError
from spotreq.models import Image, KeyPair, SecurityGroup

logger = logging.getLogger("spotreq.selector")

T = TypeVar("T")


def resolve_unique(
    records: Sequence[T],
    predicate: Callable[[T], bool],
    what: str,
    pattern: str,
    describe: Callable[[T], str] = str,
) -> T:
    """Return the single record satisfying *predicate*.

    Raises NoRecordsAvailableError if *records* is empty, AmbiguousMatchError if
    zero or several records match. The error lists the matches when there are
    several, otherwise everything that was available.
    """
    if not records:
        raise NoRecordsAvailableError(what)
    matches = [r for r in records if predicate(r)]
    logger.debug("resolve %s %r -> %s", what, pattern, pretty_repr(matches))
    if len(matches) == 1:
        return matches[0]
    listed = matches if matches else records
    raise AmbiguousMatchError(
        what, pattern, [describe(r) for r in listed], matched=len(matches),
    )


def latest_image(images: Sequence[Image]) -> Image:
    """Most recently created image.

    Creation dates are ISO-8601 strings, so lexical order is chronological.
    """
    if not images:
        raise NoRecordsAvailableError("images")
    ordered = sorted(images, key=lambda i: i.created, reverse=True)
    logger.debug("images, most recent first %s", pretty_repr(ordered))
    return ordered[0]


def select_key_pair(key_pairs: Sequence[KeyPair], pattern: re.Pattern[str]) -> KeyPair:
    return resolve_unique(
        key_pairs,
        lambda k: bool(pattern.search(k.name)),
        "key pair",
        pattern.pattern,
        describe=lambda k: k.name,
    )


def select_security_group(
    groups: Sequence[SecurityGroup], pattern: re.Pattern[str],
) -> SecurityGroup:
    """Security group whose id, name or description matches *pattern*."""
    return resolve_unique(
        groups,
        lambda g: any(pattern.search(v) for v in (g.group_id, g.name, g.description)),
        "security group",
        pattern.pattern,
        describe=lambda g: f"{g.group_id} ({g.name}: {g.description})",
    )
