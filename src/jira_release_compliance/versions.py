"""Ordering of fix version labels."""

import re

# First run of digits with up to two dotted components, not glued to other digits.
_COERCE_RE = re.compile(r"(?:^|\D)(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?=$|\D)")


def coerce_version(label: str) -> tuple[int, int, int] | None:
    """Coerce a version label into a (major, minor, patch) triple.

    Tolerates partial and decorated forms the way semver's ``coerce`` does:
    "6.15" -> (6, 15, 0), "v6.15.2-rc1" -> (6, 15, 2). Returns None when the
    label has no digits at all (e.g. "main").
    """
    match = _COERCE_RE.search(label or "")
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor or 0), int(patch or 0)


def compare_versions(version1: str, version2: str) -> int:
    """Three-way comparison of two version labels.

    Both labels coercible: numeric comparison of the triples. Otherwise the
    original strings are compared by code point.
    """
    v1 = coerce_version(version1)
    v2 = coerce_version(version2)

    if v1 is None or v2 is None:
        return (version1 > version2) - (version1 < version2)

    return (v1 > v2) - (v1 < v2)


def is_version_higher(version1: str, version2: str) -> bool:
    """Check if version1 is strictly higher than version2."""
    return compare_versions(version1, version2) > 0
