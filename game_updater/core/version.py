"""Dotted numeric version strings and their ordering."""

from __future__ import annotations

from functools import total_ordering

from game_updater.core.errors import MalformedVersion


@total_ordering
class Version:
    """Immutable version made of non-negative integer components.

    Components compare pairwise; when the overlapping prefix is equal the
    version with more components is greater, so ``1.2 < 1.2.0``.
    """

    __slots__ = ("_parts",)

    def __init__(self, parts: tuple[int, ...]):
        if not parts:
            raise MalformedVersion("", "no components")
        if any(part < 0 for part in parts):
            raise MalformedVersion(".".join(map(str, parts)), "negative component")
        object.__setattr__(self, "_parts", tuple(parts))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Version is immutable")

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a dot-delimited version string.

        Raises:
            MalformedVersion: If the string is empty or any component is not
                a non-negative integer
        """
        text = text.strip()
        if not text:
            raise MalformedVersion(text, "empty string")

        parts: list[int] = []
        for component in text.split("."):
            if not (component.isascii() and component.isdigit()):
                raise MalformedVersion(text)
            parts.append(int(component))
        return cls(tuple(parts))

    @property
    def parts(self) -> tuple[int, ...]:
        return self._parts

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._parts == other._parts

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return compare_versions(self, other) < 0

    def __hash__(self) -> int:
        return hash(self._parts)

    def __str__(self) -> str:
        return ".".join(str(part) for part in self._parts)

    def __repr__(self) -> str:
        return f"Version('{self}')"


def parse_version(text: str | Version) -> Version:
    """Parse ``text`` into a Version, passing Version instances through."""
    if isinstance(text, Version):
        return text
    return Version.parse(text)


def compare_versions(a: str | Version, b: str | Version) -> int:
    """Compare two versions.

    Args:
        a: First version (string or Version)
        b: Second version (string or Version)

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b

    Raises:
        MalformedVersion: If either string cannot be parsed

    Example:
        >>> compare_versions("1.2.0.0", "1.10.0.0")
        -1
        >>> compare_versions("1.2", "1.2.0")
        -1
    """
    left = parse_version(a).parts
    right = parse_version(b).parts

    for x, y in zip(left, right):
        if x != y:
            return -1 if x < y else 1

    if len(left) == len(right):
        return 0
    return -1 if len(left) < len(right) else 1
