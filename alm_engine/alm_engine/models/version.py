"""Four-part Dataverse solution version.

Solution versions follow the ``Major.Minor.Build.Revision`` convention used by
the Dataverse platform.  Comparison is lexicographic over the four components
so that ``1.2.10.0 > 1.2.9.99``.  Parsing is strict: anything other than four
dotted non-negative integers is rejected rather than guessed at.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Dataverse stores each component as a signed 32-bit integer.
MAX_COMPONENT = 2**31 - 1

_VERSION_RE = re.compile(r"^\s*(\d+)\.(\d+)\.(\d+)\.(\d+)\s*$")


class VersionParseError(ValueError):
    """Raised when a solution version string is not four dotted integers."""


class SolutionVersion(BaseModel):
    """Immutable ``Major.Minor.Build.Revision`` solution version."""

    model_config = ConfigDict(frozen=True)

    major: int = Field(..., ge=0, le=MAX_COMPONENT)
    minor: int = Field(..., ge=0, le=MAX_COMPONENT)
    build: int = Field(..., ge=0, le=MAX_COMPONENT)
    revision: int = Field(..., ge=0, le=MAX_COMPONENT)

    @model_validator(mode="before")
    @classmethod
    def _accept_dotted_string(cls, value: Any) -> Any:
        """Allow ``"1.2.3.4"`` wherever a version is embedded in another model."""
        if isinstance(value, str):
            return _split(value)
        return value

    @classmethod
    def parse(cls, text: str) -> SolutionVersion:
        """Parse a dotted version string.

        Raises
        ------
        VersionParseError
            If *text* is not exactly four dotted non-negative integers.
        """
        if not isinstance(text, str):
            raise VersionParseError(f"Solution version must be a string, got {type(text).__name__}")
        return cls(**_split(text))

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.major, self.minor, self.build, self.revision)

    def same_major_minor(self, other: SolutionVersion) -> bool:
        """True when *other* shares this version's major and minor components."""
        return self.major == other.major and self.minor == other.minor

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.build}.{self.revision}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SolutionVersion):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SolutionVersion):
            return NotImplemented
        return self.as_tuple() <= other.as_tuple()

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SolutionVersion):
            return NotImplemented
        return self.as_tuple() > other.as_tuple()

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SolutionVersion):
            return NotImplemented
        return self.as_tuple() >= other.as_tuple()


def _split(text: str) -> dict[str, int]:
    match = _VERSION_RE.match(text)
    if match is None:
        raise VersionParseError(f"Invalid solution version {text!r}: expected Major.Minor.Build.Revision")
    major, minor, build, revision = (int(part) for part in match.groups())
    for part in (major, minor, build, revision):
        if part > MAX_COMPONENT:
            raise VersionParseError(f"Invalid solution version {text!r}: component {part} exceeds {MAX_COMPONENT}")
    return {"major": major, "minor": minor, "build": build, "revision": revision}
