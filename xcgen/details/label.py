from functools import total_ordering
from typing import Optional


@total_ordering
class BuildLabel:
    """Canonical identifier of one build rule, e.g. ``//foo/bar:baz``."""

    __slots__ = ("value",)

    def __init__(self, value: str):
        value = value.strip()
        if not value:
            raise ValueError("build label must not be empty")
        self.value = value

    @property
    def package_name(self) -> Optional[str]:
        value = self.value
        if value.startswith("//"):
            value = value[2:]
        package, sep, _ = value.partition(":")
        if not sep:
            return None
        return package

    @property
    def target_name(self) -> Optional[str]:
        _, sep, name = self.value.partition(":")
        if sep:
            return name or None
        # //foo/bar is shorthand for //foo/bar:bar
        last = self.value.rstrip("/").rsplit("/", 1)[-1]
        return last or None

    @property
    def as_full_pbx_target_name(self) -> Optional[str]:
        value = self.value
        if value.startswith("//"):
            value = value[2:]
        if not value:
            return None
        return value.replace("/", "-").replace(":", "-")

    def __eq__(self, other) -> bool:
        if not isinstance(other, BuildLabel):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: "BuildLabel") -> bool:
        return self.value < other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"BuildLabel({self.value!r})"

    def __str__(self) -> str:
        return self.value
