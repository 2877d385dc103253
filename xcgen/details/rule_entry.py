# Rule metadata as returned by the rule graph.
#
# A RuleEntry describes one build rule: its type, attributes and the labels it
# is related to (dependencies, extensions, test hosts and test suite members).
# Entries are immutable once created.

import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from xcgen.details.label import BuildLabel

TEST_SUITE_RULE = "test_suite"


@dataclass(frozen=True)
class FileInfo:
    path: str  # Relative to the workspace root
    is_generated: bool = False


def _labels(values: Iterable[str]) -> FrozenSet[BuildLabel]:
    return frozenset(BuildLabel(v) for v in values)


@dataclass(frozen=True)
class RuleEntry:
    label: BuildLabel
    type: str
    attributes: Mapping[str, Any] = field(default_factory=dict, compare=False)
    dependencies: FrozenSet[BuildLabel] = frozenset()
    extensions: FrozenSet[BuildLabel] = frozenset()
    linked_target_labels: FrozenSet[BuildLabel] = frozenset()
    test_suite_dependencies: FrozenSet[BuildLabel] = frozenset()
    sdk_root: Optional[str] = None
    extension_type: Optional[str] = None
    source_files: Tuple[FileInfo, ...] = ()
    includes: Tuple[str, ...] = ()
    defines: Tuple[str, ...] = ()
    framework_imports: Tuple[str, ...] = ()

    @property
    def is_test_suite(self) -> bool:
        return self.type == TEST_SUITE_RULE

    @property
    def framework_search_paths(self) -> List[str]:
        # Framework search paths point at the directory holding each .framework
        paths: List[str] = []
        for framework in self.framework_imports:
            parent = os.path.dirname(framework.rstrip("/"))
            if parent not in paths:
                paths.append(parent)
        return paths

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "RuleEntry":
        try:
            label = BuildLabel(data["label"])
            rule_type = data["type"]
        except KeyError as e:
            raise ValueError(f"rule entry is missing required key {e}") from e
        sources = []
        for src in data.get("srcs", []):
            if isinstance(src, str):
                sources.append(FileInfo(path=src))
            else:
                sources.append(
                    FileInfo(path=src["path"], is_generated=bool(src.get("generated")))
                )
        return RuleEntry(
            label=label,
            type=rule_type,
            attributes=dict(data.get("attributes", {})),
            dependencies=_labels(data.get("deps", [])),
            extensions=_labels(data.get("extensions", [])),
            linked_target_labels=_labels(data.get("linked_targets", [])),
            test_suite_dependencies=_labels(data.get("tests", [])),
            sdk_root=data.get("sdk_root"),
            extension_type=data.get("extension_type"),
            source_files=tuple(sources),
            includes=tuple(data.get("includes", [])),
            defines=tuple(data.get("defines", [])),
            framework_imports=tuple(data.get("framework_imports", [])),
        )


class RuleEntryMap:
    """Maps labels to the rule entries the rule graph returned for them.

    A label may resolve to several entries (e.g. one per build configuration).
    Entries are kept in declaration order and ``any_rule_entry`` always picks
    the first one, so lookups are deterministic.
    """

    def __init__(self, entries: Iterable[RuleEntry] = ()):
        self._entries: Dict[BuildLabel, List[RuleEntry]] = {}
        for entry in entries:
            self.insert(entry)

    def insert(self, entry: RuleEntry) -> None:
        existing = self._entries.setdefault(entry.label, [])
        if entry not in existing:
            existing.append(entry)

    def rule_entries(self, label: BuildLabel) -> List[RuleEntry]:
        return list(self._entries.get(label, []))

    def any_rule_entry(self, label: BuildLabel) -> Optional[RuleEntry]:
        entries = self._entries.get(label)
        return entries[0] if entries else None

    def has_any_rule_entry(self, label: BuildLabel) -> bool:
        return bool(self._entries.get(label))

    @property
    def labels(self) -> List[BuildLabel]:
        return list(self._entries.keys())

    def __iter__(self) -> Iterator[RuleEntry]:
        for entries in self._entries.values():
            yield from entries

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
