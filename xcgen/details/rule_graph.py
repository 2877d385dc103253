# Access to build rule metadata.
#
# The generator never talks to the build system directly. It asks a RuleGraph
# for the entries of a set of labels and for the build files defining them.
# JsonRuleGraph serves these answers from a document produced ahead of time.

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from xcgen.details.label import BuildLabel
from xcgen.details.options import GeneratorOptions
from xcgen.details.rule_entry import RuleEntry, RuleEntryMap

logger = logging.getLogger(__name__)


class RuleGraphError(Exception):
    pass


class RuleGraph(ABC):
    execution_root: Optional[str] = None

    @abstractmethod
    def rule_entries_for_labels(
        self, labels: Iterable[BuildLabel], options: GeneratorOptions
    ) -> RuleEntryMap:
        pass

    @abstractmethod
    def extract_buildfiles(self, labels: Iterable[BuildLabel]) -> List[str]:
        pass

    def has_queued_messages(self) -> bool:
        return False

    def drain_messages(self) -> List[str]:
        return []


class JsonRuleGraph(RuleGraph):
    def __init__(
        self,
        rules: Iterable[RuleEntry],
        buildfiles: Optional[Mapping[str, List[str]]] = None,
        messages: Iterable[str] = (),
        execution_root: Optional[str] = None,
    ):
        self.entries = RuleEntryMap(rules)
        self.buildfiles = {BuildLabel(k): list(v) for k, v in (buildfiles or {}).items()}
        self.messages = list(messages)
        self.execution_root = execution_root

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "JsonRuleGraph":
        try:
            rules = [RuleEntry.from_dict(rule) for rule in data.get("rules", [])]
        except ValueError as e:
            raise RuleGraphError(f"malformed rule entry: {e}") from e
        return JsonRuleGraph(
            rules=rules,
            buildfiles=data.get("buildfiles"),
            messages=data.get("messages", []),
            execution_root=data.get("execution_root"),
        )

    @staticmethod
    def load(path: Union[str, Path]) -> "JsonRuleGraph":
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RuleGraphError(f"failed to read rule graph '{path}': {e}") from e
        return JsonRuleGraph.from_dict(data)

    def _closure(self, labels: Iterable[BuildLabel]) -> List[BuildLabel]:
        # Every label reachable through any relation of the requested entries
        seen: Dict[BuildLabel, None] = {}
        pending = list(labels)
        while pending:
            label = pending.pop(0)
            if label in seen:
                continue
            seen[label] = None
            for entry in self.entries.rule_entries(label):
                pending.extend(sorted(entry.dependencies))
                pending.extend(sorted(entry.extensions))
                pending.extend(sorted(entry.linked_target_labels))
                pending.extend(sorted(entry.test_suite_dependencies))
        return list(seen)

    def rule_entries_for_labels(
        self, labels: Iterable[BuildLabel], options: GeneratorOptions
    ) -> RuleEntryMap:
        result = RuleEntryMap()
        for label in self._closure(labels):
            for entry in self.entries.rule_entries(label):
                result.insert(entry)
        logger.debug("resolved %d rule entries", len(result))
        return result

    def extract_buildfiles(self, labels: Iterable[BuildLabel]) -> List[str]:
        paths: List[str] = []
        for label in self._closure(labels):
            for path in self.buildfiles.get(label, []):
                if path not in paths:
                    paths.append(path)
        return paths

    def has_queued_messages(self) -> bool:
        return bool(self.messages)

    def drain_messages(self) -> List[str]:
        messages, self.messages = self.messages, []
        return messages
