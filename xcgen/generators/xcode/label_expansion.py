# Expansion of requested labels into the set of labels to generate targets for.
#
# Requested labels expand across extensions (app -> watch app -> watch
# extension) and test suites (suite -> member tests). Test suites themselves
# are not buildable; they are returned separately so schemes can be made for them.

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from xcgen.details.label import BuildLabel
from xcgen.details.messages import MessageLogger
from xcgen.details.rule_entry import RuleEntry, RuleEntryMap


@dataclass(frozen=True)
class ExpandedTargets:
    labels: List[BuildLabel] = field(default_factory=list)
    test_suites: Dict[BuildLabel, RuleEntry] = field(default_factory=dict)


def expand_target_labels(
    labels: Iterable[BuildLabel],
    rule_entry_map: RuleEntryMap,
    message_logger: Optional[MessageLogger] = None,
    context: Optional[str] = None,
) -> ExpandedTargets:
    expanded: Dict[BuildLabel, None] = {}
    test_suites: Dict[BuildLabel, RuleEntry] = {}
    visited: Set[BuildLabel] = set()

    def expand(pending: Iterable[BuildLabel]) -> None:
        for label in sorted(pending):
            if label in visited:
                continue
            visited.add(label)
            rule_entries = rule_entry_map.rule_entries(label)
            if not rule_entries:
                if message_logger is not None:
                    message_logger.warning(
                        "UnresolvedTarget",
                        "Target %s could not be resolved and will be ignored",
                        label.value,
                        context=context,
                    )
                continue
            for rule_entry in rule_entries:
                if not rule_entry.is_test_suite:
                    expanded.setdefault(label, None)
                    # Listed even when unresolved so the generator reports them
                    for extension in sorted(rule_entry.extensions):
                        expanded.setdefault(extension, None)
                    # Extensions may have extensions of their own
                    expand(rule_entry.extensions)
                else:
                    test_suites.setdefault(rule_entry.label, rule_entry)
                    expand(rule_entry.test_suite_dependencies)

    expand(labels)
    return ExpandedTargets(labels=list(expanded), test_suites=test_suites)
