from typing import List, Optional

from xcgen.config import GeneratorConfig
from xcgen.details.messages import MessageLogger
from xcgen.details.rule_graph import RuleGraph, RuleGraphError
from xcgen.generators.xcode.label_expansion import expand_target_labels


# Print the labels a project would be generated for, and the test suites
def targets_main(
    config: GeneratorConfig,
    rule_graph: RuleGraph,
    command_args: List[str],
) -> Optional[int]:
    assert not command_args
    try:
        rule_entry_map = rule_graph.rule_entries_for_labels(config.build_target_labels, config.options)
    except RuleGraphError as e:
        print(f"rule graph query failed: {e}")
        return 1
    expanded = expand_target_labels(
        config.build_target_labels, rule_entry_map, MessageLogger(), config.project_name
    )
    for label in expanded.labels:
        entry = rule_entry_map.any_rule_entry(label)
        print(f"{label} : {entry.type if entry else '?'}")
    for label, suite in sorted(expanded.test_suites.items()):
        print(f"{label} : test_suite")
        for test in sorted(suite.test_suite_dependencies):
            print(f"  {test}")
    return 0
