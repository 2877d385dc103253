# Scheme synthesis.
#
# One scheme is produced per build target and one per test suite. Schemes for
# test suites gather the suite's tests (recursively through nested suites) and
# run them against the first host any of them declares.

from typing import Dict, List, Optional, Set, Tuple

from xcgen.config import ProjectLayout
from xcgen.details.label import BuildLabel
from xcgen.details.messages import MessageLogger
from xcgen.details.options import GeneratorOptions, OptionKey
from xcgen.details.rule_entry import RuleEntry
from xcgen.generators.xcode.formatter import GIDGenerator
from xcgen.generators.xcode.model import PBXNativeTarget, ProductType, Target, product_type_for_rule
from xcgen.generators.xcode.scheme import (
    LaunchStyle,
    RunnableDebuggingMode,
    XcodeActionType,
    XcodeScheme,
)
from xcgen.generators.xcode.target_generator import GeneratedProjectInfo, unique_target_names

_PRE_ACTION_OPTIONS = {
    XcodeActionType.BUILD: OptionKey.BUILD_ACTION_PRE_ACTION_SCRIPT,
    XcodeActionType.LAUNCH: OptionKey.LAUNCH_ACTION_PRE_ACTION_SCRIPT,
    XcodeActionType.TEST: OptionKey.TEST_ACTION_PRE_ACTION_SCRIPT,
}

_POST_ACTION_OPTIONS = {
    XcodeActionType.BUILD: OptionKey.BUILD_ACTION_POST_ACTION_SCRIPT,
    XcodeActionType.LAUNCH: OptionKey.LAUNCH_ACTION_POST_ACTION_SCRIPT,
    XcodeActionType.TEST: OptionKey.TEST_ACTION_POST_ACTION_SCRIPT,
}


def command_line_arguments(options: GeneratorOptions, label: BuildLabel) -> List[str]:
    value = options.get(OptionKey.COMMANDLINE_ARGUMENTS, label)
    return value.split() if value else []


def environment_variables(options: GeneratorOptions, label: BuildLabel) -> Dict[str, str]:
    variables: Dict[str, str] = {}
    value = options.get(OptionKey.ENVIRONMENT_VARIABLES, label)
    for line in (value or "").splitlines():
        key, _, val = line.partition("=")
        if key:
            variables[key] = val
    return variables


def action_scripts(
    options: GeneratorOptions, label: BuildLabel, keys: Dict[XcodeActionType, OptionKey]
) -> Dict[XcodeActionType, str]:
    scripts: Dict[XcodeActionType, str] = {}
    for action_type, key in keys.items():
        script = options.get(key, label)
        if script:
            scripts[action_type] = script
    return scripts


class SchemeBuilder:
    def __init__(
        self,
        info: GeneratedProjectInfo,
        options: GeneratorOptions,
        gid_generator: GIDGenerator,
        message_logger: MessageLogger,
        project_bundle_name: str,
        layout: ProjectLayout = ProjectLayout(),
    ):
        self.info = info
        self.options = options
        self.gid_generator = gid_generator
        self.message_logger = message_logger
        self.project_bundle_name = project_bundle_name
        self.layout = layout

    @property
    def project_name(self) -> str:
        return self.info.project.name

    def target_for_label(self, label: BuildLabel) -> Optional[PBXNativeTarget]:
        return self.info.build_targets.get(label)

    def _scheme(self, target: PBXNativeTarget, entry: RuleEntry, **kwargs) -> XcodeScheme:
        prefix = self.layout.run_test_build_config_prefix
        return XcodeScheme(
            target=target,
            project=self.info.project,
            project_bundle_name=self.project_bundle_name,
            gid_generator=self.gid_generator,
            test_action_build_config=f"{prefix}Debug",
            profile_action_build_config=f"{prefix}Release",
            command_line_arguments=command_line_arguments(self.options, entry.label),
            environment_variables=environment_variables(self.options, entry.label),
            pre_action_scripts=action_scripts(self.options, entry.label, _PRE_ACTION_OPTIONS),
            post_action_scripts=action_scripts(self.options, entry.label, _POST_ACTION_OPTIONS),
            **kwargs,
        )

    def _scheme_generation_failed(self, entry: RuleEntry, details: Optional[str] = None) -> None:
        self.message_logger.warning(
            "XCSchemeGenerationFailed",
            "Generation of an Xcode scheme failed for build target %s",
            entry.label.value,
            context=self.project_name,
            details=details,
        )

    def target_schemes(self) -> Dict[str, XcodeScheme]:
        # Hosts are added as additional build targets of their extensions;
        # Xcode refuses to run watchOS extensions without that linkage.
        extension_hosts: Dict[BuildLabel, RuleEntry] = {}
        for entry in self.info.build_rule_entries:
            for extension_label in entry.extensions:
                extension_hosts.setdefault(extension_label, entry)

        schemes: Dict[str, XcodeScheme] = {}
        for entry in self.info.build_rule_entries:
            target = self.target_for_label(entry.label)
            if not isinstance(target, PBXNativeTarget):
                self._scheme_generation_failed(entry)
                continue

            product_type = product_type_for_rule(entry.type) or ProductType.APPLICATION
            app_extension = False
            extension_type = None
            launch_style = LaunchStyle.NORMAL
            debugging_mode = RunnableDebuggingMode.DEFAULT
            if product_type in (ProductType.APP_EXTENSION, ProductType.MESSAGES_EXTENSION):
                app_extension = True
                extension_type = entry.extension_type
                launch_style = LaunchStyle.APP_EXTENSION
            elif product_type.is_watch_app:
                debugging_mode = RunnableDebuggingMode.REMOTE

            additional_targets: List[Target] = list(target.build_action_dependencies)
            host = extension_hosts.get(entry.label)
            if host is not None:
                host_target = self.target_for_label(host.label)
                if host_target is None:
                    self._scheme_generation_failed(entry, "Extension host could not be resolved.")
                    continue
                additional_targets.append(host_target)

            schemes[f"{target.name}.xcscheme"] = self._scheme(
                target,
                entry,
                app_extension=app_extension,
                extension_type=extension_type,
                launch_style=launch_style,
                runnable_debugging_mode=debugging_mode,
                additional_build_targets=additional_targets,
            )
        return schemes

    def extract_test_targets(
        self, suite: RuleEntry, visiting: Optional[Set[BuildLabel]] = None
    ) -> Tuple[List[PBXNativeTarget], Optional[PBXNativeTarget]]:
        """Collects the runnable tests of a suite and the host to run them in.

        Nested suites are descended into first. Members that do not resolve,
        are not test bundles or have no linked host are reported and skipped.
        """
        visiting = set() if visiting is None else visiting
        visiting.add(suite.label)
        suite_host: Optional[PBXNativeTarget] = None
        valid_tests: List[PBXNativeTarget] = []

        for test_label in sorted(suite.test_suite_dependencies):
            nested = self.info.test_suite_rule_entries.get(test_label)
            if nested is not None:
                if test_label in visiting:
                    continue
                nested_tests, nested_host = self.extract_test_targets(nested, visiting)
                for test in nested_tests:
                    if test not in valid_tests:
                        valid_tests.append(test)
                if suite_host is None:
                    suite_host = nested_host
                continue

            test_target = self.target_for_label(test_label)
            if not isinstance(test_target, PBXNativeTarget):
                self.message_logger.warning(
                    "TestSuiteUsesUnresolvedTarget",
                    "Test suite %s refers to test %s which was not resolved and will be ignored",
                    suite.label.value,
                    test_label.value,
                    context=self.project_name,
                )
                continue

            # Applications run standalone and cannot be part of a test action
            if test_target.productType == ProductType.APPLICATION:
                self.message_logger.warning(
                    "TestSuiteIncludesNonXCTest",
                    "Non XCTest %s is included in test suite %s and will be ignored",
                    test_label.value,
                    suite.label.value,
                    context=self.project_name,
                )
                continue

            host = self.info.project.linked_host_for_test_target(test_target)
            if host is None:
                self.message_logger.warning(
                    "TestSuiteTestHostResolutionFailed",
                    "The test host for test %s in test suite %s could not be found; the test will be ignored",
                    test_label.value,
                    suite.label.value,
                    context=self.project_name,
                )
                continue

            if suite_host is None:
                suite_host = host
            if test_target not in valid_tests:
                valid_tests.append(test_target)

        return valid_tests, suite_host

    def suite_scheme(self, suite: RuleEntry) -> Optional[XcodeScheme]:
        tests, host = self.extract_test_targets(suite)
        if host is None or not tests:
            self.message_logger.warning(
                "TestSuiteHasNoValidTests",
                "None of the tests of test suite %s could be resolved",
                suite.label.value,
                context=self.project_name,
            )
            return None
        return self._scheme(host, suite, explicit_tests=tests)

    def suite_schemes(self) -> Dict[str, XcodeScheme]:
        suites = self.info.test_suite_rule_entries
        schemes: Dict[str, XcodeScheme] = {}
        for label, suite_name in unique_target_names(suites).items():
            scheme = self.suite_scheme(suites[label])
            if scheme is not None:
                schemes[f"{suite_name}_Suite.xcscheme"] = scheme
        return schemes
