# Xcode scheme model.
#
# An XcodeScheme describes how Xcode builds, runs, tests, profiles, analyzes
# and archives one target. Schemes reference targets by the identifiers they
# were given in project.pbxproj, so they are rendered after serialization.

from enum import Enum
from typing import Dict, List, Optional, Sequence
from xml.dom.minidom import Document, Element, Node

from xcgen.generators.xcode.formatter import GIDGenerator
from xcgen.generators.xcode.model import PBXNativeTarget, PBXProject, Target

LLDB_DEBUGGER = "Xcode.DebuggerFoundation.Debugger.LLDB"
LLDB_LAUNCHER = "Xcode.DebuggerFoundation.Launcher.LLDB"
SHELL_SCRIPT_ACTION = "Xcode.IDEStandardExecutionActionsCore.ExecutionActionType.ShellScriptAction"
WATCH_COMPANION_BUNDLE_ID = "com.apple.Carousel"
MESSAGES_EXTENSION_POINT = "com.apple.message-payload-provider"


class LaunchStyle(Enum):
    NORMAL = "0"
    APP_EXTENSION = "2"


class RunnableDebuggingMode(Enum):
    DEFAULT = "0"
    REMOTE = "2"


class XcodeActionType(Enum):
    BUILD = "BuildAction"
    LAUNCH = "LaunchAction"
    TEST = "TestAction"


def owner_doc(xnode: Node) -> Document:
    if isinstance(xnode, Document):
        return xnode
    else:
        assert xnode.ownerDocument
        return xnode.ownerDocument


def append_element(xparent: Node, name: str, attributes: Optional[Dict[str, str]] = None) -> Element:
    xelement = owner_doc(xparent).createElement(name)
    # Attributes keep insertion order, which Xcode preserves too
    for key, value in (attributes or {}).items():
        xelement.setAttribute(key, value)
    xparent.appendChild(xelement)
    return xelement


def _yes_no(value: bool) -> str:
    return "YES" if value else "NO"


class XcodeScheme:
    def __init__(
        self,
        target: PBXNativeTarget,
        project: PBXProject,
        project_bundle_name: str,
        gid_generator: GIDGenerator,
        test_action_build_config: str = "Debug",
        launch_action_build_config: str = "Debug",
        profile_action_build_config: str = "Release",
        analyze_action_build_config: str = "Debug",
        archive_action_build_config: str = "Release",
        app_extension: bool = False,
        extension_type: Optional[str] = None,
        launch_style: LaunchStyle = LaunchStyle.NORMAL,
        runnable_debugging_mode: RunnableDebuggingMode = RunnableDebuggingMode.DEFAULT,
        additional_build_targets: Sequence[Target] = (),
        explicit_tests: Optional[Sequence[PBXNativeTarget]] = None,
        command_line_arguments: Sequence[str] = (),
        environment_variables: Optional[Dict[str, str]] = None,
        pre_action_scripts: Optional[Dict[XcodeActionType, str]] = None,
        post_action_scripts: Optional[Dict[XcodeActionType, str]] = None,
        version: str = "1.3",
    ):
        self.target = target
        self.project = project
        self.project_bundle_name = project_bundle_name
        self.gid_generator = gid_generator
        self.test_action_build_config = test_action_build_config
        self.launch_action_build_config = launch_action_build_config
        self.profile_action_build_config = profile_action_build_config
        self.analyze_action_build_config = analyze_action_build_config
        self.archive_action_build_config = archive_action_build_config
        self.app_extension = app_extension
        self.extension_type = extension_type
        self.launch_style = launch_style
        self.runnable_debugging_mode = runnable_debugging_mode
        self.additional_build_targets = list(additional_build_targets)
        self.explicit_tests = list(explicit_tests) if explicit_tests is not None else None
        self.command_line_arguments = list(command_line_arguments)
        self.environment_variables = dict(environment_variables or {})
        self.pre_action_scripts = dict(pre_action_scripts or {})
        self.post_action_scripts = dict(post_action_scripts or {})
        self.version = version

    @property
    def is_test_target(self) -> bool:
        return self.target.productType.is_test

    def to_xml(self) -> Document:
        xdoc = Document()
        xscheme = append_element(
            xdoc,
            "Scheme",
            {
                "LastUpgradeVersion": str(self.project.attributes.get("LastUpgradeCheck", "1000")),
                "version": self.version,
            },
        )
        if self.app_extension:
            xscheme.setAttribute("wasCreatedForAppExtension", "YES")
        self.append_build_action(xscheme)
        self.append_test_action(xscheme)
        self.append_launch_action(xscheme)
        self.append_profile_action(xscheme)
        append_element(xscheme, "AnalyzeAction", {"buildConfiguration": self.analyze_action_build_config})
        append_element(
            xscheme,
            "ArchiveAction",
            {"buildConfiguration": self.archive_action_build_config, "revealArchiveInOrganizer": "YES"},
        )
        return xdoc

    def to_bytes(self) -> bytes:
        return self.to_xml().toprettyxml(indent="   ", newl="\n", encoding="UTF-8")

    def append_buildable_reference(self, xparent: Node, target: Target) -> Element:
        if isinstance(target, PBXNativeTarget):
            buildable_name = target.product_filename
        else:
            buildable_name = target.name
        return append_element(
            xparent,
            "BuildableReference",
            {
                "BuildableIdentifier": "primary",
                "BlueprintIdentifier": str(self.gid_generator.id_for(target)),
                "BuildableName": buildable_name,
                "BlueprintName": target.name,
                "ReferencedContainer": f"container:{self.project_bundle_name}",
            },
        )

    def _append_scripts(self, xaction: Element, action_type: XcodeActionType) -> None:
        for element_name, scripts in (
            ("PreActions", self.pre_action_scripts),
            ("PostActions", self.post_action_scripts),
        ):
            script = scripts.get(action_type)
            if not script:
                continue
            xactions = append_element(xaction, element_name)
            xexecution = append_element(xactions, "ExecutionAction", {"ActionType": SHELL_SCRIPT_ACTION})
            xcontent = append_element(
                xexecution, "ActionContent", {"title": "Run Script", "scriptText": script}
            )
            xenvironment = append_element(xcontent, "EnvironmentBuildable")
            self.append_buildable_reference(xenvironment, self.target)

    def _append_build_action_entry(self, xentries: Element, target: Target, for_testing_only: bool = False) -> None:
        build_for_others = _yes_no(not for_testing_only)
        xentry = append_element(
            xentries,
            "BuildActionEntry",
            {
                "buildForTesting": "YES",
                "buildForRunning": build_for_others,
                "buildForProfiling": build_for_others,
                "buildForArchiving": build_for_others,
                "buildForAnalyzing": build_for_others,
            },
        )
        self.append_buildable_reference(xentry, target)

    def append_build_action(self, xscheme: Element) -> Element:
        xaction = append_element(
            xscheme, "BuildAction", {"parallelizeBuildables": "YES", "buildImplicitDependencies": "YES"}
        )
        self._append_scripts(xaction, XcodeActionType.BUILD)
        xentries = append_element(xaction, "BuildActionEntries")
        self._append_build_action_entry(xentries, self.target)
        seen = {id(self.target)}
        for target in self.additional_build_targets:
            if id(target) not in seen:
                seen.add(id(target))
                self._append_build_action_entry(xentries, target)
        for target in self.explicit_tests or []:
            if id(target) not in seen:
                seen.add(id(target))
                self._append_build_action_entry(xentries, target, for_testing_only=True)
        return xaction

    def _macro_expansion_target(self) -> Target:
        if self.is_test_target:
            host = self.project.linked_host_for_test_target(self.target)
            if host is not None:
                return host
        return self.target

    def _append_macro_expansion(self, xaction: Element) -> None:
        xmacro = append_element(xaction, "MacroExpansion")
        self.append_buildable_reference(xmacro, self._macro_expansion_target())

    def append_test_action(self, xscheme: Element) -> Element:
        xaction = append_element(
            xscheme,
            "TestAction",
            {
                "buildConfiguration": self.test_action_build_config,
                "selectedDebuggerIdentifier": LLDB_DEBUGGER,
                "selectedLauncherIdentifier": LLDB_LAUNCHER,
                "shouldUseLaunchSchemeArgsEnv": "YES",
            },
        )
        self._append_scripts(xaction, XcodeActionType.TEST)
        xtestables = append_element(xaction, "Testables")
        if self.explicit_tests is not None:
            tests: List[PBXNativeTarget] = sorted(self.explicit_tests, key=lambda t: t.name)
        elif self.is_test_target:
            tests = [self.target]
        else:
            tests = []
        for test in tests:
            xtestable = append_element(xtestables, "TestableReference", {"skipped": "NO"})
            self.append_buildable_reference(xtestable, test)
        self._append_macro_expansion(xaction)
        append_element(xaction, "AdditionalOptions")
        return xaction

    def _append_runnable(self, xaction: Element) -> None:
        # Test bundles are not runnable on their own
        if self.is_test_target or self.explicit_tests is not None:
            self._append_macro_expansion(xaction)
            return
        if self.runnable_debugging_mode == RunnableDebuggingMode.REMOTE:
            xrunnable = append_element(
                xaction,
                "RemoteRunnable",
                {
                    "runnableDebuggingMode": self.runnable_debugging_mode.value,
                    "BundleIdentifier": WATCH_COMPANION_BUNDLE_ID,
                    "RemotePath": f"/{self.target.productName or self.target.name}",
                },
            )
        else:
            xrunnable = append_element(
                xaction,
                "BuildableProductRunnable",
                {"runnableDebuggingMode": self.runnable_debugging_mode.value},
            )
        self.append_buildable_reference(xrunnable, self.target)

    def append_launch_action(self, xscheme: Element) -> Element:
        attributes = {
            "buildConfiguration": self.launch_action_build_config,
            "selectedDebuggerIdentifier": LLDB_DEBUGGER,
            "selectedLauncherIdentifier": LLDB_LAUNCHER,
            "launchStyle": "0",
            "useCustomWorkingDirectory": "NO",
            "ignoresPersistentStateOnLaunch": "NO",
            "debugDocumentVersioning": "YES",
            "debugServiceExtension": "internal",
            "allowLocationSimulation": "YES",
        }
        if self.launch_style == LaunchStyle.APP_EXTENSION:
            # Messages extensions are launched into the Messages app
            substyle = "8" if self.extension_type == MESSAGES_EXTENSION_POINT else self.launch_style.value
            attributes["launchAutomaticallySubstyle"] = substyle
            attributes["askForAppToLaunch"] = "YES"
        xaction = append_element(xscheme, "LaunchAction", attributes)
        self._append_scripts(xaction, XcodeActionType.LAUNCH)
        self._append_runnable(xaction)

        if self.command_line_arguments:
            xarguments = append_element(xaction, "CommandLineArguments")
            for argument in self.command_line_arguments:
                append_element(xarguments, "CommandLineArgument", {"argument": argument, "isEnabled": "YES"})
        if self.environment_variables:
            xvariables = append_element(xaction, "EnvironmentVariables")
            for key in sorted(self.environment_variables):
                append_element(
                    xvariables,
                    "EnvironmentVariable",
                    {"key": key, "value": self.environment_variables[key], "isEnabled": "YES"},
                )
        append_element(xaction, "AdditionalOptions")
        return xaction

    def append_profile_action(self, xscheme: Element) -> Element:
        xaction = append_element(
            xscheme,
            "ProfileAction",
            {
                "buildConfiguration": self.profile_action_build_config,
                "shouldUseLaunchSchemeArgsEnv": "YES",
                "savedToolIdentifier": "",
                "useCustomWorkingDirectory": "NO",
                "debugDocumentVersioning": "YES",
            },
        )
        self._append_runnable(xaction)
        return xaction
