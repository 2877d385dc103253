# Xcode target generator.
#
# This module converts rule entries into targets of an Xcode project model.
# Two kinds of targets are produced: indexer targets, static libraries that
# only exist so Xcode can index sources, and build targets, which delegate the
# actual build to the build system through a script build phase.

import hashlib
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from xcgen.config import ProjectLayout
from xcgen.details.label import BuildLabel
from xcgen.details.messages import MessageLogger
from xcgen.details.options import GeneratorOptions
from xcgen.details.rule_entry import RuleEntry, RuleEntryMap
from xcgen.generators.xcode.model import (
    PBXBuildFile,
    PBXFileReference,
    PBXGroup,
    PBXLegacyTarget,
    PBXNativeTarget,
    PBXProject,
    PBXShellScriptBuildPhase,
    PBXSourcesBuildPhase,
    ProductType,
    SettingValue,
    SourceTree,
    XCBuildConfiguration,
    XCConfigurationList,
    YesNo,
    product_type_for_rule,
)

# Extensions that Xcode can compile (add to sources build phase)
COMPILABLE_EXTENSIONS = frozenset(
    {
        # C/C++
        ".c",
        ".cc",
        ".cpp",
        ".cxx",
        # Objective-C/C++
        ".m",
        ".mm",
        # Assembly
        ".s",
        # Swift
        ".swift",
    }
)

BUILD_CONFIGURATION_NAMES = ("Debug", "Release")
CLEAN_TARGET_NAME = "_bazel_clean_"
INDEXER_TARGET_PREFIX = "_idx_"
PRODUCTS_GROUP_NAME = "Products"
MAIN_GROUP_NAME = "mainGroup"
# Build setting holding the workspace root, relative to SRCROOT
WORKSPACE_ROOT_SETTING = "XCGEN_WR"

# Rule types that are expected as dependencies rather than top level targets
LIBRARY_RULES_FOR_TOP_LEVEL_WARNING = frozenset(
    {"objc_library", "swift_library", "cc_library"}
)


@dataclass(frozen=True)
class StubInfoPlistPaths:
    resources_directory: str
    default_stub: str
    watchos_stub: str
    watchos_appex_stub: str

    @staticmethod
    def plist_filename(entry: RuleEntry) -> str:
        return f"Stub_{entry.label.as_full_pbx_target_name}.plist"

    def stub_plist(self, entry: RuleEntry) -> str:
        product_type = product_type_for_rule(entry.type)
        if product_type == ProductType.APP_EXTENSION:
            return f"{self.resources_directory}/{self.plist_filename(entry)}"
        if product_type == ProductType.WATCH2_APP:
            return self.watchos_stub
        if product_type == ProductType.WATCH2_EXTENSION:
            return self.watchos_appex_stub
        return self.default_stub


def path_included(path: str, path_filters: Optional[Sequence[str]]) -> bool:
    """Checks a workspace relative directory against the path filters.

    ``foo/bar`` matches only that directory, ``foo/bar/...`` matches it
    recursively and ``...`` matches everything. No filters match everything.
    """
    if not path_filters:
        return True
    path = path.strip("/")
    for path_filter in path_filters:
        path_filter = path_filter.strip("/")
        if path_filter.endswith("..."):
            prefix = path_filter[: -len("...")].rstrip("/")
            if not prefix or path == prefix or path.startswith(prefix + "/"):
                return True
        elif path == path_filter:
            return True
    return False


def unique_target_names(
    labels: Iterable[BuildLabel], taken: Iterable[str] = ()
) -> Dict[BuildLabel, str]:
    """Names each label by its target name, or by its full name when the
    target name is shared or already taken. Names that still clash get a
    numeric suffix.
    """
    labels = sorted(labels)
    short_names = Counter(label.target_name for label in labels)
    used = set(taken)
    names: Dict[BuildLabel, str] = {}
    for label in labels:
        name = label.target_name
        if short_names[name] > 1 or name in used:
            name = label.as_full_pbx_target_name
        candidate = name
        suffix = 2
        while candidate in used:
            candidate = f"{name}-{suffix}"
            suffix += 1
        used.add(candidate)
        names[label] = candidate
    return names


def _dedupe(values: Iterable[str]) -> List[str]:
    # Deduplicate while preserving order
    seen: set = set()
    deduped: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            deduped.append(value)
    return deduped


@dataclass(frozen=True)
class IndexerSettings:
    sdk_root: Optional[str]
    includes: Tuple[str, ...]
    defines: Tuple[str, ...]
    framework_search_paths: Tuple[str, ...]


@dataclass
class IndexerUnit:
    settings: IndexerSettings
    labels: List[BuildLabel] = field(default_factory=list)
    sources: List[PBXFileReference] = field(default_factory=list)

    @property
    def name(self) -> str:
        hasher = hashlib.blake2b()
        for label in sorted(self.labels):
            hasher.update(label.value.encode("utf-8"))
        hasher.update(repr(self.settings).encode("utf-8"))
        return f"{INDEXER_TARGET_PREFIX}{self.labels[0].target_name}_{hasher.hexdigest()[:8]}"


class PBXTargetGenerator:
    def __init__(
        self,
        project: PBXProject,
        build_script_path: str,
        stub_info_plist_paths: StubInfoPlistPaths,
        options: GeneratorOptions,
        message_logger: MessageLogger,
        bazel_path: str = "bazel",
        bazel_bin_path: str = "bazel-bin",
        layout: ProjectLayout = ProjectLayout(),
    ):
        self.project = project
        self.build_script_path = build_script_path
        self.stub_info_plist_paths = stub_info_plist_paths
        self.options = options
        self.message_logger = message_logger
        self.bazel_path = bazel_path
        self.bazel_bin_path = bazel_bin_path
        self.layout = layout
        self.indexer_units: Dict[IndexerSettings, IndexerUnit] = {}
        self.targets_by_label: Dict[BuildLabel, PBXNativeTarget] = {}

    @property
    def configuration_names(self) -> List[str]:
        prefix = self.layout.run_test_build_config_prefix
        return list(BUILD_CONFIGURATION_NAMES) + [
            f"{prefix}{name}" for name in BUILD_CONFIGURATION_NAMES
        ]

    @property
    def main_group(self) -> PBXGroup:
        return self.project.mainGroup

    @property
    def products_group(self) -> PBXGroup:
        return self.main_group.get_or_create_child_group(PRODUCTS_GROUP_NAME)

    @staticmethod
    def main_group_for_output_folder(
        output_folder: Union[str, Path], workspace_root: Union[str, Path]
    ) -> PBXGroup:
        relative = os.path.relpath(os.path.abspath(workspace_root), os.path.abspath(output_folder))
        path = None if relative == "." else Path(relative).as_posix()
        main_group = PBXGroup(name=MAIN_GROUP_NAME, path=path, sourceTree=SourceTree.SOURCE_ROOT)
        main_group.get_or_create_child_group(PRODUCTS_GROUP_NAME)
        return main_group

    @staticmethod
    def working_directory_for_group(group: PBXGroup) -> str:
        if group.path:
            return f"$(SRCROOT)/{group.path}"
        return "$(SRCROOT)"

    def _configuration_list(
        self, owner: str, settings: Dict[str, SettingValue]
    ) -> XCConfigurationList:
        configs = [
            XCBuildConfiguration(name=name, buildSettings=dict(settings), owner=owner)
            for name in self.configuration_names
        ]
        return XCConfigurationList(
            buildConfigurations=configs,
            defaultConfigurationName=BUILD_CONFIGURATION_NAMES[-1],
            owner=owner,
        )

    def generate_file_references_for_file_paths(
        self, paths: Iterable[str], path_filters: Optional[Sequence[str]] = None
    ) -> List[PBXFileReference]:
        file_refs = []
        for path in paths:
            if not path_included(os.path.dirname(path), path_filters):
                continue
            file_refs.append(self.main_group.file_reference_for_workspace_path(path))
        return file_refs

    def register_rule_entry_for_indexer(
        self,
        entry: RuleEntry,
        rule_entry_map: RuleEntryMap,
        path_filters: Optional[Sequence[str]],
        processed_entries: Dict[BuildLabel, List[str]],
    ) -> List[str]:
        """Registers an entry and its dependencies for indexing.

        ``processed_entries`` maps each visited label to the framework search
        paths accumulated for it: its own, followed by those of its transitive
        dependencies. A visited entry is not registered again, but its
        accumulated paths are still handed to every dependent.
        """
        if entry.label in processed_entries:
            return processed_entries[entry.label]

        accumulated = list(entry.framework_search_paths)
        # Registered before recursing so dependency cycles terminate
        processed_entries[entry.label] = accumulated
        for dep_label in sorted(entry.dependencies):
            dep_entry = rule_entry_map.any_rule_entry(dep_label)
            if dep_entry is None:
                continue
            dep_paths = self.register_rule_entry_for_indexer(
                dep_entry, rule_entry_map, path_filters, processed_entries
            )
            for path in dep_paths:
                if path not in accumulated:
                    accumulated.append(path)

        if entry.source_files and path_included(entry.label.package_name or "", path_filters):
            self._add_indexer_sources(entry, accumulated, path_filters)
        return accumulated

    def _add_indexer_sources(
        self,
        entry: RuleEntry,
        framework_search_paths: List[str],
        path_filters: Optional[Sequence[str]],
    ) -> None:
        settings = IndexerSettings(
            sdk_root=entry.sdk_root,
            includes=tuple(_dedupe(entry.includes)),
            defines=tuple(_dedupe(entry.defines)),
            framework_search_paths=tuple(framework_search_paths),
        )
        # Entries compiled with identical settings share one indexer target
        unit = self.indexer_units.setdefault(settings, IndexerUnit(settings=settings))
        unit.labels.append(entry.label)
        for source in entry.source_files:
            # Generated files live outside the workspace packages
            if not source.is_generated and not path_included(os.path.dirname(source.path), path_filters):
                continue
            file_ref = self.main_group.file_reference_for_workspace_path(
                source.path, is_input_file=not source.is_generated
            )
            if file_ref not in unit.sources:
                unit.sources.append(file_ref)

    def generate_indexer_targets(self) -> Dict[str, PBXNativeTarget]:
        indexer_targets: Dict[str, PBXNativeTarget] = {}
        for unit in self.indexer_units.values():
            name = unit.name
            sources_phase = PBXSourcesBuildPhase(owner=name)
            for file_ref in unit.sources:
                _, ext = os.path.splitext(file_ref.path.lower())
                if ext in COMPILABLE_EXTENSIONS:
                    sources_phase.files.append(PBXBuildFile(fileRef=file_ref, owner=name))

            settings: Dict[str, SettingValue] = {
                "PRODUCT_NAME": name,
                "ALWAYS_SEARCH_USER_PATHS": YesNo.NO,
            }
            if unit.settings.sdk_root:
                settings["SDKROOT"] = unit.settings.sdk_root
            if unit.settings.includes:
                settings["HEADER_SEARCH_PATHS"] = [
                    f"$({WORKSPACE_ROOT_SETTING})/{p}" for p in unit.settings.includes
                ]
            if unit.settings.defines:
                settings["GCC_PREPROCESSOR_DEFINITIONS"] = list(unit.settings.defines)
            if unit.settings.framework_search_paths:
                settings["FRAMEWORK_SEARCH_PATHS"] = [
                    f"$({WORKSPACE_ROOT_SETTING})/{p}" for p in unit.settings.framework_search_paths
                ]

            target = PBXNativeTarget(
                name=name,
                productType=ProductType.STATIC_LIBRARY,
                buildConfigurationList=self._configuration_list(name, settings),
                buildPhases=[sources_phase],
                productName=name,
            )
            self.project.add_target(target)
            indexer_targets[name] = target
        return indexer_targets

    def generate_clean_target(self, script_path: str, working_directory: str = "") -> PBXLegacyTarget:
        target = PBXLegacyTarget(
            name=CLEAN_TARGET_NAME,
            buildConfigurationList=self._configuration_list(CLEAN_TARGET_NAME, {}),
            buildToolPath=script_path,
            buildArgumentsString=f'"{self.bazel_path}" "{self.bazel_bin_path}"',
            buildWorkingDirectory=working_directory,
        )
        self.project.add_target(target)
        return target

    def generate_top_level_build_configurations(self, build_settings: Dict[str, str]) -> XCConfigurationList:
        settings: Dict[str, SettingValue] = {
            "ALWAYS_SEARCH_USER_PATHS": YesNo.NO,
            # Header maps cause include collisions between packages
            "USE_HEADERMAP": YesNo.NO,
            WORKSPACE_ROOT_SETTING: self.working_directory_for_group(self.main_group),
        }
        settings.update(build_settings)
        config_list = self._configuration_list("PROJECT", settings)
        debug = config_list.configuration(BUILD_CONFIGURATION_NAMES[0])
        if debug is not None:
            debug.buildSettings["ONLY_ACTIVE_ARCH"] = YesNo.YES
        self.project.buildConfigurationList = config_list
        return config_list

    def generate_build_targets_for_rule_entries(
        self, entries: Iterable[RuleEntry], rule_entry_map: RuleEntryMap
    ) -> Dict[BuildLabel, PBXNativeTarget]:
        buildable: List[RuleEntry] = []
        for entry in sorted(entries, key=lambda e: e.label):
            if product_type_for_rule(entry.type) is None:
                self.message_logger.warning(
                    "UnsupportedTargetType",
                    "Target %s of type %s is not supported as a build target and will be ignored",
                    entry.label.value,
                    entry.type,
                    context=self.project.name,
                )
                continue
            buildable.append(entry)

        # Indexer and clean targets are already in the project
        names = unique_target_names((entry.label for entry in buildable), self.project.target_by_name)
        for entry in buildable:
            self.targets_by_label[entry.label] = self._create_build_target(entry, names[entry.label])

        # Second pass: link tests to their hosts
        for entry in buildable:
            if not product_type_for_rule(entry.type).is_test or not entry.linked_target_labels:
                continue
            target = self.targets_by_label[entry.label]
            host_label = sorted(entry.linked_target_labels)[0]
            host_target = self.targets_by_label.get(host_label)
            if host_target is None:
                self.message_logger.warning(
                    "MissingTestHost",
                    "Test target %s depends on host %s which could not be found; the test will not be runnable from Xcode",
                    entry.label.value,
                    host_label.value,
                    context=self.project.name,
                )
                continue
            self._link_test_host(entry, target, host_target)

        return dict(self.targets_by_label)

    def _link_test_host(self, entry: RuleEntry, target: PBXNativeTarget, host: PBXNativeTarget) -> None:
        self.project.create_dependency(target, host)
        self.project.link_test_target(target, host)
        target.build_action_dependencies.append(host)
        host_product = host.productName or host.name
        for config in target.buildConfigurationList.buildConfigurations:
            if product_type_for_rule(entry.type) == ProductType.UI_TEST_BUNDLE:
                config.buildSettings["TEST_TARGET_NAME"] = host.name
            else:
                config.buildSettings["TEST_HOST"] = (
                    f"$(BUILT_PRODUCTS_DIR)/{host.product_filename}/{host_product}"
                )
                config.buildSettings["BUNDLE_LOADER"] = "$(TEST_HOST)"

    def _create_build_target(self, entry: RuleEntry, name: str) -> PBXNativeTarget:
        product_type = product_type_for_rule(entry.type)
        product_ref = PBXFileReference(
            path=f"{name}{product_type.extension}",
            sourceTree=SourceTree.BUILT_PRODUCTS_DIR,
            explicitFileType=product_type.file_type,
            includeInIndex=0,
        )
        self.products_group.add_child(product_ref)

        script = "\n".join(
            [
                "set -e",
                f'cd "${{{WORKSPACE_ROOT_SETTING}}}"',
                f'exec "{self.build_script_path}" {entry.label.value} '
                f'--bazel "{self.bazel_path}" --bazel_bin_path "{self.bazel_bin_path}" --verbose',
            ]
        )
        build_phase = PBXShellScriptBuildPhase(
            shellScript=script,
            name=f"build {entry.label.value}",
            owner=name,
        )

        settings: Dict[str, SettingValue] = {
            "PRODUCT_NAME": name,
            "BAZEL_TARGET": entry.label.value,
            "BAZEL_TARGET_TYPE": entry.type,
            "DEBUG_INFORMATION_FORMAT": "dwarf",
        }
        if entry.sdk_root:
            settings["SDKROOT"] = entry.sdk_root
        if product_type not in (ProductType.TOOL, ProductType.STATIC_LIBRARY):
            settings["INFOPLIST_FILE"] = self.stub_info_plist_paths.stub_plist(entry)
        bundle_id = entry.attributes.get("bundle_id")
        if isinstance(bundle_id, str):
            settings["PRODUCT_BUNDLE_IDENTIFIER"] = bundle_id
        swift_version = entry.attributes.get("swift_language_version")
        if isinstance(swift_version, str):
            settings["SWIFT_VERSION"] = swift_version

        target = PBXNativeTarget(
            name=name,
            productType=product_type,
            buildConfigurationList=self._configuration_list(name, settings),
            buildPhases=[build_phase],
            productName=name,
            productReference=product_ref,
        )
        self.project.add_target(target)
        return target


@dataclass(frozen=True)
class GeneratedProjectInfo:
    project: PBXProject
    build_rule_entries: Tuple[RuleEntry, ...]
    test_suite_rule_entries: Dict[BuildLabel, RuleEntry]
    indexer_targets: Dict[str, PBXNativeTarget]
    build_targets: Dict[BuildLabel, PBXNativeTarget] = field(default_factory=dict)
