# Xcode project generation pipeline.
#
# XcodeProjectGenerator ties the pieces together: it resolves the configured
# labels against the rule graph, builds the project model, serializes it and
# installs the bundle with its schemes and support files.

import getpass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from xcgen.config import BuildScriptOption, GeneratorConfig, ProjectLayout, ResourceSourcePaths
from xcgen.details.file_writer import FileWriter
from xcgen.details.label import BuildLabel
from xcgen.details.messages import MessageLogger
from xcgen.details.options import OptionKey
from xcgen.details.rule_entry import RuleEntry, RuleEntryMap
from xcgen.details.rule_graph import RuleGraph, RuleGraphError
from xcgen.errors import (
    LabelAspectFailure,
    LabelResolutionFailed,
    ProjectGeneratorError,
    SerializationFailed,
)
from xcgen.generators.xcode.formatter import ConcreteGIDGenerator, GIDGenerator, format_xcode_project
from xcgen.generators.xcode.installer import ProjectInstaller, create_generated_artifact_folders
from xcgen.generators.xcode.label_expansion import expand_target_labels
from xcgen.generators.xcode.model import PBXGroup, PBXProject, ProductType, product_type_for_rule
from xcgen.generators.xcode.scheme_builder import SchemeBuilder
from xcgen.generators.xcode.settings import aggregate_build_settings
from xcgen.generators.xcode.target_generator import (
    LIBRARY_RULES_FOR_TOP_LEVEL_WARNING,
    GeneratedProjectInfo,
    PBXTargetGenerator,
    StubInfoPlistPaths,
)
from xcgen.generators.xcode.validator import validate_output_path, validate_project

PROJECT_FILE_PATH = "${PROJECT_FILE_PATH}"


class XcodeProjectGenerator:
    def __init__(
        self,
        workspace_root: Union[str, Path],
        config: GeneratorConfig,
        rule_graph: RuleGraph,
        resources: ResourceSourcePaths,
        message_logger: Optional[MessageLogger] = None,
        writer: Optional[FileWriter] = None,
        layout: ProjectLayout = ProjectLayout(),
        gid_generator_factory: Callable[[], GIDGenerator] = ConcreteGIDGenerator,
    ):
        self.workspace_root = Path(workspace_root)
        self.config = config
        self.rule_graph = rule_graph
        self.resources = resources
        self.message_logger = message_logger or MessageLogger()
        self.writer = writer or FileWriter()
        self.layout = layout
        self.gid_generator_factory = gid_generator_factory
        self.username_fetcher: Callable[[], str] = getpass.getuser
        self.suppress_generated_artifact_folder_creation = False
        self._rule_entry_map: Optional[RuleEntryMap] = None

    @property
    def project_name(self) -> str:
        return self.config.project_name

    def stub_info_plist_paths(self) -> StubInfoPlistPaths:
        resources_dir = f"{PROJECT_FILE_PATH}/{self.layout.resources_directory}"
        return StubInfoPlistPaths(
            resources_directory=resources_dir,
            default_stub=f"{resources_dir}/{self.layout.stub_info_plist}",
            watchos_stub=f"{resources_dir}/{self.layout.stub_watchos2_info_plist}",
            watchos_appex_stub=f"{resources_dir}/{self.layout.stub_watchos2_appex_info_plist}",
        )

    def generate(
        self, output_folder: Union[str, Path], build_script_options: Sequence[BuildScriptOption] = ()
    ) -> Path:
        """Generates the project bundle in ``output_folder``.

        Returns:
            The path of the generated ``.xcodeproj`` bundle.

        Raises:
            ProjectGeneratorError: For failures that leave no usable project.
        """
        output_folder = Path(output_folder).absolute()
        try:
            with self.message_logger.profile("generating_project", self.project_name):
                return self._generate(output_folder, build_script_options)
        except ProjectGeneratorError:
            self.log_pending_messages()
            raise

    def _generate(self, output_folder: Path, build_script_options: Sequence[BuildScriptOption]) -> Path:
        validate_output_path(output_folder, self.layout.invalid_output_paths)
        self.resolve_config_references()

        main_group = PBXTargetGenerator.main_group_for_output_folder(output_folder, self.workspace_root)
        plist_paths = self.stub_info_plist_paths()
        info = self.build_project(main_group, plist_paths, build_script_options)

        gid_generator = self.gid_generator_factory()
        with self.message_logger.profile("serializing_project", self.project_name):
            validate_project(info.project)
            serialized = format_xcode_project(info.project, gid_generator)

        project_bundle_name = self.config.xcode_project_filename
        project_url = output_folder / project_bundle_name
        try:
            self.writer.make_dirs(project_url)
        except OSError as e:
            raise SerializationFailed(f"Project directory creation failed: {e}") from e
        self.writer.write(project_url / "project.pbxproj", serialized)

        installer = ProjectInstaller(
            project_url, self.writer, self.message_logger, self.resources, self.project_name, self.layout
        )
        installer.install_workspace_settings(self.username_fetcher())

        scheme_builder = SchemeBuilder(
            info, self.config.options, gid_generator, self.message_logger, project_bundle_name, self.layout
        )
        schemes = scheme_builder.target_schemes()
        schemes.update(scheme_builder.suite_schemes())
        installer.install_schemes(schemes)

        installer.install_scripts(self.rule_graph.execution_root)
        installer.install_bazel_package()
        installer.install_utilities()
        installer.install_generator_config(self.config)
        installer.install_project_resources()
        installer.install_stub_extension_plists(
            [e for e in info.build_rule_entries if product_type_for_rule(e.type) == ProductType.APP_EXTENSION]
        )

        if not self.suppress_generated_artifact_folder_creation:
            with self.message_logger.profile("creating_artifact_folders", self.project_name):
                create_generated_artifact_folders(
                    main_group, output_folder, self.writer, self.message_logger, self.project_name
                )
        return project_url

    def load_rule_entry_map(self) -> RuleEntryMap:
        if self._rule_entry_map is None:
            try:
                self._rule_entry_map = self.rule_graph.rule_entries_for_labels(
                    self.config.build_target_labels, self.config.options
                )
            except RuleGraphError as e:
                raise LabelAspectFailure(str(e)) from e
        return self._rule_entry_map

    def resolve_config_references(self) -> None:
        rule_entry_map = self.load_rule_entry_map()
        unresolved = [
            label for label in self.config.build_target_labels
            if not rule_entry_map.has_any_rule_entry(label)
        ]
        if unresolved:
            raise LabelResolutionFailed(unresolved)
        for label in self.config.build_target_labels:
            entry = rule_entry_map.any_rule_entry(label)
            if entry is not None and entry.type in LIBRARY_RULES_FOR_TOP_LEVEL_WARNING:
                self.message_logger.warning(
                    "TopLevelLibraryTarget",
                    "Library target %s of type %s is used as a top level build target",
                    entry.label.value,
                    entry.type,
                    context=self.project_name,
                )

    def build_project(
        self,
        main_group: PBXGroup,
        plist_paths: StubInfoPlistPaths,
        build_script_options: Sequence[BuildScriptOption] = (),
    ) -> GeneratedProjectInfo:
        project = PBXProject(mainGroup=main_group, name=self.project_name)
        if self.config.options.common_value_as_bool(OptionKey.SUPPRESS_SWIFT_UPDATE_CHECK):
            project.attributes["LastSwiftUpdateCheck"] = "0710"

        script_dir = f"{PROJECT_FILE_PATH}/{self.layout.script_directory}"
        generator = PBXTargetGenerator(
            project=project,
            build_script_path=f"{script_dir}/{self.layout.build_script}",
            stub_info_plist_paths=plist_paths,
            options=self.config.options,
            message_logger=self.message_logger,
            bazel_path=self.config.bazel_path,
            layout=self.layout,
        )

        if self.config.additional_file_paths:
            generator.generate_file_references_for_file_paths(self.config.additional_file_paths)

        rule_entry_map = self.load_rule_entry_map()
        expanded = expand_target_labels(
            self.config.build_target_labels, rule_entry_map, self.message_logger, self.project_name
        )

        # One entry per label, the first declared; host labels in insertion order
        target_rules: Dict[BuildLabel, RuleEntry] = {}
        host_labels: Dict[BuildLabel, None] = {}
        with self.message_logger.profile("gathering_sources_for_indexers", self.project_name):
            processed: Dict[BuildLabel, List[str]] = {}
            for label in expanded.labels:
                entries = rule_entry_map.rule_entries(label)
                if not entries:
                    self.message_logger.error(
                        "UnknownTargetRule",
                        "Failed to look up target %s which was expected to be present",
                        label.value,
                        context=self.project_name,
                    )
                    continue
                for entry in entries:
                    target_rules.setdefault(entry.label, entry)
                    for host_label in sorted(entry.linked_target_labels):
                        host_labels[host_label] = None
                    generator.register_rule_entry_for_indexer(
                        entry, rule_entry_map, self.config.path_filters, processed
                    )

        with self.message_logger.profile("generating_indexers", self.project_name):
            indexer_targets = generator.generate_indexer_targets()

        if self.config.options.common_value_as_bool(OptionKey.INCLUDE_BUILD_SOURCES):
            with self.message_logger.profile("adding_buildfiles", self.project_name):
                buildfiles = self.rule_graph.extract_buildfiles(expanded.labels)
                generator.generate_file_references_for_file_paths(buildfiles, self.config.path_filters)

        # Hosts of requested tests are built even when not requested themselves
        for host_label in host_labels:
            if host_label in self.config.build_target_labels:
                continue
            host_entry = rule_entry_map.any_rule_entry(host_label)
            if host_entry is not None:
                target_rules.setdefault(host_label, host_entry)

        working_directory = PBXTargetGenerator.working_directory_for_group(main_group)
        with self.message_logger.profile("generating_clean_target", self.project_name):
            generator.generate_clean_target(
                f"{script_dir}/{self.layout.clean_script}", working_directory=working_directory
            )

        # Settings are aggregated in label order, so the last label wins
        ordered_rules = [target_rules[label] for label in sorted(target_rules)]
        with self.message_logger.profile("generating_top_level_build_configs", self.project_name):
            build_settings = aggregate_build_settings(ordered_rules, self.project_name, build_script_options)
            generator.generate_top_level_build_configurations(build_settings)

        with self.message_logger.profile("generating_build_targets", self.project_name):
            build_targets = generator.generate_build_targets_for_rule_entries(ordered_rules, rule_entry_map)

        return GeneratedProjectInfo(
            project=project,
            build_rule_entries=tuple(ordered_rules),
            test_suite_rule_entries=dict(expanded.test_suites),
            indexer_targets=indexer_targets,
            build_targets=build_targets,
        )

    def log_pending_messages(self) -> None:
        if self.rule_graph.has_queued_messages():
            self.message_logger.debug("Printing build system logs that could contain the error.")
            for message in self.rule_graph.drain_messages():
                self.message_logger.debug("%s", message)
