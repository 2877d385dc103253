# Installation of everything around project.pbxproj.
#
# A generated bundle carries workspace settings, schemes and a support tree
# (scripts, a build-system package, utilities, config snapshots and stub
# Info.plists). Failures here leave a degraded but loadable project, so they
# are logged rather than raised, except where a write handler raises OSError
# for a file the project cannot work without.

import os
import plistlib
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from xcgen.config import GeneratorConfig, ProjectLayout, ResourceSourcePaths
from xcgen.details.file_writer import FileWriter
from xcgen.details.messages import MessageLogger
from xcgen.details.path_trie import PathTrie
from xcgen.details.rule_entry import RuleEntry
from xcgen.generators.xcode.model import PBXGroup
from xcgen.generators.xcode.scheme import XcodeScheme
from xcgen.generators.xcode.target_generator import StubInfoPlistPaths

WORKSPACE_SETTINGS_FILENAME = "WorkspaceSettings.xcsettings"
SHARED_WORKSPACE_SETTINGS = {"IDEWorkspaceSharedSettings_AutocreateContextsIfNeeded": False}
PER_USER_WORKSPACE_SETTINGS = {"LiveSourceIssuesEnabled": True, "IssueFilterStyle": "ShowAll"}


class ProjectInstaller:
    def __init__(
        self,
        project_url: Path,
        writer: FileWriter,
        message_logger: MessageLogger,
        resources: ResourceSourcePaths,
        project_name: str,
        layout: ProjectLayout = ProjectLayout(),
    ):
        self.project_url = Path(project_url)
        self.writer = writer
        self.message_logger = message_logger
        self.resources = resources
        self.project_name = project_name
        self.layout = layout

    def create_directory(self, directory: Path, fail_silently: bool = False) -> bool:
        try:
            self.writer.make_dirs(directory)
        except OSError as e:
            if not fail_silently:
                self.message_logger.error(
                    "DirectoryCreationFailed",
                    "Failed to create directory %s, the resulting project will most likely be broken: %s",
                    directory,
                    e,
                    context=self.project_name,
                )
            return False
        return True

    def install_files(self, files: Iterable[Tuple[Path, str]], directory: Path) -> None:
        for source, filename in files:
            target = directory / filename
            try:
                self.writer.copy(source, target)
            except OSError as e:
                self.message_logger.error(
                    "CopyingResourceFailed",
                    "Failed to copy %s to %s, the resulting project will most likely be broken: %s",
                    source,
                    target,
                    e,
                    context=self.project_name,
                )

    def _write_workspace_settings(
        self, settings: Dict[str, object], directory: Path, replace_if_exists: bool = False
    ) -> None:
        path = directory / WORKSPACE_SETTINGS_FILENAME
        if not replace_if_exists and self.writer.exists(path):
            return
        if not self.create_directory(directory):
            return
        self.writer.write(path, plistlib.dumps(settings, fmt=plistlib.FMT_XML))

    def install_workspace_settings(self, username: str) -> None:
        workspace = self.project_url / "project.xcworkspace"
        self._write_workspace_settings(
            SHARED_WORKSPACE_SETTINGS, workspace / "xcshareddata", replace_if_exists=True
        )
        # Per-user settings belong to the user once written
        self._write_workspace_settings(
            PER_USER_WORKSPACE_SETTINGS, workspace / "xcuserdata" / f"{username}.xcuserdatad"
        )

    def install_schemes(self, schemes: Dict[str, XcodeScheme]) -> None:
        schemes_dir = self.project_url / "xcshareddata" / "xcschemes"
        if not self.create_directory(schemes_dir):
            return
        for filename in sorted(schemes):
            self.writer.write(schemes_dir / filename, schemes[filename].to_bytes())

    def install_cached_execution_root(self, script_dir: Path, execution_root: Optional[str]) -> None:
        # The build script imports this file; an empty root fails its existence check
        execroot = (execution_root or "").replace("'", "")
        script = f"EXECUTION_ROOT = '{execroot}'\n"
        path = script_dir / self.layout.cached_execution_root
        try:
            self.writer.write(path, script)
        except OSError as e:
            self.message_logger.error(
                "ExecutionRootCacheFailed",
                "%s could not be created: %s",
                self.layout.cached_execution_root,
                e,
                context=self.project_name,
            )

    def install_scripts(self, execution_root: Optional[str]) -> None:
        script_dir = self.project_url / self.layout.script_directory
        if not self.create_directory(script_dir):
            return
        with self.message_logger.profile("installing_scripts", self.project_name):
            self.message_logger.info("Installing scripts")
            self.install_files(
                [
                    (self.resources.build_script, self.layout.build_script),
                    (self.resources.clean_script, self.layout.clean_script),
                ],
                script_dir,
            )
            self.install_files(
                [(p, p.name) for p in self.resources.extra_build_scripts], script_dir
            )
            self.install_cached_execution_root(script_dir, execution_root)

    def install_bazel_package(self) -> None:
        workspace_dir = self.project_url / self.layout.bazel_directory
        package_dir = workspace_dir / self.layout.package_name
        if not self.create_directory(package_dir):
            return
        with self.message_logger.profile("installing_package", self.project_name):
            self.message_logger.info("Installing Bazel integration package")
            self.install_files(
                [(self.resources.bazel_workspace_file, self.layout.workspace_file)], workspace_dir
            )
            self.install_files([(p, p.name) for p in self.resources.package_files], package_dir)

    def install_utilities(self) -> None:
        util_dir = self.project_url / self.layout.util_directory
        if not self.create_directory(util_dir):
            return
        with self.message_logger.profile("installing_utilities", self.project_name):
            self.message_logger.info("Installing utilities")
            self.install_files(
                [(self.resources.post_processor, self.layout.post_processor_util)], util_dir
            )

    def install_generator_config(self, config: GeneratorConfig) -> None:
        config_dir = self.project_url / self.layout.config_directory
        if not self.create_directory(config_dir, fail_silently=True):
            return
        with self.message_logger.profile("installing_generator_config", self.project_name):
            self.message_logger.info("Installing generator config")
            try:
                self.writer.write(config_dir / config.default_filename(self.layout), config.save())
            except (OSError, TypeError, ValueError) as e:
                self.message_logger.syslog(
                    "Generator config serialization failed. %s", e, context=self.project_name
                )
                return
            try:
                per_user = config.save_per_user_settings()
                if per_user is not None:
                    self.writer.write(config_dir / config.per_user_filename(self.layout), per_user)
            except (OSError, TypeError, ValueError) as e:
                self.message_logger.syslog(
                    "Generator per-user config serialization failed. %s", e, context=self.project_name
                )

    def install_project_resources(self) -> None:
        resources_dir = self.project_url / self.layout.resources_directory
        if not self.create_directory(resources_dir):
            return
        with self.message_logger.profile("installing_project_resources", self.project_name):
            self.message_logger.info("Installing project resources")
            self.install_files(
                [
                    (self.resources.ios_ui_runner_entitlements, self.layout.ios_ui_runner_entitlements),
                    (self.resources.macos_ui_runner_entitlements, self.layout.macos_ui_runner_entitlements),
                    (self.resources.stub_info_plist, self.layout.stub_info_plist),
                    (self.resources.stub_watchos2_info_plist, self.layout.stub_watchos2_info_plist),
                    (self.resources.stub_watchos2_appex_info_plist, self.layout.stub_watchos2_appex_info_plist),
                ],
                resources_dir,
            )

    def install_stub_extension_plists(self, entries: Sequence[RuleEntry]) -> None:
        resources_dir = self.project_url / self.layout.resources_directory
        if not self.create_directory(resources_dir):
            return
        with self.message_logger.profile("installing_plist_files", self.project_name):
            self.message_logger.info("Installing plist files")
            template_path = self.resources.stub_ios_appex_info_plist_template
            try:
                template = plistlib.loads(self.writer.read(template_path))
            except OSError:
                self.message_logger.error(
                    "PlistTemplateNotFound",
                    "Failed to load plist template %s",
                    template_path,
                    context=self.project_name,
                )
                return
            except plistlib.InvalidFileException as e:
                self.message_logger.error(
                    "PlistDeserializationFailed",
                    "Failed to deserialize plist template %s: %s",
                    template_path,
                    e,
                    context=self.project_name,
                )
                return

            for entry in entries:
                extension = dict(template.get("NSExtension", {}))
                extension["NSExtensionPointIdentifier"] = entry.extension_type or ""
                plist = dict(template)
                plist["NSExtension"] = extension
                path = resources_dir / StubInfoPlistPaths.plist_filename(entry)
                try:
                    self.writer.write(path, plistlib.dumps(plist, fmt=plistlib.FMT_XML))
                except OSError as e:
                    self.message_logger.error(
                        "WritingPlistFailed",
                        "Failed to write plist %s: %s",
                        path,
                        e,
                        context=self.project_name,
                    )
                    return


def generated_artifact_folders(main_group: PBXGroup, output_folder: Path) -> List[str]:
    """Returns the deepest directories that hold generated files.

    Creating only these covers every generated file, since parents are created
    along the way.
    """
    trie = PathTrie()
    for file_ref in main_group.all_sources:
        if file_ref.is_input_file:
            continue
        path = os.path.normpath(os.path.join(str(output_folder), file_ref.source_root_relative_path))
        trie.insert(os.path.dirname(path))
    return trie.leaf_paths()


def create_generated_artifact_folders(
    main_group: PBXGroup,
    output_folder: Path,
    writer: FileWriter,
    message_logger: MessageLogger,
    project_name: Optional[str] = None,
) -> List[str]:
    failed: List[str] = []
    for folder in generated_artifact_folders(main_group, output_folder):
        try:
            writer.make_dirs(folder)
        except OSError:
            failed.append(folder)
    if failed:
        message_logger.warning(
            "CreatingGeneratedArtifactFoldersFailed",
            "Failed to create folders for generated artifacts %s. The generated Xcode project may need to be reloaded after the first build.",
            ", ".join(failed),
            context=project_name,
        )
    return failed
