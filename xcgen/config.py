import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from xcgen.details.label import BuildLabel
from xcgen.details.options import GeneratorOptions


@dataclass(frozen=True)
class ProjectLayout:
    """Fixed names and subdirectories of a generated project bundle."""

    artifact_directory: str = ".xcgen"
    package_name: str = "xcgen"
    build_script: str = "bazel_build.py"
    clean_script: str = "bazel_clean.sh"
    workspace_file: str = "WORKSPACE"
    post_processor_util: str = "post_processor"
    ios_ui_runner_entitlements: str = "iOSXCTRunner.entitlements"
    macos_ui_runner_entitlements: str = "macOSXCTRunner.entitlements"
    stub_info_plist: str = "StubInfoPlist.plist"
    stub_watchos2_info_plist: str = "StubWatchOS2InfoPlist.plist"
    stub_watchos2_appex_info_plist: str = "StubWatchOS2AppExInfoPlist.plist"
    cached_execution_root: str = "execroot_path.py"
    config_extension: str = "xcgenconf"
    run_test_build_config_prefix: str = "__TestRunner_"
    # (substring, reason) pairs; matched case-insensitively against the absolute output path
    invalid_output_paths: Tuple[Tuple[str, str], ...] = (
        ("/bazel-out/", "within the build output tree"),
        ("/bazel-bin/", "within the build output tree"),
        ("/bazel-genfiles/", "within the build output tree"),
        ("/_bazel_", "within the build system output base"),
        (".xcodeproj/", "within another Xcode project bundle"),
    )

    @property
    def script_directory(self) -> str:
        return f"{self.artifact_directory}/Scripts"

    @property
    def bazel_directory(self) -> str:
        return f"{self.artifact_directory}/Bazel"

    @property
    def util_directory(self) -> str:
        return f"{self.artifact_directory}/Utils"

    @property
    def config_directory(self) -> str:
        return f"{self.artifact_directory}/Configs"

    @property
    def resources_directory(self) -> str:
        return f"{self.artifact_directory}/Resources"


@dataclass(frozen=True)
class ResourceSourcePaths:
    """Source locations of the support files copied into every project bundle."""

    build_script: Path
    clean_script: Path
    post_processor: Path
    ios_ui_runner_entitlements: Path
    macos_ui_runner_entitlements: Path
    stub_info_plist: Path
    stub_ios_appex_info_plist_template: Path
    stub_watchos2_info_plist: Path
    stub_watchos2_appex_info_plist: Path
    bazel_workspace_file: Path
    package_files: Tuple[Path, ...] = ()
    extra_build_scripts: Tuple[Path, ...] = ()

    @staticmethod
    def from_directory(root: Union[str, Path]) -> "ResourceSourcePaths":
        # Conventional layout of a resource directory shipped next to the generator
        root = Path(root)
        package_dir = root / "package"
        package_files: Tuple[Path, ...] = ()
        if package_dir.is_dir():
            package_files = tuple(sorted(p for p in package_dir.iterdir() if p.is_file()))
        extra_dir = root / "scripts"
        extra_scripts: Tuple[Path, ...] = ()
        if extra_dir.is_dir():
            extra_scripts = tuple(sorted(p for p in extra_dir.iterdir() if p.is_file()))
        return ResourceSourcePaths(
            build_script=root / "bazel_build.py",
            clean_script=root / "bazel_clean.sh",
            post_processor=root / "post_processor",
            ios_ui_runner_entitlements=root / "iOSXCTRunner.entitlements",
            macos_ui_runner_entitlements=root / "macOSXCTRunner.entitlements",
            stub_info_plist=root / "StubInfoPlist.plist",
            stub_ios_appex_info_plist_template=root / "StubIOSAppExtensionInfoPlist.plist",
            stub_watchos2_info_plist=root / "StubWatchOS2InfoPlist.plist",
            stub_watchos2_appex_info_plist=root / "StubWatchOS2AppExInfoPlist.plist",
            bazel_workspace_file=root / "WORKSPACE",
            package_files=package_files,
            extra_build_scripts=extra_scripts,
        )


@dataclass(frozen=True)
class BuildScriptOption:
    identifier: str
    arguments: str


@dataclass
class GeneratorConfig:
    project_name: str
    build_target_labels: List[BuildLabel]
    path_filters: List[str] = field(default_factory=list)
    options: GeneratorOptions = field(default_factory=GeneratorOptions)
    additional_file_paths: Optional[List[str]] = None
    bazel_path: str = "bazel"

    @property
    def xcode_project_filename(self) -> str:
        return f"{self.project_name}.xcodeproj"

    def default_filename(self, layout: ProjectLayout) -> str:
        return f"{self.project_name}.{layout.config_extension}"

    def per_user_filename(self, layout: ProjectLayout) -> str:
        return f"{self.project_name}.{layout.config_extension}-user"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "projectName": self.project_name,
            "buildTargets": [label.value for label in self.build_target_labels],
            "sourceFilters": list(self.path_filters),
            "bazelPath": self.bazel_path,
        }
        if self.additional_file_paths is not None:
            data["additionalFilePaths"] = list(self.additional_file_paths)
        options = self.options.to_dict()
        if options:
            data["options"] = options
        return data

    def save(self) -> bytes:
        return (json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n").encode("utf-8")

    def save_per_user_settings(self) -> Optional[bytes]:
        options = self.options.to_dict(per_user=True)
        if not options:
            return None
        data = {"options": options}
        return (json.dumps(data, indent=2, sort_keys=True) + "\n").encode("utf-8")

    @staticmethod
    def from_dict(
        data: Dict[str, Any], per_user: Optional[Dict[str, Any]] = None
    ) -> "GeneratorConfig":
        if "projectName" not in data:
            raise ValueError("generator config requires 'projectName'")
        labels: List[BuildLabel] = []
        for value in data.get("buildTargets", []):
            label = BuildLabel(value)
            if label not in labels:
                labels.append(label)
        return GeneratorConfig(
            project_name=data["projectName"],
            build_target_labels=labels,
            path_filters=list(data.get("sourceFilters", [])),
            options=GeneratorOptions.from_dict(
                data.get("options", {}), (per_user or {}).get("options", {})
            ),
            additional_file_paths=data.get("additionalFilePaths"),
            bazel_path=data.get("bazelPath", "bazel"),
        )

    @staticmethod
    def load(path: Union[str, Path]) -> "GeneratorConfig":
        path = Path(path)
        with open(path) as f:
            data = json.load(f)
        per_user = None
        per_user_path = path.with_name(path.name + "-user")
        if per_user_path.exists():
            with open(per_user_path) as f:
                per_user = json.load(f)
        return GeneratorConfig.from_dict(data, per_user)
