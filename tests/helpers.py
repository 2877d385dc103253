from __future__ import annotations

import plistlib
from pathlib import Path
from typing import Iterable, List, Optional

from xcgen.config import ResourceSourcePaths
from xcgen.details.file_writer import FileWriter
from xcgen.details.label import BuildLabel
from xcgen.details.options import GeneratorOptions
from xcgen.details.rule_entry import FileInfo, RuleEntry, RuleEntryMap
from xcgen.details.rule_graph import JsonRuleGraph, RuleGraphError
from xcgen.details.messages import MessageLogger
from xcgen.generators.xcode.model import PBXGroup, PBXProject, SourceTree
from xcgen.generators.xcode.target_generator import PBXTargetGenerator, StubInfoPlistPaths


def labels(*values: str) -> frozenset:
    return frozenset(BuildLabel(v) for v in values)


def entry(
    label: str,
    rule_type: str = "ios_application",
    deps: Iterable[str] = (),
    extensions: Iterable[str] = (),
    hosts: Iterable[str] = (),
    tests: Iterable[str] = (),
    srcs: Iterable[str] = (),
    generated: Iterable[str] = (),
    framework_imports: Iterable[str] = (),
    includes: Iterable[str] = (),
    defines: Iterable[str] = (),
    sdk_root: Optional[str] = "iphoneos",
    extension_type: Optional[str] = None,
    attributes: Optional[dict] = None,
) -> RuleEntry:
    return RuleEntry(
        label=BuildLabel(label),
        type=rule_type,
        attributes=attributes or {},
        dependencies=labels(*deps),
        extensions=labels(*extensions),
        linked_target_labels=labels(*hosts),
        test_suite_dependencies=labels(*tests),
        sdk_root=sdk_root,
        extension_type=extension_type,
        source_files=tuple(FileInfo(p) for p in srcs)
        + tuple(FileInfo(p, is_generated=True) for p in generated),
        includes=tuple(includes),
        defines=tuple(defines),
        framework_imports=tuple(framework_imports),
    )


def rule_map(*entries: RuleEntry) -> RuleEntryMap:
    return RuleEntryMap(entries)


class FailingRuleGraph(JsonRuleGraph):
    def __init__(self, messages: Iterable[str] = ()):
        super().__init__(rules=[], messages=messages)

    def rule_entries_for_labels(self, labels, options):
        raise RuleGraphError("aspect failed")


class RecordingWriter(FileWriter):
    """Writes to disk but remembers every path, and fails for selected directories."""

    def __init__(self, failing_dirs: Iterable[str] = ()):
        self.written: List[Path] = []
        self.failing_dirs = list(failing_dirs)

    def write(self, path, data) -> None:
        self.written.append(Path(path))
        super().write(path, data)

    def make_dirs(self, path) -> None:
        if any(str(path).startswith(d) for d in self.failing_dirs):
            raise PermissionError(f"cannot create {path}")
        super().make_dirs(path)


def make_resources(root: Path) -> ResourceSourcePaths:
    root.mkdir(parents=True, exist_ok=True)
    for name in (
        "bazel_build.py",
        "bazel_clean.sh",
        "post_processor",
        "iOSXCTRunner.entitlements",
        "macOSXCTRunner.entitlements",
        "StubInfoPlist.plist",
        "StubWatchOS2InfoPlist.plist",
        "StubWatchOS2AppExInfoPlist.plist",
        "WORKSPACE",
    ):
        (root / name).write_text(f"# {name}\n")
    template = {"CFBundleIdentifier": "stub", "NSExtension": {"NSExtensionPointIdentifier": ""}}
    (root / "StubIOSAppExtensionInfoPlist.plist").write_bytes(plistlib.dumps(template))
    (root / "package").mkdir(exist_ok=True)
    (root / "package" / "BUILD").write_text("# package\n")
    (root / "package" / "xcgen_aspects.bzl").write_text("# aspects\n")
    return ResourceSourcePaths.from_directory(root)


def make_target_generator(
    options: Optional[GeneratorOptions] = None,
    message_logger: Optional[MessageLogger] = None,
    project_name: str = "Demo",
) -> PBXTargetGenerator:
    main_group = PBXGroup(name="mainGroup", sourceTree=SourceTree.SOURCE_ROOT)
    project = PBXProject(mainGroup=main_group, name=project_name)
    return PBXTargetGenerator(
        project=project,
        build_script_path="${PROJECT_FILE_PATH}/.xcgen/Scripts/bazel_build.py",
        stub_info_plist_paths=StubInfoPlistPaths(
            resources_directory="${PROJECT_FILE_PATH}/.xcgen/Resources",
            default_stub="${PROJECT_FILE_PATH}/.xcgen/Resources/StubInfoPlist.plist",
            watchos_stub="${PROJECT_FILE_PATH}/.xcgen/Resources/StubWatchOS2InfoPlist.plist",
            watchos_appex_stub="${PROJECT_FILE_PATH}/.xcgen/Resources/StubWatchOS2AppExInfoPlist.plist",
        ),
        options=options or GeneratorOptions(),
        message_logger=message_logger or MessageLogger(),
    )
