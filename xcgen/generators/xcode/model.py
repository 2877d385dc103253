# Xcode project file model.
#
# This module defines the data model for an Xcode project file (.pbxproj).
# Objects reference each other directly. Identifiers are not part of the model:
# the formatter assigns them while serializing, using each object's key().

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Union

# Field metadata for values used while building the project but never written out
INTERNAL = {"serialize": False}
# Field metadata for object references written as a bare identifier (no comment)
BARE_ID = {"bare_id": True}


# Source Tree values used in PBXFileReference and PBXGroup
class SourceTree(Enum):
    # Relative to the enclosing group
    GROUP = "<group>"
    # Relative to the directory holding the .xcodeproj bundle
    SOURCE_ROOT = "SOURCE_ROOT"
    # For product references only
    BUILT_PRODUCTS_DIR = "BUILT_PRODUCTS_DIR"


# File types used in PBXFileReference
class FileType(Enum):
    C = "sourcecode.c.c"
    CPP = "sourcecode.cpp.cpp"
    C_HEADER = "sourcecode.c.h"
    CPP_HEADER = "sourcecode.cpp.h"
    SWIFT = "sourcecode.swift"
    OBJC = "sourcecode.c.objc"
    OBJCPP = "sourcecode.cpp.objcpp"
    XIB = "file.xib"
    STORYBOARD = "file.storyboard"
    PLIST = "text.plist.xml"
    XCCONFIG = "text.xcconfig"
    STRINGS = "text.plist.strings"
    ASSET_CATALOG = "folder.assetcatalog"
    FRAMEWORK = "wrapper.framework"
    BUNDLE = "wrapper.bundle"
    APP = "wrapper.application"
    APP_EXTENSION = "wrapper.app-extension"
    XCTEST = "wrapper.cfbundle"
    DYLIB = "compiled.mach-o.dylib"
    TEXT = "text"
    PYTHON = "text.script.python"
    FOLDER = "folder"
    EXECUTABLE = "compiled.mach-o.executable"
    ARCHIVE = "archive.ar"

    @staticmethod
    def from_extension(ext: str) -> "FileType":
        if ext.startswith("."):
            ext = ext[1:]

        ext_to_type = {
            "c": FileType.C,
            "cc": FileType.CPP,
            "cpp": FileType.CPP,
            "cxx": FileType.CPP,
            "h": FileType.C_HEADER,
            "hh": FileType.CPP_HEADER,
            "hpp": FileType.CPP_HEADER,
            "swift": FileType.SWIFT,
            "m": FileType.OBJC,
            "mm": FileType.OBJCPP,
            "xib": FileType.XIB,
            "storyboard": FileType.STORYBOARD,
            "plist": FileType.PLIST,
            "xcconfig": FileType.XCCONFIG,
            "strings": FileType.STRINGS,
            "xcassets": FileType.ASSET_CATALOG,
            "framework": FileType.FRAMEWORK,
            "bundle": FileType.BUNDLE,
            "app": FileType.APP,
            "appex": FileType.APP_EXTENSION,
            "xctest": FileType.XCTEST,
            "dylib": FileType.DYLIB,
            "a": FileType.ARCHIVE,
            "py": FileType.PYTHON,
            "bzl": FileType.TEXT,
        }

        return ext_to_type.get(ext.lower(), FileType.TEXT)


# Product types used in PBXNativeTarget
class ProductType(Enum):
    APPLICATION = "com.apple.product-type.application"
    MESSAGES_APPLICATION = "com.apple.product-type.application.messages"
    WATCH_APP = "com.apple.product-type.application.watchapp"
    WATCH2_APP = "com.apple.product-type.application.watchapp2"
    FRAMEWORK = "com.apple.product-type.framework"
    STATIC_LIBRARY = "com.apple.product-type.library.static"
    DYNAMIC_LIBRARY = "com.apple.product-type.library.dynamic"
    BUNDLE = "com.apple.product-type.bundle"
    TOOL = "com.apple.product-type.tool"
    UNIT_TEST_BUNDLE = "com.apple.product-type.bundle.unit-test"
    UI_TEST_BUNDLE = "com.apple.product-type.bundle.ui-testing"
    APP_EXTENSION = "com.apple.product-type.app-extension"
    MESSAGES_EXTENSION = "com.apple.product-type.app-extension.messages"
    WATCH_EXTENSION = "com.apple.product-type.watchkit-extension"
    WATCH2_EXTENSION = "com.apple.product-type.watchkit2-extension"

    @property
    def is_test(self) -> bool:
        return self in (ProductType.UNIT_TEST_BUNDLE, ProductType.UI_TEST_BUNDLE)

    @property
    def is_watch_app(self) -> bool:
        return self in (ProductType.WATCH_APP, ProductType.WATCH2_APP)

    @property
    def file_type(self) -> FileType:
        return _PRODUCT_FILE_TYPES.get(self, FileType.EXECUTABLE)

    @property
    def extension(self) -> str:
        return _PRODUCT_EXTENSIONS.get(self, "")


_PRODUCT_FILE_TYPES = {
    ProductType.APPLICATION: FileType.APP,
    ProductType.MESSAGES_APPLICATION: FileType.APP,
    ProductType.WATCH_APP: FileType.APP,
    ProductType.WATCH2_APP: FileType.APP,
    ProductType.FRAMEWORK: FileType.FRAMEWORK,
    ProductType.STATIC_LIBRARY: FileType.ARCHIVE,
    ProductType.DYNAMIC_LIBRARY: FileType.DYLIB,
    ProductType.BUNDLE: FileType.BUNDLE,
    ProductType.UNIT_TEST_BUNDLE: FileType.XCTEST,
    ProductType.UI_TEST_BUNDLE: FileType.XCTEST,
    ProductType.APP_EXTENSION: FileType.APP_EXTENSION,
    ProductType.MESSAGES_EXTENSION: FileType.APP_EXTENSION,
    ProductType.WATCH_EXTENSION: FileType.APP_EXTENSION,
    ProductType.WATCH2_EXTENSION: FileType.APP_EXTENSION,
}

_PRODUCT_EXTENSIONS = {
    ProductType.APPLICATION: ".app",
    ProductType.MESSAGES_APPLICATION: ".app",
    ProductType.WATCH_APP: ".app",
    ProductType.WATCH2_APP: ".app",
    ProductType.FRAMEWORK: ".framework",
    ProductType.STATIC_LIBRARY: ".a",
    ProductType.DYNAMIC_LIBRARY: ".dylib",
    ProductType.BUNDLE: ".bundle",
    ProductType.UNIT_TEST_BUNDLE: ".xctest",
    ProductType.UI_TEST_BUNDLE: ".xctest",
    ProductType.APP_EXTENSION: ".appex",
    ProductType.MESSAGES_EXTENSION: ".appex",
    ProductType.WATCH_EXTENSION: ".appex",
    ProductType.WATCH2_EXTENSION: ".appex",
}


# Rule types that produce an Xcode product. Anything not listed here only
# contributes sources to indexer targets.
RULE_PRODUCT_TYPES: Dict[str, ProductType] = {
    "ios_application": ProductType.APPLICATION,
    "macos_application": ProductType.APPLICATION,
    "tvos_application": ProductType.APPLICATION,
    "ios_imessage_application": ProductType.MESSAGES_APPLICATION,
    "ios_extension": ProductType.APP_EXTENSION,
    "macos_extension": ProductType.APP_EXTENSION,
    "tvos_extension": ProductType.APP_EXTENSION,
    "ios_imessage_extension": ProductType.MESSAGES_EXTENSION,
    "ios_sticker_pack_extension": ProductType.MESSAGES_EXTENSION,
    "watchos_application": ProductType.WATCH2_APP,
    "watchos_extension": ProductType.WATCH2_EXTENSION,
    "ios_framework": ProductType.FRAMEWORK,
    "macos_bundle": ProductType.BUNDLE,
    "macos_command_line_application": ProductType.TOOL,
    "cc_binary": ProductType.TOOL,
    "ios_unit_test": ProductType.UNIT_TEST_BUNDLE,
    "macos_unit_test": ProductType.UNIT_TEST_BUNDLE,
    "tvos_unit_test": ProductType.UNIT_TEST_BUNDLE,
    "ios_ui_test": ProductType.UI_TEST_BUNDLE,
    "macos_ui_test": ProductType.UI_TEST_BUNDLE,
    "tvos_ui_test": ProductType.UI_TEST_BUNDLE,
}


def product_type_for_rule(rule_type: str) -> Optional[ProductType]:
    return RULE_PRODUCT_TYPES.get(rule_type)


# Boolean-like values used in build settings
class YesNo(Enum):
    YES = "YES"
    NO = "NO"


class ProxyType(Enum):
    TARGET_DEPENDENCY = 1  # For target dependencies


SettingValue = Union[str, YesNo, List[str]]


# Base class for all Xcode objects
@dataclass(eq=False)
class XcodeObject(ABC):
    @abstractmethod
    def key(self) -> str:
        pass

    def comment(self) -> Optional[str]:
        return getattr(self, "name", None)


# PBX* object types
@dataclass(eq=False)
class PBXFileReference(XcodeObject):
    path: str
    sourceTree: SourceTree = SourceTree.GROUP
    name: Optional[str] = None
    lastKnownFileType: Optional[FileType] = None
    explicitFileType: Optional[FileType] = None
    includeInIndex: Optional[int] = None
    # False for files the build produces rather than reads from the workspace
    is_input_file: bool = field(default=True, metadata=INTERNAL)
    parent: Optional["PBXGroup"] = field(default=None, repr=False, metadata=INTERNAL)

    def key(self) -> str:
        return f"PBXFileReference:{self.sourceTree.name}:{self.source_root_relative_path}"

    def comment(self) -> Optional[str]:
        return self.name or os.path.basename(self.path)

    @property
    def source_root_relative_path(self) -> str:
        if self.sourceTree != SourceTree.GROUP or self.parent is None:
            return self.path
        return os.path.join(self.parent.source_root_relative_path, self.path)


@dataclass(eq=False)
class PBXGroup(XcodeObject):
    name: Optional[str]
    path: Optional[str] = None
    sourceTree: SourceTree = SourceTree.GROUP
    children: List[Union["PBXGroup", PBXFileReference]] = field(default_factory=list)
    parent: Optional["PBXGroup"] = field(default=None, repr=False, metadata=INTERNAL)

    def key(self) -> str:
        return f"PBXGroup:{self.name}:{self.source_root_relative_path}"

    def comment(self) -> Optional[str]:
        return self.name or self.path

    @property
    def source_root_relative_path(self) -> str:
        own = self.path or ""
        if self.sourceTree != SourceTree.GROUP or self.parent is None:
            return own
        return os.path.join(self.parent.source_root_relative_path, own)

    def add_child(self, child: Union["PBXGroup", PBXFileReference]) -> None:
        child.parent = self
        self.children.append(child)

    def get_or_create_child_group(self, name: str, path: Optional[str] = None) -> "PBXGroup":
        for child in self.children:
            if isinstance(child, PBXGroup) and child.name == name and child.path == path:
                return child
        group = PBXGroup(name=name, path=path)
        self.add_child(group)
        return group

    def get_or_create_file_reference(self, path: str, is_input_file: bool = True) -> PBXFileReference:
        for child in self.children:
            if isinstance(child, PBXFileReference) and child.path == path:
                if not is_input_file:
                    child.is_input_file = False
                return child
        _, ext = os.path.splitext(path)
        file_ref = PBXFileReference(
            path=path,
            lastKnownFileType=FileType.from_extension(ext),
            is_input_file=is_input_file,
        )
        self.add_child(file_ref)
        return file_ref

    def file_reference_for_workspace_path(self, workspace_path: str, is_input_file: bool = True) -> PBXFileReference:
        # One group per directory component, mirroring the workspace layout
        parts = [p for p in workspace_path.split("/") if p and p != "."]
        if not parts:
            raise ValueError(f"invalid workspace path '{workspace_path}'")
        group = self
        for part in parts[:-1]:
            group = group.get_or_create_child_group(part, part)
        return group.get_or_create_file_reference(parts[-1], is_input_file)

    @property
    def all_sources(self) -> Iterator[PBXFileReference]:
        yield from self._all_sources(set())

    def _all_sources(self, visiting: Set[int]) -> Iterator[PBXFileReference]:
        if id(self) in visiting:
            raise ValueError(f"group '{self.comment()}' contains itself")
        visiting.add(id(self))
        for child in self.children:
            if isinstance(child, PBXGroup):
                yield from child._all_sources(visiting)
            else:
                yield child
        visiting.discard(id(self))


@dataclass(eq=False)
class PBXBuildFile(XcodeObject):
    fileRef: PBXFileReference
    owner: str = field(default="", metadata=INTERNAL)
    settings: Optional[Dict[str, Any]] = None

    def key(self) -> str:
        return f"PBXBuildFile:{self.owner}:{self.fileRef.key()}"

    def comment(self) -> Optional[str]:
        return self.fileRef.comment()


@dataclass(eq=False)
class PBXSourcesBuildPhase(XcodeObject):
    files: List[PBXBuildFile] = field(default_factory=list)
    owner: str = field(default="", metadata=INTERNAL)
    buildActionMask: int = 2147483647
    runOnlyForDeploymentPostprocessing: int = 0

    def key(self) -> str:
        return f"{self.__class__.__name__}:{self.owner}"

    def comment(self) -> Optional[str]:
        return "Sources"


@dataclass(eq=False)
class PBXShellScriptBuildPhase(XcodeObject):
    shellScript: str
    name: Optional[str] = None
    owner: str = field(default="", metadata=INTERNAL)
    files: List[PBXBuildFile] = field(default_factory=list)
    buildActionMask: int = 2147483647
    runOnlyForDeploymentPostprocessing: int = 0
    inputPaths: List[str] = field(default_factory=list)
    outputPaths: List[str] = field(default_factory=list)
    shellPath: str = "/bin/sh"
    showEnvVarsInLog: int = 1

    def key(self) -> str:
        return f"{self.__class__.__name__}:{self.owner}:{self.shellScript}"

    def comment(self) -> Optional[str]:
        return self.name or "ShellScript"


@dataclass(eq=False)
class XCBuildConfiguration(XcodeObject):
    name: str
    buildSettings: Dict[str, SettingValue] = field(default_factory=dict)
    owner: str = field(default="PROJECT", metadata=INTERNAL)

    def key(self) -> str:
        return f"XCBuildConfiguration:{self.owner}:{self.name}"


@dataclass(eq=False)
class XCConfigurationList(XcodeObject):
    buildConfigurations: List[XCBuildConfiguration] = field(default_factory=list)
    defaultConfigurationIsVisible: int = 0
    defaultConfigurationName: str = "Release"
    owner: str = field(default="PROJECT", metadata=INTERNAL)

    def key(self) -> str:
        return f"XCConfigurationList:{self.owner}"

    def comment(self) -> Optional[str]:
        return f"Build configuration list for {self.owner}"

    def configuration(self, name: str) -> Optional[XCBuildConfiguration]:
        for config in self.buildConfigurations:
            if config.name == name:
                return config
        return None


@dataclass(eq=False)
class PBXNativeTarget(XcodeObject):
    name: str
    productType: ProductType
    buildConfigurationList: XCConfigurationList
    buildPhases: List[Union[PBXSourcesBuildPhase, PBXShellScriptBuildPhase]] = field(default_factory=list)
    dependencies: List["PBXTargetDependency"] = field(default_factory=list)
    buildRules: List[Any] = field(default_factory=list)
    productName: Optional[str] = None
    productReference: Optional[PBXFileReference] = None
    # Targets that must be built alongside this one when it is run from a scheme
    build_action_dependencies: List["PBXNativeTarget"] = field(default_factory=list, metadata=INTERNAL)

    def key(self) -> str:
        return f"PBXNativeTarget:{self.name}"

    @property
    def product_filename(self) -> str:
        return f"{self.productName or self.name}{self.productType.extension}"


@dataclass(eq=False)
class PBXLegacyTarget(XcodeObject):
    name: str
    buildConfigurationList: XCConfigurationList
    buildToolPath: str
    buildArgumentsString: str
    buildWorkingDirectory: str = ""
    passBuildSettingsInEnvironment: int = 1
    buildPhases: List[Any] = field(default_factory=list)
    dependencies: List["PBXTargetDependency"] = field(default_factory=list)
    productName: Optional[str] = None

    def key(self) -> str:
        return f"PBXLegacyTarget:{self.name}"


@dataclass(eq=False)
class PBXContainerItemProxy(XcodeObject):
    containerPortal: "PBXProject"
    remoteGlobalIDString: Union[PBXNativeTarget, PBXLegacyTarget] = field(metadata=BARE_ID)
    remoteInfo: str = ""
    proxyType: ProxyType = ProxyType.TARGET_DEPENDENCY

    def key(self) -> str:
        return f"PBXContainerItemProxy:{self.remoteGlobalIDString.key()}:{self.remoteInfo}:{self.proxyType.name}"

    def comment(self) -> Optional[str]:
        return "PBXContainerItemProxy"


@dataclass(eq=False)
class PBXTargetDependency(XcodeObject):
    target: Union[PBXNativeTarget, PBXLegacyTarget]
    targetProxy: PBXContainerItemProxy
    owner: str = field(default="", metadata=INTERNAL)

    def key(self) -> str:
        return f"PBXTargetDependency:{self.owner}:{self.target.key()}"

    def comment(self) -> Optional[str]:
        return "PBXTargetDependency"


Target = Union[PBXNativeTarget, PBXLegacyTarget]


@dataclass(eq=False)
class PBXProject(XcodeObject):
    mainGroup: PBXGroup
    buildConfigurationList: XCConfigurationList = field(default_factory=XCConfigurationList)
    targets: List[Target] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=lambda: {"LastUpgradeCheck": "1000"})
    compatibilityVersion: str = "Xcode 3.2"
    developmentRegion: str = "en"
    hasScannedForEncodings: int = 0
    knownRegions: List[str] = field(default_factory=lambda: ["en", "Base"])
    projectDirPath: str = ""
    projectRoot: str = ""
    name: str = field(default="", metadata=INTERNAL)
    target_by_name: Dict[str, Target] = field(default_factory=dict, repr=False, metadata=INTERNAL)
    linked_test_hosts: Dict[str, PBXNativeTarget] = field(default_factory=dict, repr=False, metadata=INTERNAL)

    def key(self) -> str:
        return f"PBXProject:{self.name}"

    def comment(self) -> Optional[str]:
        return "Project object"

    def add_target(self, target: Target) -> None:
        if target.name in self.target_by_name:
            raise ValueError(f"target '{target.name}' already exists in project '{self.name}'")
        self.targets.append(target)
        self.target_by_name[target.name] = target

    def create_dependency(self, target: Target, on: Target) -> PBXTargetDependency:
        proxy = PBXContainerItemProxy(
            containerPortal=self,
            remoteGlobalIDString=on,
            remoteInfo=on.name,
        )
        dependency = PBXTargetDependency(target=on, targetProxy=proxy, owner=target.name)
        target.dependencies.append(dependency)
        return dependency

    def link_test_target(self, test_target: PBXNativeTarget, host: PBXNativeTarget) -> None:
        self.linked_test_hosts[test_target.name] = host

    def linked_host_for_test_target(self, test_target: Target) -> Optional[PBXNativeTarget]:
        return self.linked_test_hosts.get(test_target.name)
