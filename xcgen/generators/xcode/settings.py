from typing import Dict, Iterable, Optional, Sequence

from xcgen.config import BuildScriptOption
from xcgen.details.rule_entry import RuleEntry

IOS_SDK = "iphoneos"
WATCHOS_SDK = "watchos"

# Build script features enabled for every generated project
BUILD_SETTINGS_FEATURES = (
    "XCGEN_DEBUG_PREFIX_MAP",
    "XCGEN_SWIFT_INDEX_STORE",
)

PROJECT_MARKER_SETTING = "XCGEN_PROJECT"


def project_sdk_root(entries: Iterable[RuleEntry]) -> Optional[str]:
    """Pick the SDKROOT shared by the given rules, if there is a sensible one."""
    discovered_sdks = {entry.sdk_root for entry in entries if entry.sdk_root}

    if len(discovered_sdks) == 1:
        return next(iter(discovered_sdks))

    # No SDK at all usually means a project still being set up; iOS is the
    # best supported platform, so fall back to it rather than failing.
    if not discovered_sdks:
        return IOS_SDK

    # A phone host with its watch app uses the phone SDK, as Xcode does.
    if discovered_sdks == {IOS_SDK, WATCHOS_SDK}:
        return IOS_SDK

    # Mixed platforms leave SDKROOT unset; Xcode then lists generic devices.
    return None


def aggregate_build_settings(
    entries: Sequence[RuleEntry],
    project_name: str,
    build_script_options: Sequence[BuildScriptOption] = (),
) -> Dict[str, str]:
    build_settings: Dict[str, str] = {}
    sdk_root = project_sdk_root(entries)
    if sdk_root is not None:
        build_settings["SDKROOT"] = sdk_root

    # Transitive settings from the targets; the last one seen wins
    for entry in entries:
        swift_version = entry.attributes.get("swift_language_version")
        if isinstance(swift_version, str):
            build_settings["SWIFT_VERSION"] = swift_version
        swift_toolchain = entry.attributes.get("swift_toolchain")
        if isinstance(swift_toolchain, str):
            build_settings["TOOLCHAINS"] = swift_toolchain

    for feature in BUILD_SETTINGS_FEATURES:
        build_settings[feature] = "YES"

    for option in build_script_options:
        build_settings[option.identifier] = option.arguments

    build_settings[PROJECT_MARKER_SETTING] = project_name
    return build_settings
