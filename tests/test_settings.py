from __future__ import annotations

import unittest

from xcgen.config import BuildScriptOption
from xcgen.generators.xcode.settings import aggregate_build_settings, project_sdk_root

from helpers import entry


def _sdks(*sdks):
    return [entry(f"//app:t{i}", sdk_root=sdk) for i, sdk in enumerate(sdks)]


class ProjectSdkRootTests(unittest.TestCase):
    def test_single_sdk(self) -> None:
        self.assertEqual(project_sdk_root(_sdks("macosx", "macosx")), "macosx")

    def test_no_sdk_defaults_to_ios(self) -> None:
        self.assertEqual(project_sdk_root(_sdks(None)), "iphoneos")
        self.assertEqual(project_sdk_root([]), "iphoneos")

    def test_phone_and_watch_use_phone_sdk(self) -> None:
        self.assertEqual(project_sdk_root(_sdks("iphoneos", "watchos")), "iphoneos")

    def test_mixed_platforms_have_no_sdk(self) -> None:
        self.assertIsNone(project_sdk_root(_sdks("iphoneos", "macosx")))
        self.assertIsNone(project_sdk_root(_sdks("iphoneos", "watchos", "appletvos")))


class AggregateBuildSettingsTests(unittest.TestCase):
    def test_settings(self) -> None:
        entries = [
            entry("//a:a", attributes={"swift_language_version": "4.2"}),
            entry("//b:b", attributes={"swift_language_version": "5.0", "swift_toolchain": "swift5"}),
        ]

        settings = aggregate_build_settings(
            entries, "Demo", [BuildScriptOption("XCGEN_ARGS", "--config=dbg")]
        )

        self.assertEqual(settings["SDKROOT"], "iphoneos")
        self.assertEqual(settings["SWIFT_VERSION"], "5.0")
        self.assertEqual(settings["TOOLCHAINS"], "swift5")
        self.assertEqual(settings["XCGEN_DEBUG_PREFIX_MAP"], "YES")
        self.assertEqual(settings["XCGEN_SWIFT_INDEX_STORE"], "YES")
        self.assertEqual(settings["XCGEN_ARGS"], "--config=dbg")
        self.assertEqual(settings["XCGEN_PROJECT"], "Demo")

    def test_mixed_sdks_leave_sdkroot_unset(self) -> None:
        settings = aggregate_build_settings(_sdks("iphoneos", "macosx"), "Demo")

        self.assertNotIn("SDKROOT", settings)


if __name__ == "__main__":
    unittest.main()
