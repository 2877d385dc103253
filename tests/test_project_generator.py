from __future__ import annotations

from pathlib import Path
import plistlib
import tempfile
import unittest

from xcgen.config import BuildScriptOption, GeneratorConfig
from xcgen.details.label import BuildLabel
from xcgen.details.messages import MessageLogger, Severity
from xcgen.details.options import GeneratorOptions, OptionKey
from xcgen.details.rule_graph import JsonRuleGraph
from xcgen.errors import InvalidOutputPath, LabelAspectFailure, LabelResolutionFailed
from xcgen.generators.xcode.project_generator import XcodeProjectGenerator

from helpers import FailingRuleGraph, RecordingWriter, make_resources

RULE_GRAPH = {
    "execution_root": "/private/var/exec'root",
    "rules": [
        {
            "label": "//app:App",
            "type": "ios_application",
            "sdk_root": "iphoneos",
            "srcs": ["app/main.m", {"path": "bazel-genfiles/app/gen.m", "generated": True}],
            "deps": ["//lib:lib"],
            "extensions": ["//app:Ext"],
            "attributes": {"swift_language_version": "5.0"},
        },
        {
            "label": "//app:Ext",
            "type": "ios_extension",
            "sdk_root": "iphoneos",
            "extension_type": "com.apple.widget-extension",
            "srcs": ["app/ext/Ext.m"],
        },
        {"label": "//lib:lib", "type": "objc_library", "srcs": ["lib/lib.m"]},
        {
            "label": "//tests:T",
            "type": "ios_unit_test",
            "sdk_root": "iphoneos",
            "linked_targets": ["//app:App"],
            "srcs": ["tests/T.m"],
        },
        {"label": "//tests:S", "type": "test_suite", "tests": ["//tests:T"]},
    ],
    "buildfiles": {"//app:App": ["app/BUILD"], "//tests:T": ["tests/BUILD"]},
    "messages": ["INFO: analysed 5 targets"],
}


class ProjectGeneratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.workspace = self.root / "ws"
        self.workspace.mkdir()
        self.output = self.workspace / "out"
        self.resources = make_resources(self.root / "resources")
        self.logger = MessageLogger()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _generator(self, labels, options=None, rule_graph=None, writer=None) -> XcodeProjectGenerator:
        config = GeneratorConfig(
            project_name="Demo",
            build_target_labels=[BuildLabel(label) for label in labels],
            options=options or GeneratorOptions(),
        )
        generator = XcodeProjectGenerator(
            workspace_root=self.workspace,
            config=config,
            rule_graph=rule_graph or JsonRuleGraph.from_dict(RULE_GRAPH),
            resources=self.resources,
            message_logger=self.logger,
            writer=writer,
        )
        generator.username_fetcher = lambda: "tester"
        return generator

    def test_generates_complete_bundle(self) -> None:
        generator = self._generator(["//app:App", "//tests:S"])

        project_url = generator.generate(self.output, [BuildScriptOption("XCGEN_EXTRA", "--x --y")])

        self.assertEqual(project_url, self.output / "Demo.xcodeproj")
        pbxproj = (project_url / "project.pbxproj").read_text()
        self.assertIn("XCGEN_PROJECT = Demo;", pbxproj)
        self.assertIn("XCGEN_EXTRA = \"--x --y\";", pbxproj)
        self.assertIn("SWIFT_VERSION = 5.0;", pbxproj)
        self.assertIn("_bazel_clean_", pbxproj)
        self.assertIn("_idx_", pbxproj)

        shared = plistlib.loads(
            (project_url / "project.xcworkspace/xcshareddata/WorkspaceSettings.xcsettings").read_bytes()
        )
        self.assertEqual(shared, {"IDEWorkspaceSharedSettings_AutocreateContextsIfNeeded": False})
        per_user = plistlib.loads(
            (
                project_url
                / "project.xcworkspace/xcuserdata/tester.xcuserdatad/WorkspaceSettings.xcsettings"
            ).read_bytes()
        )
        self.assertEqual(per_user, {"LiveSourceIssuesEnabled": True, "IssueFilterStyle": "ShowAll"})

        schemes = sorted(p.name for p in (project_url / "xcshareddata/xcschemes").iterdir())
        self.assertEqual(schemes, ["App.xcscheme", "Ext.xcscheme", "S_Suite.xcscheme", "T.xcscheme"])

        support = project_url / ".xcgen"
        self.assertTrue((support / "Scripts/bazel_build.py").is_file())
        self.assertTrue((support / "Scripts/bazel_clean.sh").is_file())
        self.assertEqual(
            (support / "Scripts/execroot_path.py").read_text(),
            "EXECUTION_ROOT = '/private/var/execroot'\n",
        )
        self.assertTrue((support / "Bazel/WORKSPACE").is_file())
        self.assertTrue((support / "Bazel/xcgen/BUILD").is_file())
        self.assertTrue((support / "Utils/post_processor").is_file())
        self.assertTrue((support / "Configs/Demo.xcgenconf").is_file())
        self.assertTrue((support / "Resources/StubInfoPlist.plist").is_file())
        stub = plistlib.loads((support / "Resources/Stub_app-Ext.plist").read_bytes())
        self.assertEqual(stub["NSExtension"]["NSExtensionPointIdentifier"], "com.apple.widget-extension")

        self.assertTrue((self.workspace / "bazel-genfiles/app").is_dir())
        self.assertEqual(
            [m for m in self.logger.messages if m.severity in (Severity.ERROR, Severity.WARNING)], []
        )
        self.assertIn("generating_project", self.logger.timings)

    def test_output_is_deterministic(self) -> None:
        first = self._generator(["//app:App"]).generate(self.output)
        first_text = (first / "project.pbxproj").read_text()

        second = self._generator(["//app:App"]).generate(self.output)

        self.assertEqual((second / "project.pbxproj").read_text(), first_text)

    def test_per_user_settings_are_kept_and_shared_settings_replaced(self) -> None:
        project_url = self._generator(["//app:App"]).generate(self.output)
        per_user = project_url / "project.xcworkspace/xcuserdata/tester.xcuserdatad/WorkspaceSettings.xcsettings"
        shared = project_url / "project.xcworkspace/xcshareddata/WorkspaceSettings.xcsettings"
        per_user.write_bytes(plistlib.dumps({"Custom": True}))
        shared.write_bytes(plistlib.dumps({"Custom": True}))

        self._generator(["//app:App"]).generate(self.output)

        self.assertEqual(plistlib.loads(per_user.read_bytes()), {"Custom": True})
        self.assertNotIn("Custom", plistlib.loads(shared.read_bytes()))

    def test_test_hosts_are_recovered(self) -> None:
        project_url = self._generator(["//tests:T"]).generate(self.output)

        schemes = sorted(p.name for p in (project_url / "xcshareddata/xcschemes").iterdir())
        self.assertEqual(schemes, ["App.xcscheme", "T.xcscheme"])
        pbxproj = (project_url / "project.pbxproj").read_text()
        self.assertIn("TEST_HOST = \"$(BUILT_PRODUCTS_DIR)/App.app/App\";", pbxproj)

    def test_options(self) -> None:
        options = GeneratorOptions()
        options.set(OptionKey.SUPPRESS_SWIFT_UPDATE_CHECK, "YES")
        options.set(OptionKey.INCLUDE_BUILD_SOURCES, "YES")

        project_url = self._generator(["//app:App"], options).generate(self.output)

        pbxproj = (project_url / "project.pbxproj").read_text()
        self.assertIn("LastSwiftUpdateCheck = 0710;", pbxproj)
        self.assertIn("/* BUILD */", pbxproj)

    def test_library_at_top_level_is_warned_about(self) -> None:
        self._generator(["//app:App", "//lib:lib"]).generate(self.output)

        self.assertEqual(len(self.logger.messages_with_key("TopLevelLibraryTarget")), 1)

    def test_unknown_extension_is_reported(self) -> None:
        rule_graph = JsonRuleGraph.from_dict(
            {
                "rules": [
                    {"label": "//app:App", "type": "ios_application", "extensions": ["//app:Missing"]},
                ]
            }
        )

        project_url = self._generator(["//app:App"], rule_graph=rule_graph).generate(self.output)

        self.assertTrue((project_url / "project.pbxproj").is_file())
        errors = self.logger.messages_with_key("UnknownTargetRule")
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].values, ("//app:Missing",))

    def test_target_names_never_collide(self) -> None:
        rule_graph = JsonRuleGraph.from_dict(
            {
                "rules": [
                    {"label": "//a:b-c", "type": "ios_application"},
                    {"label": "//b:c", "type": "ios_application"},
                    {"label": "//x:c", "type": "ios_application"},
                ]
            }
        )

        project_url = self._generator(
            ["//a:b-c", "//b:c", "//x:c"], rule_graph=rule_graph
        ).generate(self.output)

        schemes = sorted(p.name for p in (project_url / "xcshareddata/xcschemes").iterdir())
        self.assertEqual(schemes, ["b-c-2.xcscheme", "b-c.xcscheme", "x-c.xcscheme"])

    def test_artifact_folder_creation_can_be_suppressed(self) -> None:
        generator = self._generator(["//app:App"])
        generator.suppress_generated_artifact_folder_creation = True

        generator.generate(self.output)

        self.assertFalse((self.workspace / "bazel-genfiles").exists())

    def test_copy_failures_are_not_fatal(self) -> None:
        self.resources.post_processor.unlink()

        project_url = self._generator(["//app:App"]).generate(self.output)

        self.assertTrue((project_url / "project.pbxproj").is_file())
        self.assertEqual(len(self.logger.messages_with_key("CopyingResourceFailed")), 1)

    def test_invalid_output_path(self) -> None:
        output = self.workspace / "bazel-out" / "proj"
        writer = RecordingWriter()

        with self.assertRaises(InvalidOutputPath):
            self._generator(["//app:App"], writer=writer).generate(output)

        self.assertEqual(writer.written, [])

    def test_invalid_output_path_is_case_insensitive(self) -> None:
        with self.assertRaises(InvalidOutputPath):
            self._generator(["//app:App"]).generate(self.workspace / "Bazel-Bin" / "proj")

    def test_unresolved_labels(self) -> None:
        writer = RecordingWriter()

        with self.assertRaises(LabelResolutionFailed) as context:
            self._generator(["//app:App", "//missing:x"], writer=writer).generate(self.output)

        self.assertEqual(context.exception.labels, frozenset({BuildLabel("//missing:x")}))
        self.assertEqual(writer.written, [])
        self.assertFalse(self.output.exists())

    def test_rule_graph_failure_logs_pending_messages(self) -> None:
        rule_graph = FailingRuleGraph(messages=["ERROR: analysis failed"])

        with self.assertRaises(LabelAspectFailure):
            self._generator(["//app:App"], rule_graph=rule_graph).generate(self.output)

        debug_texts = [m.text for m in self.logger.messages if m.severity == Severity.DEBUG]
        self.assertIn("ERROR: analysis failed", debug_texts)
        self.assertFalse(rule_graph.has_queued_messages())


if __name__ == "__main__":
    unittest.main()
