from __future__ import annotations

import unittest

from xcgen.details.label import BuildLabel
from xcgen.details.messages import MessageLogger
from xcgen.generators.xcode.model import (
    PBXLegacyTarget,
    PBXShellScriptBuildPhase,
    PBXSourcesBuildPhase,
    ProductType,
    SourceTree,
)
from xcgen.generators.xcode.target_generator import (
    CLEAN_TARGET_NAME,
    PBXTargetGenerator,
    path_included,
)

from helpers import entry, make_target_generator, rule_map


def _register_all(generator, entries, path_filters=None):
    processed = {}
    for e in entries:
        generator.register_rule_entry_for_indexer(e, entries, path_filters, processed)
    return processed


class PathFilterTests(unittest.TestCase):
    def test_filters(self) -> None:
        self.assertTrue(path_included("app", ["app"]))
        self.assertFalse(path_included("app/sub", ["app"]))
        self.assertTrue(path_included("app/sub", ["app/..."]))
        self.assertTrue(path_included("app", ["app/..."]))
        self.assertFalse(path_included("application", ["app/..."]))
        self.assertTrue(path_included("", [""]))
        self.assertFalse(path_included("app", [""]))
        self.assertTrue(path_included("anything/at/all", ["..."]))
        self.assertTrue(path_included("anything", []))


class IndexerTests(unittest.TestCase):
    def test_identical_settings_share_one_indexer(self) -> None:
        generator = make_target_generator()
        entries = rule_map(
            entry("//a:a", "objc_library", srcs=["a/a.m"]),
            entry("//b:b", "objc_library", srcs=["b/b.m"]),
        )
        _register_all(generator, entries)

        indexers = generator.generate_indexer_targets()

        self.assertEqual(len(indexers), 1)
        (name, target), = indexers.items()
        self.assertTrue(name.startswith("_idx_a_"))
        self.assertEqual(target.productType, ProductType.STATIC_LIBRARY)
        sources = target.buildPhases[0]
        self.assertIsInstance(sources, PBXSourcesBuildPhase)
        self.assertEqual([f.fileRef.path for f in sources.files], ["a.m", "b.m"])

    def test_distinct_settings_get_distinct_indexers(self) -> None:
        generator = make_target_generator()
        entries = rule_map(
            entry("//a:a", "objc_library", srcs=["a/a.m"], defines=["A=1"]),
            entry("//b:b", "objc_library", srcs=["b/b.m"], includes=["b/include"]),
        )
        _register_all(generator, entries)

        indexers = generator.generate_indexer_targets()

        self.assertEqual(len(indexers), 2)
        by_label = {t.name.split("_")[2]: t for t in indexers.values()}
        a_settings = by_label["a"].buildConfigurationList.configuration("Debug").buildSettings
        b_settings = by_label["b"].buildConfigurationList.configuration("Debug").buildSettings
        self.assertEqual(a_settings["GCC_PREPROCESSOR_DEFINITIONS"], ["A=1"])
        self.assertEqual(b_settings["HEADER_SEARCH_PATHS"], ["$(XCGEN_WR)/b/include"])

    def test_framework_search_paths_propagate_from_dependencies(self) -> None:
        generator = make_target_generator()
        entries = rule_map(
            entry("//app:app", "objc_library", srcs=["app/a.m"], deps=["//lib:lib", "//other:other"]),
            entry("//lib:lib", "objc_library", srcs=["lib/l.m"], deps=["//fw:fw"],
                  framework_imports=["third_party/Bar/Bar.framework"]),
            entry("//other:other", "objc_library", deps=["//fw:fw"]),
            entry("//fw:fw", "objc_framework", framework_imports=["third_party/Foo/Foo.framework"]),
        )

        processed = _register_all(generator, entries)

        self.assertEqual(processed[BuildLabel("//fw:fw")], ["third_party/Foo"])
        self.assertEqual(processed[BuildLabel("//lib:lib")], ["third_party/Bar", "third_party/Foo"])
        self.assertEqual(processed[BuildLabel("//app:app")], ["third_party/Bar", "third_party/Foo"])

    def test_dependency_cycles_terminate(self) -> None:
        generator = make_target_generator()
        entries = rule_map(
            entry("//a:a", "objc_library", srcs=["a/a.m"], deps=["//b:b"]),
            entry("//b:b", "objc_library", srcs=["b/b.m"], deps=["//a:a"]),
        )

        processed = _register_all(generator, entries)

        self.assertEqual(set(processed), {BuildLabel("//a:a"), BuildLabel("//b:b")})

    def test_path_filters_limit_indexed_sources(self) -> None:
        generator = make_target_generator()
        entries = rule_map(
            entry("//app:app", "objc_library", srcs=["app/a.m", "vendor/v.m"],
                  generated=["bazel-out/gen/app/g.m"]),
            entry("//other:other", "objc_library", srcs=["other/o.m"]),
        )
        _register_all(generator, entries, path_filters=["app/..."])

        indexers = generator.generate_indexer_targets()

        self.assertEqual(len(indexers), 1)
        (target,) = indexers.values()
        paths = [f.fileRef.source_root_relative_path for f in target.buildPhases[0].files]
        self.assertEqual(paths, ["app/a.m", "bazel-out/gen/app/g.m"])
        generated = [f for f in generator.main_group.all_sources if not f.is_input_file]
        self.assertEqual([f.path for f in generated], ["g.m"])


class BuildTargetTests(unittest.TestCase):
    def test_targets_settings_and_host_linking(self) -> None:
        generator = make_target_generator()
        entries = rule_map(
            entry("//app:App", attributes={"bundle_id": "com.example.app"}),
            entry("//app:Tests", "ios_unit_test", hosts=["//app:App"]),
            entry("//app:UITests", "ios_ui_test", hosts=["//app:App"]),
        )

        targets = generator.generate_build_targets_for_rule_entries(list(entries), entries)

        app = targets[BuildLabel("//app:App")]
        tests = targets[BuildLabel("//app:Tests")]
        ui_tests = targets[BuildLabel("//app:UITests")]
        app_settings = app.buildConfigurationList.configuration("Debug").buildSettings
        self.assertEqual(app_settings["BAZEL_TARGET"], "//app:App")
        self.assertEqual(app_settings["PRODUCT_BUNDLE_IDENTIFIER"], "com.example.app")
        self.assertEqual(
            app_settings["INFOPLIST_FILE"], "${PROJECT_FILE_PATH}/.xcgen/Resources/StubInfoPlist.plist"
        )
        self.assertEqual(app.productReference.sourceTree, SourceTree.BUILT_PRODUCTS_DIR)
        self.assertEqual(app.productReference.path, "App.app")
        phase = app.buildPhases[0]
        self.assertIsInstance(phase, PBXShellScriptBuildPhase)
        self.assertIn("//app:App", phase.shellScript)

        test_settings = tests.buildConfigurationList.configuration("__TestRunner_Debug").buildSettings
        self.assertEqual(test_settings["TEST_HOST"], "$(BUILT_PRODUCTS_DIR)/App.app/App")
        self.assertEqual(test_settings["BUNDLE_LOADER"], "$(TEST_HOST)")
        ui_settings = ui_tests.buildConfigurationList.configuration("Release").buildSettings
        self.assertEqual(ui_settings["TEST_TARGET_NAME"], "App")

        project = generator.project
        self.assertIs(project.linked_host_for_test_target(tests), app)
        self.assertEqual([d.target for d in tests.dependencies], [app])
        self.assertEqual(tests.build_action_dependencies, [app])

    def test_colliding_short_names_use_full_names(self) -> None:
        generator = make_target_generator()
        entries = rule_map(entry("//a:App"), entry("//b:App"), entry("//c:Other"))

        targets = generator.generate_build_targets_for_rule_entries(list(entries), entries)

        self.assertEqual(
            sorted(t.name for t in targets.values()), ["Other", "a-App", "b-App"]
        )

    def test_full_name_matching_another_short_name_is_suffixed(self) -> None:
        generator = make_target_generator()
        entries = rule_map(entry("//a:b-c"), entry("//b:c"), entry("//x:c"))

        targets = generator.generate_build_targets_for_rule_entries(list(entries), entries)

        self.assertEqual(
            {label.value: target.name for label, target in targets.items()},
            {"//a:b-c": "b-c", "//b:c": "b-c-2", "//x:c": "x-c"},
        )
        self.assertEqual(len(generator.project.targets), 3)

    def test_names_taken_by_generated_targets_are_avoided(self) -> None:
        generator = make_target_generator()
        generator.generate_clean_target("clean.sh")
        entries = rule_map(entry("//tools:_bazel_clean_"))

        targets = generator.generate_build_targets_for_rule_entries(list(entries), entries)

        self.assertEqual(targets[BuildLabel("//tools:_bazel_clean_")].name, "tools-_bazel_clean_")

    def test_unsupported_types_and_missing_hosts_are_reported(self) -> None:
        logger = MessageLogger()
        generator = make_target_generator(message_logger=logger)
        entries = rule_map(
            entry("//lib:lib", "objc_library"),
            entry("//app:Tests", "ios_unit_test", hosts=["//app:Missing"]),
        )

        targets = generator.generate_build_targets_for_rule_entries(list(entries), entries)

        self.assertEqual(list(targets), [BuildLabel("//app:Tests")])
        self.assertEqual(len(logger.messages_with_key("UnsupportedTargetType")), 1)
        self.assertEqual(len(logger.messages_with_key("MissingTestHost")), 1)
        self.assertIsNone(generator.project.linked_host_for_test_target(targets[BuildLabel("//app:Tests")]))

    def test_extension_and_watch_stub_plists(self) -> None:
        generator = make_target_generator()
        entries = rule_map(
            entry("//app:Ext", "ios_extension", extension_type="com.apple.widget-extension"),
            entry("//app:Watch", "watchos_application", sdk_root="watchos"),
        )

        targets = generator.generate_build_targets_for_rule_entries(list(entries), entries)

        ext_settings = targets[BuildLabel("//app:Ext")].buildConfigurationList.configuration("Debug").buildSettings
        watch_settings = targets[BuildLabel("//app:Watch")].buildConfigurationList.configuration("Debug").buildSettings
        self.assertEqual(
            ext_settings["INFOPLIST_FILE"], "${PROJECT_FILE_PATH}/.xcgen/Resources/Stub_app-Ext.plist"
        )
        self.assertEqual(
            watch_settings["INFOPLIST_FILE"],
            "${PROJECT_FILE_PATH}/.xcgen/Resources/StubWatchOS2InfoPlist.plist",
        )
        self.assertEqual(watch_settings["SDKROOT"], "watchos")


class ProjectLevelTests(unittest.TestCase):
    def test_main_group_points_at_workspace(self) -> None:
        group = PBXTargetGenerator.main_group_for_output_folder("/src/ws/out", "/src/ws")

        self.assertEqual(group.path, "..")
        self.assertEqual(group.sourceTree, SourceTree.SOURCE_ROOT)
        self.assertEqual(PBXTargetGenerator.working_directory_for_group(group), "$(SRCROOT)/..")

        same = PBXTargetGenerator.main_group_for_output_folder("/src/ws", "/src/ws")
        self.assertIsNone(same.path)
        self.assertEqual(PBXTargetGenerator.working_directory_for_group(same), "$(SRCROOT)")

    def test_clean_target_and_top_level_configurations(self) -> None:
        generator = make_target_generator()

        clean = generator.generate_clean_target("clean.sh", working_directory="$(SRCROOT)")
        configs = generator.generate_top_level_build_configurations({"SDKROOT": "iphoneos"})

        self.assertIsInstance(clean, PBXLegacyTarget)
        self.assertEqual(clean.name, CLEAN_TARGET_NAME)
        self.assertEqual(clean.buildArgumentsString, '"bazel" "bazel-bin"')
        self.assertEqual(
            [c.name for c in configs.buildConfigurations],
            ["Debug", "Release", "__TestRunner_Debug", "__TestRunner_Release"],
        )
        for config in configs.buildConfigurations:
            self.assertEqual(config.buildSettings["SDKROOT"], "iphoneos")
        self.assertIs(generator.project.buildConfigurationList, configs)
        self.assertIn("_bazel_clean_", generator.project.target_by_name)

    def test_file_references_for_extra_paths(self) -> None:
        generator = make_target_generator()

        refs = generator.generate_file_references_for_file_paths(
            ["app/BUILD", "tools/BUILD"], path_filters=["app"]
        )

        self.assertEqual([r.source_root_relative_path for r in refs], ["app/BUILD"])


if __name__ == "__main__":
    unittest.main()
