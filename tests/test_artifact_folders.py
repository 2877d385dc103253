from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from xcgen.details.messages import MessageLogger
from xcgen.details.path_trie import PathTrie
from xcgen.generators.xcode.installer import (
    create_generated_artifact_folders,
    generated_artifact_folders,
)
from xcgen.generators.xcode.model import PBXGroup, SourceTree

from helpers import RecordingWriter


class PathTrieTests(unittest.TestCase):
    def test_only_leaves_are_emitted(self) -> None:
        trie = PathTrie()
        for path in ("/out/a", "/out/a/b", "/out/a/b/c", "/out/d", "/out/a/e"):
            trie.insert(path)

        leaves = trie.leaf_paths()

        self.assertEqual(sorted(leaves), ["/out/a/b/c", "/out/a/e", "/out/d"])

    def test_no_leaf_is_an_ancestor_of_another(self) -> None:
        trie = PathTrie()
        for path in ("x/y", "x", "x/y/z", "w/v", "x/q"):
            trie.insert(path)

        leaves = trie.leaf_paths()

        for leaf in leaves:
            for other in leaves:
                if leaf != other:
                    self.assertFalse(other.startswith(leaf + "/"))

    def test_duplicate_inserts_collapse(self) -> None:
        trie = PathTrie()
        trie.insert("a/b")
        trie.insert("a/b/")

        self.assertEqual(trie.leaf_paths(), ["a/b"])


class ArtifactFolderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.main_group = PBXGroup(name="mainGroup", path="../ws", sourceTree=SourceTree.SOURCE_ROOT)
        self.main_group.file_reference_for_workspace_path("app/main.m")
        self.main_group.file_reference_for_workspace_path(
            "bazel-genfiles/app/gen/proto.pb.m", is_input_file=False
        )
        self.main_group.file_reference_for_workspace_path(
            "bazel-genfiles/app/gen/deep/more.pb.m", is_input_file=False
        )
        self.main_group.file_reference_for_workspace_path(
            "bazel-genfiles/lib/other.swift", is_input_file=False
        )

    def test_folders_are_leaf_parents_of_generated_files(self) -> None:
        folders = generated_artifact_folders(self.main_group, Path("/root/out"))

        self.assertEqual(
            sorted(folders),
            [
                "/root/ws/bazel-genfiles/app/gen/deep",
                "/root/ws/bazel-genfiles/lib",
            ],
        )

    def test_failed_creations_are_reported_once(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            output = Path(temp_dir) / "out"
            workspace = Path(temp_dir) / "ws"
            logger = MessageLogger()
            writer = RecordingWriter(failing_dirs=[str(workspace / "bazel-genfiles" / "lib")])

            failed = create_generated_artifact_folders(self.main_group, output, writer, logger, "Demo")

            self.assertEqual(failed, [str(workspace / "bazel-genfiles" / "lib")])
            self.assertTrue((workspace / "bazel-genfiles" / "app" / "gen" / "deep").is_dir())
            warnings = logger.messages_with_key("CreatingGeneratedArtifactFoldersFailed")
            self.assertEqual(len(warnings), 1)


if __name__ == "__main__":
    unittest.main()
