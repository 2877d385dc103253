from pathlib import PurePosixPath
from typing import Dict, Iterator, List


class _Node:
    __slots__ = ("children",)

    def __init__(self):
        self.children: Dict[str, "_Node"] = {}


# Prefix tree over path components; only the deepest paths are of interest
# when creating directories, since creating a leaf creates its ancestors.
class PathTrie:
    def __init__(self):
        self.root = _Node()
        self.absolute = False

    def insert(self, path: str) -> None:
        pure = PurePosixPath(path)
        if pure.is_absolute():
            self.absolute = True
        node = self.root
        for part in pure.parts:
            if part == "/":
                continue
            node = node.children.setdefault(part, _Node())

    def leaf_paths(self) -> List[str]:
        prefix = "/" if self.absolute else ""
        return [prefix + "/".join(parts) for parts in self._leaves(self.root, [])]

    def _leaves(self, node: _Node, parts: List[str]) -> Iterator[List[str]]:
        for name in sorted(node.children):
            child = node.children[name]
            if child.children:
                yield from self._leaves(child, parts + [name])
            else:
                yield parts + [name]
