import shutil
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


# Narrow filesystem interface used by the installer; tests substitute it to
# observe or fail individual operations.
class FileWriter:
    def write(self, path: PathLike, data: Union[str, bytes]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            data = data.encode("utf-8")
        # Skip identical content so Xcode does not reload unchanged files
        if path.is_file() and path.read_bytes() == data:
            return
        path.write_bytes(data)

    def make_dirs(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def copy(self, source: PathLike, target: PathLike) -> None:
        source, target = Path(source), Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        # Replace rather than merge what a previous run installed
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        if source.is_dir():
            shutil.copytree(source, target)
        else:
            shutil.copy2(source, target)

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def read(self, path: PathLike) -> bytes:
        return Path(path).read_bytes()
