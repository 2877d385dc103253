import os
from pathlib import Path
from typing import Iterable, List, Set, Tuple, Union

from xcgen.errors import InvalidOutputPath, SerializationFailed
from xcgen.generators.xcode.model import (
    PBXFileReference,
    PBXGroup,
    PBXNativeTarget,
    PBXProject,
)


def validate_output_path(
    output_path: Union[str, Path], invalid_paths: Iterable[Tuple[str, str]]
) -> None:
    """Reject output folders inside locations the build system owns.

    Matching is a case-insensitive substring test on the absolute path, since
    the default macOS filesystem is case-insensitive.
    """
    absolute = Path(os.path.abspath(output_path)).as_posix().rstrip("/") + "/"
    lowered = absolute.lower()
    for invalid_path, reason in invalid_paths:
        if invalid_path.lower() in lowered:
            raise InvalidOutputPath(
                path=str(output_path), reason=f'{reason} ("{invalid_path}")'
            )


def _check_group(group: PBXGroup, visiting: Set[int], errors: List[str]) -> None:
    if id(group) in visiting:
        errors.append(f"Group '{group.comment()}' is contained in itself")
        return
    visiting.add(id(group))
    for child in group.children:
        if child.parent is not group:
            errors.append(
                f"'{child.comment()}' is listed in group '{group.comment()}' but has another parent"
            )
        if isinstance(child, PBXGroup):
            _check_group(child, visiting, errors)
        elif not isinstance(child, PBXFileReference):
            errors.append(f"Unknown type in group '{group.comment()}': {type(child).__name__}")
    visiting.discard(id(group))


def validate_references(project: PBXProject) -> List[str]:
    errors: List[str] = []
    _check_group(project.mainGroup, set(), errors)

    target_ids = {id(t) for t in project.targets}
    for target in project.targets:
        if project.target_by_name.get(target.name) is not target:
            errors.append(f"Target '{target.name}' is not registered by name")
        for dependency in target.dependencies:
            if id(dependency.target) not in target_ids:
                errors.append(
                    f"Target '{target.name}' depends on '{dependency.target.name}' which is not in the project"
                )
        if isinstance(target, PBXNativeTarget):
            for extra in target.build_action_dependencies:
                if id(extra) not in target_ids:
                    errors.append(
                        f"Target '{target.name}' requires '{extra.name}' which is not in the project"
                    )
    for test_name, host in project.linked_test_hosts.items():
        if id(host) not in target_ids:
            errors.append(f"Test host '{host.name}' of '{test_name}' is not in the project")
    return errors


def validate_project(project: PBXProject) -> None:
    if errors := validate_references(project):
        raise SerializationFailed(f"Invalid project: {'; '.join(errors)}")
