"""
Xcode project file formatter.

This module converts a PBXProject object graph into a valid Xcode project file
(.pbxproj) string. Objects carry no identifiers of their own; a GIDGenerator
assigns one to every object reachable from the project while the graph is
walked, and the objects are then written out in a recursive, type-driven way.
"""

import dataclasses
import enum
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Set, Union

from xcgen.errors import SerializationFailed
from xcgen.generators.xcode.model import PBXProject, XcodeObject


class XcodeID(str):
    pass


FormattableValue = Union[None, XcodeObject, dict, list, enum.Enum, int, float, bool, str, XcodeID, type]
ObjectProperties = Dict[str, FormattableValue]
ObjectsDict = Dict[XcodeID, ObjectProperties]


class GIDGenerator(ABC):
    def __init__(self) -> None:
        # Identifiers handed out during serialization, by object identity
        self.assigned: Dict[int, XcodeID] = {}

    @abstractmethod
    def generate(self, obj: XcodeObject) -> XcodeID:
        pass

    def id_for(self, obj: XcodeObject) -> XcodeID:
        try:
            return self.assigned[id(obj)]
        except KeyError:
            raise ValueError(f"{obj.__class__.__name__} '{obj.comment()}' has not been serialized") from None


class ConcreteGIDGenerator(GIDGenerator):
    """Derives 24 hex digit identifiers from object keys.

    Identical keys map to the same base identifier, so repeated runs over the
    same graph yield the same output. Collisions get a counter folded in.
    """

    def __init__(self) -> None:
        super().__init__()
        self.used: Set[str] = set()

    def generate(self, obj: XcodeObject) -> XcodeID:
        key = obj.key()
        candidate = _hash_key(key)
        counter = 0
        while candidate in self.used:
            counter += 1
            candidate = _hash_key(f"{key}#{counter}")
        self.used.add(candidate)
        return XcodeID(candidate)


def _hash_key(key: str) -> str:
    return uuid.uuid5(uuid.NAMESPACE_X500, key).hex.upper()[:24]


def format_xcode_project(project: PBXProject, gid_generator: GIDGenerator) -> str:
    """
    Convert a PBXProject object graph to its string representation.

    Args:
        project: The root project object.
        gid_generator: Assigns an identifier to every object in the graph.

    Returns:
        A string containing the formatted Xcode project file content.

    Raises:
        SerializationFailed: If the graph holds values that cannot be encoded.
    """
    formatter = _ProjectFormatter(gid_generator)
    try:
        # Walking the group tree rejects containment cycles
        list(project.mainGroup.all_sources)
        objects = formatter.collect_objects(project)
        # Start with the UTF-8 marker
        result = "// !$*UTF8*$!\n"
        project_dict: Dict[str, FormattableValue] = {
            "archiveVersion": 1,
            "classes": {},
            "objectVersion": 50,
            "objects": objects,
            "rootObject": project,
        }
        result += formatter.format_value(project_dict, 0)
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationFailed(str(e)) from e
    # Add a trailing newline
    return result + "\n"


def _serialized_fields(obj: XcodeObject) -> List[dataclasses.Field]:
    return [f for f in dataclasses.fields(obj) if f.metadata.get("serialize", True)]


class _ProjectFormatter:
    def __init__(self, gid_generator: GIDGenerator):
        self.gid_generator = gid_generator
        self.ids: Dict[int, XcodeID] = {}
        self.comments: Dict[XcodeID, str] = {}

    def object_id(self, obj: XcodeObject) -> XcodeID:
        try:
            return self.ids[id(obj)]
        except KeyError:
            raise ValueError(
                f"{obj.__class__.__name__} '{obj.comment()}' is not reachable from the project"
            ) from None

    def collect_objects(self, project: PBXProject) -> ObjectsDict:
        """
        Walk the graph from the project, assigning identifiers in visit order.

        Returns:
            A dictionary of object properties keyed by identifier.
        """
        objects: ObjectsDict = {}
        pending: List[XcodeObject] = [project]
        while pending:
            obj = pending.pop(0)
            if id(obj) in self.ids:
                continue
            object_id = self.gid_generator.generate(obj)
            self.ids[id(obj)] = object_id
            self.gid_generator.assigned[id(obj)] = object_id
            self.comments[object_id] = obj.comment() or ""
            # Create the object properties, skipping None values and internal fields
            props: ObjectProperties = {"isa": obj.__class__}
            for field in _serialized_fields(obj):
                field_value = getattr(obj, field.name)
                if field_value is None:
                    continue
                props[field.name] = field_value
                _collect_referenced(field_value, pending)
            objects[object_id] = props
        return objects

    def format_value(self, value: FormattableValue, indent_level: int, bare: bool = False) -> str:
        """
        Format a value based on its type.

        Args:
            value: The value to format.
            indent_level: The current indentation level.
            bare: Write object references without a trailing comment.

        Returns:
            A string representing the formatted value.
        """
        # Handle None
        if value is None:
            return "(null)"

        # Handle XcodeID - should not be quoted
        elif isinstance(value, XcodeID):
            return value

        # Handle type objects - use class name without quotes
        elif isinstance(value, type):
            return value.__name__

        # Handle references to other objects
        elif isinstance(value, XcodeObject):
            obj_id = self.object_id(value)
            comment = value.comment()
            if bare or not comment:
                return obj_id
            return f"{obj_id} /* {comment} */"

        # Handle Enum values directly based on their type
        elif isinstance(value, enum.Enum):
            return format_enum(value)

        # Handle lists
        elif isinstance(value, list):
            return self.format_list(value, indent_level)

        # Handle dictionaries
        elif isinstance(value, dict):
            return self.format_dict(value, indent_level)

        # Xcode represents booleans as 0/1
        elif isinstance(value, bool):
            return "1" if value else "0"

        elif isinstance(value, (int, float)):
            return str(value)

        elif isinstance(value, str):
            return quote(value)

        # Raise exception for unknown types
        else:
            raise TypeError(f"Unsupported type: {type(value).__name__} for value: {value}")

    def format_dict(self, value_dict: Dict, indent_level: int) -> str:
        indent = "\t" * indent_level
        inner_indent = "\t" * (indent_level + 1)

        # Empty dictionaries should have braces on separate lines for Xcode compatibility
        if not value_dict:
            return "{\n" + indent + "}"

        bare_fields = _bare_fields(value_dict)
        result = "{\n"

        # Sort keys for consistent output, but keep isa first as Xcode does
        for key in sorted(value_dict.keys(), key=lambda k: (k != "isa", str(k))):
            value = value_dict[key]
            if value is None:
                continue
            formatted_key = key if isinstance(key, XcodeID) else quote(str(key))
            formatted_value = self.format_value(value, indent_level + 1, bare=key in bare_fields)
            if isinstance(key, XcodeID) and isinstance(value, dict) and "isa" in value:
                comment = self.comments.get(key)
                if comment:
                    formatted_key = f"{key} /* {comment} */"
            result += f"{inner_indent}{formatted_key} = {formatted_value};\n"

        result += f"{indent}}}"
        return result

    def format_list(self, value_list: List, indent_level: int) -> str:
        if not value_list:
            return "(\n" + "\t" * indent_level + ")"

        indent = "\t" * indent_level
        inner_indent = "\t" * (indent_level + 1)

        result = "(\n"
        for item in value_list:
            result += f"{inner_indent}{self.format_value(item, indent_level + 1)},\n"
        result += f"{indent})"
        return result


def _bare_fields(value_dict: Dict) -> Set[str]:
    isa = value_dict.get("isa")
    if not isinstance(isa, type) or not dataclasses.is_dataclass(isa):
        return set()
    return {f.name for f in dataclasses.fields(isa) if f.metadata.get("bare_id")}


def _collect_referenced(value: FormattableValue, pending: List[XcodeObject]) -> None:
    if isinstance(value, XcodeObject):
        pending.append(value)
    elif isinstance(value, list):
        for item in value:
            _collect_referenced(item, pending)
    elif isinstance(value, dict):
        for item in value.values():
            _collect_referenced(item, pending)


_UNQUOTED_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_$/:.-"
)


def quote(value: str) -> str:
    # Plain identifiers and paths are written bare, everything else quoted and escaped
    if value and all(c in _UNQUOTED_CHARS for c in value) and "//" not in value:
        return value
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def format_enum(value_enum: enum.Enum) -> str:
    if isinstance(value_enum.value, str):
        return quote(value_enum.value)
    return str(value_enum.value)
