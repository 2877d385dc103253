from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from xcgen.details.label import BuildLabel


class OptionKey(Enum):
    COMMANDLINE_ARGUMENTS = "CommandlineArguments"
    ENVIRONMENT_VARIABLES = "EnvironmentVariables"
    BUILD_ACTION_PRE_ACTION_SCRIPT = "BuildActionPreActionScript"
    BUILD_ACTION_POST_ACTION_SCRIPT = "BuildActionPostActionScript"
    LAUNCH_ACTION_PRE_ACTION_SCRIPT = "LaunchActionPreActionScript"
    LAUNCH_ACTION_POST_ACTION_SCRIPT = "LaunchActionPostActionScript"
    TEST_ACTION_PRE_ACTION_SCRIPT = "TestActionPreActionScript"
    TEST_ACTION_POST_ACTION_SCRIPT = "TestActionPostActionScript"
    SUPPRESS_SWIFT_UPDATE_CHECK = "SuppressSwiftUpdateCheck"
    INCLUDE_BUILD_SOURCES = "IncludeBuildSources"


@dataclass
class OptionValue:
    project_value: Optional[str] = None
    target_values: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.project_value is not None:
            data["project"] = self.project_value
        if self.target_values:
            data["targets"] = dict(sorted(self.target_values.items()))
        return data


_TRUE_VALUES = {"yes", "true", "1"}


class GeneratorOptions:
    """Project-wide option values with optional per-label overrides."""

    def __init__(
        self,
        values: Optional[Dict[OptionKey, OptionValue]] = None,
        per_user_keys: Optional[set] = None,
    ):
        self.values: Dict[OptionKey, OptionValue] = dict(values or {})
        self.per_user_keys = set(per_user_keys or ())

    def get(self, key: OptionKey, label: Optional[BuildLabel] = None) -> Optional[str]:
        option = self.values.get(key)
        if option is None:
            return None
        if label is not None and label.value in option.target_values:
            return option.target_values[label.value]
        return option.project_value

    def set(self, key: OptionKey, value: str, label: Optional[BuildLabel] = None) -> None:
        option = self.values.setdefault(key, OptionValue())
        if label is None:
            option.project_value = value
        else:
            option.target_values[label.value] = value

    def common_value_as_bool(self, key: OptionKey) -> Optional[bool]:
        option = self.values.get(key)
        if option is None or option.project_value is None:
            return None
        return option.project_value.strip().lower() in _TRUE_VALUES

    def to_dict(self, per_user: bool = False) -> Dict[str, Any]:
        return {
            key.value: value.to_dict()
            for key, value in sorted(self.values.items(), key=lambda kv: kv[0].value)
            if (key in self.per_user_keys) == per_user and value.to_dict()
        }

    @staticmethod
    def from_dict(
        data: Mapping[str, Any], per_user: Optional[Mapping[str, Any]] = None
    ) -> "GeneratorOptions":
        options = GeneratorOptions()
        for source, is_per_user in ((data, False), (per_user or {}, True)):
            for raw_key, raw_value in source.items():
                try:
                    key = OptionKey(raw_key)
                except ValueError as e:
                    raise ValueError(f"unknown option {raw_key}") from e
                if isinstance(raw_value, Mapping):
                    project_value = raw_value.get("project")
                    option = OptionValue(
                        project_value=None if project_value is None else str(project_value),
                        target_values={
                            k: str(v) for k, v in raw_value.get("targets", {}).items()
                        },
                    )
                else:
                    option = OptionValue(project_value=str(raw_value))
                options.values[key] = option
                if is_per_user:
                    options.per_user_keys.add(key)
        return options
