from typing import Iterable


class ProjectGeneratorError(Exception):
    pass


class SerializationFailed(ProjectGeneratorError):
    """The Xcode project could not be created or encoded."""

    def __init__(self, info: str):
        super().__init__(f"serialization failed: {info}")
        self.info = info


class LabelAspectFailure(ProjectGeneratorError):
    """The rule graph query for the requested labels failed."""

    def __init__(self, info: str):
        super().__init__(f"rule graph query failed: {info}")
        self.info = info


class LabelResolutionFailed(ProjectGeneratorError):
    """The requested labels did not resolve to rule entries."""

    def __init__(self, labels: Iterable):
        self.labels = frozenset(labels)
        names = ", ".join(sorted(str(label) for label in self.labels))
        super().__init__(f"failed to resolve labels: {names}")


class InvalidOutputPath(ProjectGeneratorError):
    """The project would be generated inside a forbidden location."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"invalid Xcode project path '{path}': {reason}")
        self.path = path
        self.reason = reason
