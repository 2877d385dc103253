from pathlib import Path
from typing import Optional, Sequence, Union

from xcgen.config import BuildScriptOption, GeneratorConfig, ProjectLayout, ResourceSourcePaths
from xcgen.details.messages import MessageLogger
from xcgen.details.rule_graph import RuleGraph
from xcgen.generators.xcode.project_generator import XcodeProjectGenerator


class XcodeGenerator:
    def __init__(
        self,
        config: GeneratorConfig,
        rule_graph: RuleGraph,
        workspace_root: Union[str, Path],
        resources: ResourceSourcePaths,
        message_logger: Optional[MessageLogger] = None,
        layout: ProjectLayout = ProjectLayout(),
    ):
        self.config = config
        self.rule_graph = rule_graph
        self.workspace_root = Path(workspace_root)
        self.resources = resources
        self.message_logger = message_logger or MessageLogger()
        self.layout = layout

        if not self.config.build_target_labels:
            raise ValueError(f"project '{config.project_name}' has no build targets")

    def __call__(
        self,
        output_folder: Union[str, Path],
        build_script_options: Sequence[BuildScriptOption] = (),
        suppress_artifact_folders: bool = False,
    ) -> Path:
        """Generate the Xcode project, returning the bundle path."""
        generator = XcodeProjectGenerator(
            workspace_root=self.workspace_root,
            config=self.config,
            rule_graph=self.rule_graph,
            resources=self.resources,
            message_logger=self.message_logger,
            layout=self.layout,
        )
        generator.suppress_generated_artifact_folder_creation = suppress_artifact_folders
        return generator.generate(output_folder, build_script_options)
