from argparse import ArgumentParser
import logging
from pathlib import Path
from typing import List, Optional

from xcgen.config import BuildScriptOption, GeneratorConfig, ResourceSourcePaths
from xcgen.details.rule_graph import RuleGraph
from xcgen.errors import ProjectGeneratorError
from xcgen.generators.xcode import XcodeGenerator

logger = logging.getLogger(__name__)


def generate_main(
    config: GeneratorConfig,
    rule_graph: RuleGraph,
    command_args: List[str],
) -> Optional[int]:
    parser = ArgumentParser(prog="xcgen generate")
    parser.add_argument("--workspace-root", type=str, default=".")
    parser.add_argument("--output", type=str, required=True, help="folder receiving the .xcodeproj bundle")
    parser.add_argument("--resources", type=str, required=True, help="folder holding the support files")
    parser.add_argument(
        "--build-script-option",
        action="append",
        default=[],
        metavar="IDENTIFIER=ARGS",
        help="extra build setting forwarded to the build script",
    )
    parser.add_argument("--no-artifact-folders", action="store_true")
    args = parser.parse_args(command_args)

    options = []
    for value in args.build_script_option:
        identifier, sep, arguments = value.partition("=")
        if not sep or not identifier:
            parser.error(f"invalid build script option '{value}'")
        options.append(BuildScriptOption(identifier=identifier, arguments=arguments))

    generator = XcodeGenerator(
        config=config,
        rule_graph=rule_graph,
        workspace_root=args.workspace_root,
        resources=ResourceSourcePaths.from_directory(args.resources),
    )
    try:
        project_url = generator(
            Path(args.output),
            build_script_options=options,
            suppress_artifact_folders=args.no_artifact_folders,
        )
    except ProjectGeneratorError as e:
        logger.error("%s", e)
        return 1
    print(project_url)
    return 0
