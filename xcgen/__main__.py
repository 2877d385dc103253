from argparse import ArgumentParser
import logging
import sys

from xcgen.config import GeneratorConfig
from xcgen.details.rule_graph import JsonRuleGraph, RuleGraphError
from xcgen.details.tools.generate import generate_main
from xcgen.details.tools.targets import targets_main

logger = logging.getLogger(__name__)


def main():
    COMMANDS = {
        "generate": generate_main,
        "targets": targets_main,
    }
    # parse common arguments...
    parser = ArgumentParser(prog="xcgen")
    parser.add_argument("command", choices=COMMANDS.keys())
    parser.add_argument("--config", type=str, required=True, help="path to a .xcgenconf file")
    parser.add_argument("--rule-graph", type=str, required=True, help="path to a rule graph JSON document")
    parser.add_argument("-v", "--verbose", action="store_true")
    args, command_args = parser.parse_known_args(sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    # load config and rule graph for the command...
    try:
        config = GeneratorConfig.load(args.config)
        rule_graph = JsonRuleGraph.load(args.rule_graph)
    except (OSError, ValueError, RuleGraphError) as e:
        logger.error("%s", e)
        sys.exit(1)
    exit_code = COMMANDS[args.command](
        config=config,
        rule_graph=rule_graph,
        command_args=command_args,
    )
    if exit_code is not None:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
