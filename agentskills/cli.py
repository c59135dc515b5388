from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Mapping

from loguru import logger

from agentskills import __version__
from agentskills.config import ENV_SOURCE, InstallRequest, PromptPolicy, parse_runtimes, resolve_request
from agentskills.errors import ConfigurationError, DiscoveryError
from agentskills.placement import PlacementEngine
from agentskills.prompts import Prompter, stdin_is_interactive
from agentskills.report import report
from agentskills.runtimes import Runtime
from agentskills.skills import SkillBundle, discover_skills, skills_source

EXIT_OK = 0
EXIT_CONFIG = 2

EPILOG = """\
examples:
  agent-skills                                 full interactive mode
  agent-skills --global                        skip the scope prompt, ask the rest
  agent-skills --global --all --gemini --droid no prompts at all
  agent-skills --local --skill git-commit --claude --gitignore
"""


def configure_logging(verbose: bool = False) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING", format="<level>{level: <8}</level> {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-skills",
        description="Install agent skill bundles into local or global agent runtime directories",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--global", "-g", dest="global_scope", action="store_true", help="Install globally (user space ~/)")
    scope.add_argument("--local", "-l", action="store_true", help="Install locally (project ./)")

    agents = parser.add_argument_group("agents")
    for runtime in Runtime:
        agents.add_argument(
            f"--{runtime.id}",
            dest="runtimes",
            action="append_const",
            const=runtime.id,
            help=f"Install for {runtime.target.display_name}",
        )
    agents.add_argument("--runtime", dest="runtimes", action="append", metavar="NAME", help="Install for the named runtime (repeatable)")

    skills = parser.add_argument_group("skills")
    skills.add_argument("--all", "-a", action="store_true", help="Install all available skills")
    skills.add_argument("--skill", "-s", dest="skills", action="append", metavar="NAME", help="Install the named skill (repeatable)")
    skills.add_argument("--list", action="store_true", help="List available skills and exit")
    skills.add_argument("--source", help="Directory holding the skills/ tree to install from")

    parser.add_argument("--commands", dest="commands", action="store_true", default=None, help="Install commands for supported agents")
    parser.add_argument("--no-commands", dest="commands", action="store_false", default=None, help="Skip installing commands")
    parser.add_argument("--gitignore", dest="gitignore", action="store_true", default=None, help="Add agent folders to .gitignore")
    parser.add_argument("--no-gitignore", dest="gitignore", action="store_false", default=None, help="Skip adding to .gitignore")

    parser.add_argument(
        "--prompt",
        choices=[policy.value for policy in PromptPolicy],
        help="When to ask for values not given as flags (default: always)",
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Never prompt; use defaults for anything not given")
    parser.add_argument("--workers", type=int, help="Parallel placement workers (default: 4)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse argv. Unrecognised ``--name`` options are read as runtime names."""
    parser = build_parser()
    args, extras = parser.parse_known_args(argv)
    runtimes = list(args.runtimes or [])
    for extra in extras:
        if not extra.startswith("--") or "=" in extra:
            raise ConfigurationError(f"unexpected argument: {extra}", value=extra)
        runtimes.append(extra[2:])
    args.runtimes = runtimes
    if args.skills:
        args.skills = [part.strip() for value in args.skills for part in value.split(",") if part.strip()]
    return args


def print_skills(available: list[SkillBundle]) -> None:
    for bundle in available:
        commands = ", ".join(sorted(r.id for r in bundle.command_templates))
        suffix = f" [commands: {commands}]" if commands else ""
        description = f": {bundle.description}" if bundle.description else ""
        print(f"- {bundle.name}{description}{suffix}")


def cmd_install(
    args: argparse.Namespace,
    *,
    env: Mapping[str, str] | None = None,
    prompter: Prompter | None = None,
    interactive: bool | None = None,
) -> int:
    environ = dict(os.environ if env is None else env)
    # Catch unknown runtime flags before touching any directory.
    parse_runtimes(args.runtimes)

    with skills_source(args.source or environ.get(ENV_SOURCE) or None) as skills_dir:
        available = discover_skills(skills_dir)
        if args.list:
            print_skills(available)
            return EXIT_OK

        request: InstallRequest = resolve_request(
            args,
            available,
            env=environ,
            prompter=prompter,
            interactive=stdin_is_interactive() if interactive is None else interactive,
        )
        bundles = request.select(available)

        print("\n📋 Installation Summary:")
        for line in request.describe():
            print(line)

        if not bundles:
            return report([])

        print("\n🚀 Installing skills...")
        engine = PlacementEngine(request)
        results = asyncio.run(engine.run(bundles))
        for entry in engine.update_gitignore():
            print(f"  + .gitignore: {entry}")
        return report(results)


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(argv)
        configure_logging(args.verbose)
        return int(cmd_install(args))
    except (ConfigurationError, DiscoveryError) as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
