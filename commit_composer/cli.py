"""
Command-line interface for commit-composer.

This module is responsible for argument parsing, owning the one
generation-server handle for the process, and turning errors into exit
codes. The actual work is delegated to the command modules.
"""

from __future__ import annotations

import argparse
import re
import signal
import sys
from typing import Callable, Dict, List, Optional

from .ai.opencode_client import OpencodeServer
from .changelog import run_changelog
from .commit import run_commit
from .composer import run_compose
from .config import Config
from .deslop import run_deslop
from .errors import ApplyError, ComposerError, GenerationAuthError, NothingToDoError
from .logging_utils import configure_logging

COMMANDS = ("commit", "compose", "deslop", "changelog")
VERBOSE_FLAG_RE = re.compile(r"^(-v+|--verbose)$")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commit-composer",
        description=(
            "Generate commit messages, split staged work into several "
            "logical commits, and clean up staged changes with AI assistance."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be specified multiple times).",
    )

    subparsers = parser.add_subparsers(dest="command")

    commit = subparsers.add_parser("commit", help="Generate a message and commit staged changes (default).")
    commit.add_argument("message", nargs="?", help="Use this commit message instead of generating one.")
    _add_common_flags(commit)
    deslop_group = commit.add_mutually_exclusive_group()
    deslop_group.add_argument("--deslop", dest="deslop", action="store_true", default=None,
                              help="Run the deslop step before committing.")
    deslop_group.add_argument("--no-deslop", dest="deslop", action="store_false",
                              help="Skip the deslop step.")
    commit.add_argument("--extra", dest="extra_prompt", help="Extra instructions for the deslop step.")
    commit.set_defaults(deslop=None)

    compose = subparsers.add_parser("compose", help="Split staged changes into several logical commits.")
    _add_common_flags(compose)
    compose.add_argument("-i", "--instructions", help="Additional grouping instructions for the AI.")
    compose.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the proposed commits without creating them.",
    )

    deslop = subparsers.add_parser("deslop", help="Propose and apply a cleanup patch to staged changes.")
    deslop.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts.")
    deslop.add_argument("-m", "--model", help="Override model (provider/model).")
    deslop.add_argument("--extra", dest="extra_prompt", help="Extra instructions or exclusions.")

    changelog = subparsers.add_parser("changelog", help="Generate a changelog for a range of commits.")
    changelog.add_argument("--from", dest="from_ref", help="Starting ref (default: choose interactively).")
    changelog.add_argument("--to", dest="to_ref", default="HEAD", help="Ending ref (default: HEAD).")
    changelog.add_argument("-y", "--yes", action="store_true", help="Skip prompts; start at the latest release.")
    changelog.add_argument("-m", "--model", help="Override model (provider/model).")

    return parser


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-a", "--all", dest="stage_all", action="store_true",
                        help="Stage all changes first.")
    parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts.")
    parser.add_argument("-m", "--model", help="Override model (provider/model).")


def _with_default_command(argv: List[str]) -> List[str]:
    """
    Insert "commit" when no subcommand is given, so that
    `commit-composer -a "fix typo"` behaves like `commit-composer commit -a "fix typo"`.
    """

    leading = 0
    while leading < len(argv) and VERBOSE_FLAG_RE.match(argv[leading]):
        leading += 1
    rest = argv[leading:]
    if rest and (rest[0] in COMMANDS or rest[0] in ("-h", "--help")):
        return argv
    return [*argv[:leading], "commit", *rest]


def build_config(args: argparse.Namespace) -> Config:
    return Config(
        command=args.command,
        stage_all=getattr(args, "stage_all", False),
        assume_yes=getattr(args, "yes", False),
        instructions=getattr(args, "instructions", None),
        model_override=getattr(args, "model", None),
        message=getattr(args, "message", None),
        from_ref=getattr(args, "from_ref", None),
        to_ref=getattr(args, "to_ref", None) or "HEAD",
        deslop=getattr(args, "deslop", None),
        dry_run=getattr(args, "dry_run", False),
        extra_prompt=getattr(args, "extra_prompt", None),
        verbosity=args.verbose,
    )


HANDLERS: Dict[str, Callable[..., int]] = {
    "commit": run_commit,
    "compose": run_compose,
    "deslop": run_deslop,
    "changelog": run_changelog,
}


def _raise_on_sigterm(signum, frame) -> None:  # pragma: no cover - signal handler
    raise SystemExit(128 + signum)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(_with_default_command(argv))

    config = build_config(args)
    configure_logging(verbosity=config.verbosity)

    server = OpencodeServer(config.server_url)
    previous_sigterm = signal.signal(signal.SIGTERM, _raise_on_sigterm)
    try:
        return HANDLERS[config.command](config, server.start)
    except KeyboardInterrupt:
        # Graceful shutdown on Ctrl+C
        return 130
    except NothingToDoError as exc:
        print(f"commit-composer: {exc}")
        return 0
    except ApplyError as exc:
        print(f"commit-composer: error: {exc}", file=sys.stderr)
        if exc.committed:
            print("commit-composer: created commits:", file=sys.stderr)
            for draft in exc.committed:
                print(f"  {draft.message}", file=sys.stderr)
        print("commit-composer: inspect `git status`, then commit the rest or re-run compose", file=sys.stderr)
        return 1
    except GenerationAuthError as exc:
        print(f"commit-composer: error: {exc}", file=sys.stderr)
        print("commit-composer: authenticate with `opencode auth login` and try again", file=sys.stderr)
        return 1
    except ComposerError as exc:
        print(f"commit-composer: error: {exc}", file=sys.stderr)
        return 1
    finally:
        server.close()
        signal.signal(signal.SIGTERM, previous_sigterm)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
