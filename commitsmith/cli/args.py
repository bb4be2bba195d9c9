"""CLI Argument Parsing"""

import argparse
import argcomplete

from commitsmith import COMMIT_TYPE_NAMES, __version__
from commitsmith.config import VALID_CHANGELOG_FORMATS, VALID_PROVIDERS, VALID_STYLES


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='commitsmith',
        description='Draft commit messages from staged changes with an LLM',
        epilog='Example: commitsmith --hint "fixing the login bug"'
    )

    parser.add_argument('-v', '--version', action='version', version=f'%(prog)s {__version__}')

    # Generation options
    parser.add_argument('-c', '--choose', type=int, nargs='?', const=2, default=None, metavar='N', help='Show N options (default: 2), pick one')
    parser.add_argument('--hint', '--context', dest='hint', type=str, metavar='TEXT', help='Add context: --hint "fixing the login bug"')
    parser.add_argument('-t', '--type', type=str, choices=COMMIT_TYPE_NAMES, help='Force commit type')
    parser.add_argument('-j', '--jira', type=str, metavar='TICKET', help='Add ticket reference: -j PROJ-123')
    parser.add_argument('--ticket-prefix', type=str, metavar='PREFIX', help='Ticket reference prefix (default: Refs)')

    # Style options
    parser.add_argument('-s', '--style', type=str, choices=sorted(VALID_STYLES), help='Commit message style')
    parser.add_argument('--no-body', action='store_true', help='Generate subject line only, no bullet points')
    parser.add_argument('--no-learn-style', action='store_true', help='Do not learn style from recent commits')
    parser.add_argument('--language', type=str, metavar='LANG', help='Language for the message, e.g. en, de, fr')

    # LLM options
    parser.add_argument('-p', '--provider', type=str, choices=sorted(VALID_PROVIDERS), help='LLM provider')
    parser.add_argument('-m', '--model', type=str, metavar='MODEL', help='Model name')
    parser.add_argument('--token-budget', type=_positive_int, metavar='TOKENS', help="Override the provider's context size")
    parser.add_argument('--warmup', action='store_true', help='Pre-load Ollama model into memory')

    # Output options
    parser.add_argument('--no-copy', action='store_true', help='Print message only, do not copy to clipboard')
    parser.add_argument('--no-stream', action='store_true', help='Wait for the full response instead of streaming it')
    parser.add_argument('--commit', action='store_true', help='Create the commit with the accepted message')
    parser.add_argument('--verbose', action='store_true', help='Show debug info (budgets, retries, tokens used)')

    # Rewrite the last commit
    parser.add_argument('--amend', action='store_true', help='Regenerate the message of the last commit and amend it')

    # Changelog
    parser.add_argument('--log', action='store_true', help='Generate a changelog from commit history')
    parser.add_argument('--from', dest='from_ref', type=str, metavar='REF', help='Changelog start ref (default: latest tag)')
    parser.add_argument('--to', dest='to_ref', type=str, metavar='REF', help='Changelog end ref (default: HEAD)')
    parser.add_argument('--output', type=str, metavar='FILE', help='Write the changelog to FILE instead of asking')
    parser.add_argument('--format', type=str, choices=sorted(VALID_CHANGELOG_FORMATS), help='Changelog format (default: markdown)')

    # Setup/config
    parser.add_argument('--setup', action='store_true', help='Configure defaults')
    parser.add_argument('--display-config', action='store_true', help='Show current configuration')
    parser.add_argument('--install-completion', action='store_true', help='Install shell tab completion')

    # Git hook
    parser.add_argument('--hook', choices=['install', 'uninstall', 'run'], help='Manage the prepare-commit-msg hook')
    parser.add_argument('hook_args', nargs='*', metavar='HOOK_ARGS', help=argparse.SUPPRESS)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    argcomplete.autocomplete(parser)
    return parser.parse_args(argv)
