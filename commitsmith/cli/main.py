"""CLI Main Entry Point"""

import logging
import os
import sys
import time

from commitsmith.config import Config, load_config
from commitsmith.generator import CommitGenerator, GenerationRequest, GenerationResult
from commitsmith.git import GitAnalyzer, GitError, IgnoreMatcher, ReducedDiff
from commitsmith.llm import get_client, LLMClient, LLMError, OllamaClient
from commitsmith.output import (
    CHECK, RULE, Spinner, StreamPrinter, bold, colorize_commit_type, configure_logging,
    dim, info, print_error, success, warning,
)
from commitsmith.prompts import PromptConfig, learn_style

from commitsmith.cli.args import parse_args
from commitsmith.cli.commands import (
    display_config, run_hook_command, run_install_completion, run_log, run_setup, run_warmup,
)
from commitsmith.cli.utils import (
    clean_commit_message, copy_to_clipboard, display_options, edit_message, parse_options,
)

logger = logging.getLogger(__name__)


def _display_file_list(diff: ReducedDiff, max_shown: int) -> None:
    """Show which files are being sent, collapsing long lists."""
    files = diff.file_chunks
    if not files:
        return
    print(bold("Staged changes:"))
    for chunk in files[:max_shown]:
        print(dim(f"  {chunk.describe()}"))
    remaining = len(files) - max_shown
    if remaining > 0:
        print(dim(f"  ... and {remaining} more files"))
    if diff.was_filtered:
        print(dim("  lock files and generated code were left out"))
    if diff.was_truncated:
        print(dim("  large diff was truncated to fit the model's context"))


def _display_message(message: str) -> None:
    """Display commit message with horizontal rules and colored type."""
    lines = colorize_commit_type(message).split('\n')
    width = max((len(line) for line in message.split('\n')), default=40)
    print(f"\n{dim(RULE * width)}")
    print(bold(lines[0]))
    for line in lines[1:]:
        print(line)
    print(dim(RULE * width))


def _copy_and_report(message: str, no_copy: bool) -> None:
    if no_copy:
        return
    copied, reason = copy_to_clipboard(message)
    if copied:
        print(f"{success(CHECK)} Copied to clipboard!")
    else:
        print(f"{warning('!')} Could not copy to clipboard{': ' + reason if reason else ''}")
        print(dim("  Select the message above to copy manually."))


def _handle_subcommands(args):
    """Handle subcommands that exit early.

    Returns:
        tuple: (exit_code, should_exit) - exit_code if should_exit is True
    """
    if args.hook:
        return run_hook_command(args.hook, args.hook_args), True
    if args.install_completion:
        return run_install_completion(), True
    if args.display_config:
        return display_config(), True
    if args.setup:
        return run_setup(), True
    return 0, False


def _get_provider_and_model(args, config: Config) -> tuple[str, str | None]:
    """Resolve provider and model from args, env, or config.

    Precedence: CLI args > environment variables > config file
    """
    provider = args.provider or os.environ.get('COMMITSMITH_PROVIDER') or config.provider
    model = args.model or os.environ.get('COMMITSMITH_MODEL') or config.model
    return provider, model


def _apply_overrides(args, config: Config) -> None:
    if args.style:
        config.style = args.style
    if args.no_body:
        config.include_body = False
    if args.no_learn_style:
        config.learn_style = False
    if args.language:
        config.language = args.language
    if args.token_budget:
        config.token_budget = args.token_budget


def _collect_changes(args, config: Config, analyzer: GitAnalyzer) -> tuple[list, str] | None:
    """Files and raw diff to describe: the staged changes, or HEAD's with --amend."""
    excludes = IgnoreMatcher.git_excludes(config.ignore_paths)
    if args.amend:
        return analyzer.get_last_commit_files(), analyzer.get_last_commit_diff(excludes)

    files = analyzer.get_staged_files()
    if not files:
        print_error("No staged changes. Run 'git add' first.")
        return None
    return files, analyzer.get_staged_diff(excludes)


def _build_request(args, config: Config, analyzer: GitAnalyzer, timings: dict) -> GenerationRequest | None:
    """Collect changes and context from git. None when there is nothing to describe."""
    t0 = time.time()
    changes = _collect_changes(args, config, analyzer)
    if changes is None:
        return None
    files, raw_diff = changes

    style_context = ""
    if config.learn_style:
        style_context = learn_style(analyzer, config.learn_style_commits)
    timings['git'] = time.time() - t0

    num_options = 1
    if args.choose is not None:
        num_options = max(2, min(args.choose, 4))

    return GenerationRequest(
        raw_diff=raw_diff,
        files=files,
        prompt_config=PromptConfig(
            hint=args.hint,
            forced_type=args.type,
            num_options=num_options,
            style=config.style,
            include_body=config.include_body,
            max_subject_length=config.max_subject_length,
            language=config.language,
            style_context=style_context,
            branch_name=analyzer.get_branch_name() if config.branch_prefix else None,
            branch_pattern=config.branch_pattern,
        ),
        ignore_paths=config.ignore_paths,
        token_budget=config.token_budget,
    )


def _initialize_client(provider: str, model: str | None, token_budget: int | None, is_pipe: bool, timings: dict) -> LLMClient:
    """Initialize LLM client with optional warmup for Ollama."""
    client = get_client(provider=provider, model=model, token_budget=token_budget)
    if not is_pipe:
        print(f"Using {info(client.name)}... ", end='', flush=True)

    if isinstance(client, OllamaClient) and not client._is_model_loaded():
        if not is_pipe:
            print(dim("loading model... "), end='', flush=True)
        t_warmup = time.time()
        warmed = client.warmup()
        timings['warmup'] = time.time() - t_warmup
        if not warmed and not is_pipe:
            print(warning("warmup failed, generation may be slow... "), end='', flush=True)

    return client


def _retry_announcer(printer: StreamPrinter | None, is_pipe: bool):
    """Callback for CommitGenerator's on_retry.

    Ends the rejected attempt's streamed line so the notice and the next
    attempt's pieces start on a fresh line.
    """
    def _announce(attempt: int, budget: int) -> None:
        streamed = printer is not None and printer.started
        if printer is not None:
            printer.finish()
        if not is_pipe:
            prefix = '' if streamed else '\n'
            print(warning(f"{prefix}Retrying with compressed diff (budget: {budget} tokens)... "), end='', flush=True)
    return _announce


def _run_generation(generator: CommitGenerator, request: GenerationRequest, stream: bool, is_pipe: bool, timings: dict) -> GenerationResult:
    t0 = time.time()
    if stream:
        printer = StreamPrinter()
        try:
            result = generator.generate(request, on_chunk=printer, on_retry=_retry_announcer(printer, is_pipe))
        finally:
            printer.finish()
    else:
        with Spinner():
            result = generator.generate(request, on_retry=_retry_announcer(None, is_pipe))
    timings['generate'] = time.time() - t0
    return result


def _select_message(args, result: GenerationResult, is_pipe: bool, config: Config) -> str | None:
    """Turn the raw response into the final message. None means the user cancelled."""
    if args.choose is not None:
        options = parse_options(result.message)
        if is_pipe:
            message = options[0]
        else:
            idx = display_options(options)
            if idx is None:
                return None
            message = options[idx]
    else:
        message = clean_commit_message(result.message)

    if args.jira:
        ticket_prefix = args.ticket_prefix or config.ticket_prefix
        message = f"{message}\n\n{ticket_prefix}: {args.jira.upper()}"
    return message


def _print_verbose_stats(args, is_pipe: bool, result: GenerationResult, timings: dict, analyzer: GitAnalyzer) -> None:
    if not args.verbose or is_pipe:
        return
    print()
    label = "Last commit" if args.amend else "Staged"
    try:
        stats = analyzer.get_last_commit_stats() if args.amend else analyzer.get_diff_stats()
        print(dim(f"  {label}: {stats.files_changed} files, +{stats.insertions} -{stats.deletions}"))
    except GitError as e:
        logger.debug("Could not read diff stats: %s", e)
    print(dim(f"  Attempts: {result.attempts}, diff budget: {result.budget} tokens"))
    print(dim(f"  Prompt: ~{result.prompt.estimated_tokens} tokens"))
    if result.tokens_used:
        print(dim(f"  Response: {result.tokens_used} tokens"))
    print(dim(f"  Timings: git={timings.get('git', 0):.2f}s, generate={timings.get('generate', 0):.2f}s"))


def _prompt_action(amend: bool = False) -> str:
    """Read the next action. Ctrl+C or EOF returns 'q'."""
    choices = '(e)dit, (r)egenerate, or Enter to amend: ' if amend else '(e)dit, (r)egenerate, (c)ommit, or Enter to accept: '
    try:
        return input(f"\n{dim(choices)}").strip().lower()
    except (KeyboardInterrupt, EOFError):
        return 'q'


def _finish(message: str, args, analyzer: GitAnalyzer, commit: bool) -> int:
    _display_message(message)
    _copy_and_report(message, args.no_copy)
    if args.amend:
        analyzer.amend_commit(message)
        print(success("Commit amended."))
    elif commit:
        analyzer.create_commit(message)
        print(success("Commit created."))
    return 0


def _show_current_message(analyzer: GitAnalyzer, is_pipe: bool) -> bool:
    """Print HEAD's message before amending. False when the repository has no commits."""
    try:
        current = analyzer.get_last_commit_message()
    except GitError as e:
        logger.debug("No last commit: %s", e)
        current = ''
    if not current:
        print_error("No commits found. Make a commit first before using --amend.")
        return False
    if not is_pipe:
        print(dim("Current message:"))
        print(warning(current))
        print()
    return True


def _generate_commit_flow(args, config: Config, provider: str, model: str | None) -> int:
    """Main commit message generation flow.

    Returns:
        int: Exit code
    """
    is_pipe = not sys.stdout.isatty()
    is_interactive = sys.stdin.isatty() and not is_pipe
    timings: dict[str, float] = {}

    try:
        analyzer = GitAnalyzer()
        if args.amend and not _show_current_message(analyzer, is_pipe):
            return 1
        request = _build_request(args, config, analyzer, timings)
        if request is None:
            return 1
        client = _initialize_client(provider, model, config.token_budget, is_pipe, timings)
    except (GitError, LLMError) as e:
        print_error(str(e))
        return 1

    generator = CommitGenerator(client)
    stream = is_interactive and not args.no_stream and args.choose is None

    while True:
        try:
            result = _run_generation(generator, request, stream, is_pipe, timings)
        except LLMError as e:
            if not is_pipe:
                print()
            print_error(str(e))
            return 1
        except KeyboardInterrupt:
            print(dim("\nCancelled."))
            return 1

        if not is_pipe:
            print(success("done!"))
            _display_file_list(result.diff, config.max_file_display)
        _print_verbose_stats(args, is_pipe, result, timings, analyzer)

        message = _select_message(args, result, is_pipe, config)
        if message is None:
            print(dim("Cancelled."))
            return 0

        # Piped output is print-only, including --amend
        if is_pipe:
            print(message)
            return 0

        action = ''
        if is_interactive:
            _display_message(message)
            action = _prompt_action(args.amend)
        if action == 'q':
            print(dim("Cancelled."))
            return 1
        if action == 'r':
            try:
                hint = input(f"{dim('  Hint (Enter to skip): ')}").strip()
            except (KeyboardInterrupt, EOFError):
                hint = ''
            if hint:
                request.prompt_config.hint = hint
            print("\nRegenerating... ", end='', flush=True)
            continue
        if action == 'e':
            message = edit_message(message) or message
        try:
            return _finish(message, args, analyzer, args.commit or action == 'c')
        except GitError as e:
            print_error(str(e))
            return 1


def main() -> int:
    """Main entry point for the CLI."""
    args = parse_args()
    configure_logging(args.verbose)

    exit_code, should_exit = _handle_subcommands(args)
    if should_exit:
        return exit_code

    try:
        project_root = GitAnalyzer().get_root_dir()
    except GitError:
        project_root = None
    config = load_config(project_root)
    provider, model = _get_provider_and_model(args, config)

    if args.warmup:
        return run_warmup(provider, model)

    _apply_overrides(args, config)
    if args.log:
        return run_log(args, config, provider, model)
    return _generate_commit_flow(args, config, provider, model)


if __name__ == "__main__":
    sys.exit(main())
