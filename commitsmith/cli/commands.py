"""CLI Commands"""

import logging
import os
import sys
import time
from pathlib import Path

from commitsmith import hook
from commitsmith.changelog import categorize_commits, format_changelog, parse_commits
from commitsmith.config import Config, ConfigManager, save_config
from commitsmith.git import GitAnalyzer, GitError
from commitsmith.llm import get_client, LLMError, OllamaClient
from commitsmith.output import Spinner, bold, dim, info, print_success, print_error, warning

from commitsmith.cli.utils import edit_message

logger = logging.getLogger(__name__)


def display_config(manager: ConfigManager | None = None) -> int:
    """Display current configuration."""
    manager = manager or ConfigManager()
    config = manager.load()
    paths = manager.get_config_paths()

    print(f"\n{bold('Current Configuration')}\n")

    if paths:
        for path in paths:
            print(f"  {dim('Loaded from:')} {path}")
    else:
        print(f"  {dim('Loaded from:')} defaults (no {ConfigManager.CONFIG_FILENAME} found)")

    env_provider = os.environ.get('COMMITSMITH_PROVIDER')
    env_model = os.environ.get('COMMITSMITH_MODEL')
    if env_provider or env_model:
        print(f"  {dim('Environment overrides:')}")
        if env_provider:
            print(f"    COMMITSMITH_PROVIDER={env_provider}")
        if env_model:
            print(f"    COMMITSMITH_MODEL={env_model}")

    print()
    print(f"  {bold('Settings:')}")
    settings = [
        ("provider", config.provider),
        ("model", config.model or 'auto'),
        ("style", config.style),
        ("include_body", str(config.include_body).lower()),
        ("max_subject_length", config.max_subject_length),
        ("language", config.language or 'en'),
        ("token_budget", config.token_budget or 'provider default'),
        ("ignore_paths", ', '.join(config.ignore_paths) or '(none)'),
        ("branch_pattern", config.branch_pattern),
        ("learn_style", str(config.learn_style).lower()),
        ("changelog_format", config.changelog_format),
        ("changelog_output", config.changelog_output),
    ]
    for key, value in settings:
        print(f"    {key + ':':<20}{info(str(value))}")

    print(f"\n  {dim('Config locations:')}")
    print(f"    Project: {ConfigManager.CONFIG_FILENAME} (in the repository root)")
    print(f"    Global:  ~/{ConfigManager.CONFIG_FILENAME}")
    print(f"\n  {dim('Run')} commitsmith --setup {dim('to configure')}\n")

    return 0


def _ask_choice(prompt: str, choices: dict[str, str], default: str | None = None) -> str:
    while True:
        choice = input(prompt).strip()
        if choice == '' and default is not None:
            return default
        if choice in choices:
            return choices[choice]


def run_setup() -> int:
    """Quick setup wizard."""
    display_config()
    print(f"{bold('Setup Wizard')}\n")

    print("Choose provider:\n")
    print("  1. Ollama (free, local)")
    print("  2. Claude API (paid)\n")
    provider = _ask_choice("Select [1/2]: ", {'1': 'ollama', '2': 'claude'})

    model = None
    if provider == 'ollama':
        print(f"\nRecommended: {OllamaClient.DEFAULT_MODEL}, llama3.2:3b, mistral:7b\n")
        model = input("Model (Enter for default): ").strip() or None

    print("\nCommit message style:\n")
    print("  1. conventional - type(scope): subject with bullets (default)")
    print("  2. simple - plain subject with bullets")
    print("  3. detailed - type(scope): subject with more bullets\n")
    style = _ask_choice(
        "Select [1/2/3] (Enter for default): ",
        {'1': 'conventional', '2': 'simple', '3': 'detailed'},
        default='conventional',
    )

    include_body = input("\nInclude bullet points in commit body? [Y/n]: ").strip().lower() != 'n'

    max_len_input = input("\nMax subject line length (Enter for 72): ").strip()
    max_subject_length = int(max_len_input) if max_len_input.isdigit() and int(max_len_input) > 0 else 72

    budget_input = input("\nToken budget override (Enter to use the provider's): ").strip()
    token_budget = int(budget_input) if budget_input.isdigit() and int(budget_input) > 0 else None

    config = Config(
        provider=provider,
        model=model,
        style=style,
        include_body=include_body,
        max_subject_length=max_subject_length,
        token_budget=token_budget,
    )
    path = save_config(config, global_config=True)

    print_success(f"Saved to {path}")
    return 0


def run_install_completion() -> int:
    """Print shell tab completion setup instructions."""
    shell = os.environ.get('SHELL', '')
    line = 'eval "$(register-python-argcomplete commitsmith)"'

    print(f"\n{bold('Tab Completion Setup')}\n")

    if 'zsh' in shell or 'bash' in shell:
        rc_file = os.path.expanduser('~/.zshrc' if 'zsh' in shell else '~/.bashrc')
        print(f"Add this line to {dim(rc_file)}:\n")
        print(f"  {line}\n")
        print(f"Then run: {dim('source ' + rc_file)}")
    elif sys.platform == 'win32':
        print("For PowerShell, add to your $PROFILE:\n")
        print("  register-python-argcomplete --shell powershell commitsmith | Out-String | Invoke-Expression")
    else:
        print("Run one of these based on your shell:\n")
        print(f"  {dim('# Bash/Zsh')}")
        print(f"  {line}\n")
        print(f"  {dim('# Fish')}")
        print("  register-python-argcomplete --shell fish commitsmith | source")

    print(f"\n{dim('After setup, press TAB to autocomplete flags.')}")
    return 0


def run_warmup(provider: str | None, model: str | None) -> int:
    """Pre-load Ollama model into memory."""
    if provider and provider not in ('ollama', 'auto'):
        print_error("--warmup only works with Ollama (local models)")
        return 1

    try:
        client = get_client(provider='ollama', model=model)
    except LLMError as e:
        print_error(f"Failed to connect to Ollama: {e}")
        return 1

    if client._is_model_loaded():
        print_success(f"Model {bold(client.model)} is already loaded")
        return 0

    print(f"Loading {bold(client.model)}... ", end='', flush=True)
    start = time.time()
    loaded = client.warmup()
    elapsed = time.time() - start

    if loaded and client._is_model_loaded():
        print_success(f"ready! ({elapsed:.1f}s)")
        print(dim("Model will stay loaded for ~10 minutes"))
        return 0
    print_error("failed to load model")
    return 1


def run_hook_command(action: str, hook_args: list[str]) -> int:
    """Handle --hook install|uninstall|run."""
    if action == 'run':
        if not hook_args:
            return 0
        source = hook_args[1] if len(hook_args) > 1 else None
        hook.run_hook(hook_args[0], source)
        return 0

    try:
        hooks_dir = Path(GitAnalyzer().get_hooks_dir())
        if action == 'install':
            path = hook.install_hook(hooks_dir)
            print_success(f"Installed {path.name} hook.")
            print(dim("commitsmith will draft a message whenever you run git commit."))
        else:
            path = hook.uninstall_hook(hooks_dir)
            print_success(f"Removed {path.name} hook.")
    except (GitError, hook.HookError) as e:
        print_error(str(e))
        return 1
    return 0


def write_changelog(path: Path, changelog: str, fmt: str) -> None:
    """Write a changelog section. Text formats go above any existing content; JSON replaces the file."""
    existing = ""
    if fmt != 'json' and path.exists():
        existing = path.read_text(encoding='utf-8')
    body = f"{changelog}\n{existing}" if existing.strip() else changelog
    path.write_text(body, encoding='utf-8')


def _prompt_log_action(output: str) -> str:
    try:
        return input(f"\n{dim(f'(w)rite to {output}, (e)dit, (c)ancel, or Enter to accept: ')}").strip().lower()
    except (KeyboardInterrupt, EOFError):
        return 'c'


def run_log(args, config: Config, provider: str, model: str | None) -> int:
    """Generate a changelog for --from..--to (latest tag..HEAD by default)."""
    is_pipe = not sys.stdout.isatty()

    def status(text: str) -> None:
        if not is_pipe:
            print(dim(text))

    try:
        analyzer = GitAnalyzer()
        from_ref = args.from_ref or analyzer.get_latest_tag()
        if not from_ref:
            print_error("No tags found and no --from specified.\n"
                        "Create a tag first (git tag v0.1.0) or pass --from <ref>.")
            return 1
        to_ref = args.to_ref or 'HEAD'
        status(f"Generating changelog for {from_ref}...{to_ref}")
        commits = analyzer.get_commits_between(from_ref, to_ref)
    except GitError as e:
        print_error(str(e))
        return 1

    if not commits:
        if not is_pipe:
            print(warning("No commits found in the specified range."))
        return 0
    status(f"Analyzing {len(commits)} commits...")

    parsed = parse_commits(commits)
    client = None
    if any(not c.is_conventional for c in parsed):
        try:
            client = get_client(provider=provider, model=model, token_budget=config.token_budget)
            status(f"Some commits need AI categorization, using {client.name}...")
        except LLMError as e:
            logger.debug("No provider for categorization: %s", e)
            status("No LLM provider available. Non-conventional commits will be categorized as Chore.")

    if client is not None and not is_pipe:
        with Spinner():
            categorized = categorize_commits(parsed, client, config.changelog_exclude)
    else:
        categorized = categorize_commits(parsed, client, config.changelog_exclude)

    fmt = args.format or config.changelog_format
    changelog = format_changelog(categorized, fmt, version=None if to_ref == 'HEAD' else to_ref)

    if args.output:
        write_changelog(Path(args.output), changelog, fmt)
        print_success(f"Changelog written to {args.output}")
        return 0

    print(changelog, end='')
    if is_pipe or not sys.stdin.isatty():
        return 0

    output = config.changelog_output
    action = _prompt_log_action(output)
    if action == 'w':
        write_changelog(Path(output), changelog, fmt)
        print_success(f"Changelog written to {output}")
    elif action == 'e':
        edited = edit_message(changelog)
        if not edited:
            print(warning("No changes made."))
            return 0
        write_changelog(Path(output), edited + "\n", fmt)
        print_success(f"Edited changelog written to {output}")
    elif action == 'c':
        print(dim("Cancelled."))
        return 2
    return 0
