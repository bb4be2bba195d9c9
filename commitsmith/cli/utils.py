"""CLI Utility Functions"""

import os
import re
import subprocess
import sys
import tempfile

from commitsmith import COMMIT_TYPE_NAMES
from commitsmith.output import bold, dim, info, colorize_commit_type

TYPES_PATTERN = '|'.join(COMMIT_TYPE_NAMES)

# Lines that mean the model started echoing the diff or a code block
JUNK_PATTERNS = re.compile(r'^(diff --git |@@\s|[+-]{3}\s[ab]/|index [0-9a-f]|```)')


def clean_commit_message(text: str) -> str:
    """Strip preambles, fences and echoed diff text around the commit message."""
    lines = text.strip().split('\n')
    start_idx = 0
    for i, line in enumerate(lines):
        if re.match(rf'^[`\s]*({TYPES_PATTERN})[\(!:]', line):
            start_idx = i
            break

    end_idx = len(lines)
    for i in range(start_idx + 1, len(lines)):
        if JUNK_PATTERNS.match(lines[i]):
            end_idx = i
            break

    lines = '\n'.join(lines[start_idx:end_idx]).rstrip().split('\n')
    lines[0] = lines[0].strip('`').strip()
    return '\n'.join(lines)


def parse_options(response: str) -> list[str]:
    """Split a multi-option response into cleaned messages."""
    parts = re.split(r'\[Option \d+\]\s*', response)
    options = [p.strip() for p in parts if p.strip()]

    if len(options) <= 1:
        type_pattern = rf'\n(?=\[?(?:{TYPES_PATTERN})[\(!:])'
        options = [p.strip() for p in re.split(type_pattern, response.strip()) if p.strip()]

    cleaned = []
    for opt in options:
        opt = clean_commit_message(opt)
        opt = re.sub(rf'^\[?({TYPES_PATTERN})\(', r'\1(', opt)
        lines = opt.split('\n')
        if lines[0].endswith(']'):
            lines[0] = lines[0][:-1]
        cleaned.append('\n'.join(lines))

    return cleaned or [clean_commit_message(response.strip())]


def copy_to_clipboard(text: str) -> tuple[bool, str]:
    """Copy text to clipboard. Returns (success, failure_reason)."""
    data = text.encode('utf-8')
    try:
        if sys.platform == 'win32':
            subprocess.run(['clip'], input=data, check=True)
        elif sys.platform == 'darwin':
            subprocess.run(['pbcopy'], input=data, check=True)
        else:
            try:
                subprocess.run(['xclip', '-selection', 'clipboard'], input=data, check=True)
            except FileNotFoundError:
                subprocess.run(['xsel', '--clipboard', '--input'], input=data, check=True)
        return True, ""
    except FileNotFoundError:
        if sys.platform == 'linux':
            return False, "Install xclip or xsel: sudo apt install xclip"
        return False, "No clipboard tool found"
    except (subprocess.CalledProcessError, OSError) as e:
        return False, f"Clipboard command failed: {e}"


def _format_option(message: str, option_num: int) -> str:
    lines = colorize_commit_type(message).split('\n')
    parts = [f"{info(f'[{option_num}]')} {bold(lines[0])}"]

    body_lines = [line for line in lines[1:] if line.strip()]
    if body_lines:
        parts.append("")
        for line in body_lines:
            if line.strip().startswith('-'):
                line = line.replace('-', dim('-'), 1)
            parts.append(f"    {line}")

    return '\n'.join(parts)


def display_options(options: list[str]) -> int | None:
    """Show options and return the chosen index, or None if the user quits."""
    print()
    for i, opt in enumerate(options, 1):
        print(_format_option(opt, i))
        if i < len(options):
            print(f"\n{dim('    · · ·')}\n")

    print()
    while True:
        try:
            choice = input(f"Select [1-{len(options)}] or (q)uit: ").strip().lower()
        except (KeyboardInterrupt, EOFError):
            return None
        if choice == 'q':
            return None
        if choice.isdigit() and 1 <= int(choice) <= len(options):
            return int(choice) - 1
        print(f"Enter 1-{len(options)} or q")


def edit_message(message: str) -> str | None:
    """Open message in user's editor. Returns edited text or None on failure."""
    editor = os.environ.get('VISUAL') or os.environ.get('EDITOR')
    if not editor:
        editor = 'notepad' if sys.platform == 'win32' else 'vi'

    tmp = tempfile.NamedTemporaryFile(mode='w', suffix='.gitcommit', delete=False, encoding='utf-8')
    try:
        tmp.write(message)
        tmp.close()
        subprocess.run([editor, tmp.name], check=True)
        with open(tmp.name, 'r', encoding='utf-8') as f:
            edited = f.read().strip()
        return edited or None
    except (subprocess.CalledProcessError, OSError):
        return None
    finally:
        try:
            os.unlink(tmp.name)
        except OSError as e:
            print(f"Warning: Could not delete temp file {tmp.name}: {e}", file=sys.stderr)
