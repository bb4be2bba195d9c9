"""Prompt Builder - Construct LLM prompts for commit message generation."""

import re
from dataclasses import dataclass

from commitsmith import COMMIT_TYPES
from commitsmith.git import ChangeStatus, ReducedDiff, estimate_tokens

DEFAULT_BRANCH_PATTERN = r'[A-Z]+-\d+'

# Chunk count above which an all-new diff is sent as a file list only
INITIAL_COMMIT_MIN_FILES = 5

NO_CHANGES = "No changes staged."
FILTERED_NOTE = "(Some auto-generated/lock files were excluded)"
TRUNCATED_NOTE = "(Large diff was truncated to fit context window)"
INITIAL_COMMIT_NOTE = "(Initial commit — full diff omitted, use file list above)"

# Bullet count thresholds by file count: (min_files, bullet_range)
BULLET_THRESHOLDS_DETAILED = [
    (15, "6-8"),
    (8, "5-6"),
    (4, "4-5"),
    (0, "2-3"),
]

BULLET_THRESHOLDS_DEFAULT = [
    (15, "5-6"),
    (8, "4-5"),
    (4, "3-4"),
    (0, "1-2"),
]

LANGUAGE_NAMES = {
    'de': 'German',
    'es': 'Spanish',
    'fr': 'French',
    'it': 'Italian',
    'ja': 'Japanese',
    'ko': 'Korean',
    'nl': 'Dutch',
    'pt': 'Portuguese',
    'ru': 'Russian',
    'zh': 'Chinese',
}

BASE_RULES = """You are commitsmith, an expert at writing git commit messages. Your commit messages are documentation for future developers.

Core principles:
- The DIFF shows WHAT changed. Your job is to explain WHY.
- Write for the developer debugging this at 2am, six months from now.
- Every word must earn its place, no filler.

Avoid:
- Vague verbs: "Update", "Change", "Modify" (be specific: "Add", "Remove", "Replace", "Extract")
- Restating the diff: don't say "Change X to Y" when the code shows that
- Filler bullets that repeat the subject line in different words

Scope selection (for type(scope): format):
- Use ONE WORD: module name (auth, api, cli), feature (login, checkout), or component (Button, config)
- NEVER use file paths like 'cli/utils.py' - just use 'cli'
- When changes span multiple areas, pick the primary one"""


@dataclass
class PromptConfig:
    """Settings and context that shape the prompt."""
    hint: str | None = None
    forced_type: str | None = None
    num_options: int = 1
    style: str = "conventional"
    include_body: bool = True
    max_subject_length: int = 72
    language: str | None = None
    style_context: str = ""
    branch_name: str | None = None
    branch_pattern: str = DEFAULT_BRANCH_PATTERN


@dataclass
class Prompt:
    system: str
    user: str

    @property
    def estimated_tokens(self) -> int:
        return estimate_tokens(self.system) + estimate_tokens(self.user)


def extract_ticket(branch_name: str, pattern: str | None = None) -> str | None:
    """Pull a ticket id like PROJ-123 out of a branch name."""
    try:
        match = re.search(pattern or DEFAULT_BRANCH_PATTERN, branch_name)
    except re.error:
        match = re.search(DEFAULT_BRANCH_PATTERN, branch_name)
    return match.group(0) if match else None


def is_initial_commit(diff: ReducedDiff) -> bool:
    """Many files and every one of them new: a project's first commit."""
    files = diff.file_chunks
    return len(files) > INITIAL_COMMIT_MIN_FILES and all(c.status is ChangeStatus.ADDED for c in files)


class PromptBuilder:
    """Constructs system and user prompts for commit message generation."""

    def build(self, diff: ReducedDiff, config: PromptConfig | None = None) -> Prompt:
        config = config or PromptConfig()
        file_count = len(diff.file_chunks)
        return Prompt(
            system=self.build_system_prompt(config, file_count),
            user=self.build_user_prompt(self.format_diff(diff), config),
        )

    def estimate_overhead(self, config: PromptConfig | None = None) -> int:
        """Token cost of everything in the prompt except the diff itself."""
        config = config or PromptConfig()
        return Prompt(
            system=self.build_system_prompt(config, 0),
            user=self.build_user_prompt("", config),
        ).estimated_tokens

    def format_diff(self, diff: ReducedDiff) -> str:
        """Render the reduced diff as the DIFF section text."""
        if diff.is_empty:
            return NO_CHANGES

        parts = [f"Files: {diff.summary}"]
        if diff.was_filtered:
            parts.append(FILTERED_NOTE)
        if diff.was_truncated:
            parts.append(TRUNCATED_NOTE)

        if is_initial_commit(diff):
            parts.append(INITIAL_COMMIT_NOTE)
            return "\n\n".join(parts)

        parts.append("---")
        parts.extend(chunk.diff for chunk in diff.chunks)
        return "\n\n".join(parts)

    # -- system prompt -----------------------------------------------------

    def build_system_prompt(self, config: PromptConfig, file_count: int = 0) -> str:
        sections = [
            BASE_RULES,
            self._build_format_section(config, file_count),
            self._build_output_rules(config),
            self._build_language_directive(config.language),
            config.style_context.strip() if config.style_context else "",
        ]
        return "\n\n".join(filter(None, sections))

    def _build_format_section(self, config: PromptConfig, file_count: int) -> str:
        max_len = config.max_subject_length

        if config.style == "simple":
            lines = [
                "FORMAT:",
                f"subject line (imperative mood, no period, max {max_len} chars)",
                "Use a simple, direct subject line without type prefixes.",
            ]
        else:
            lines = [
                "FORMAT: Conventional Commits",
                f"type(scope): subject line (lowercase, imperative mood, no period, max {max_len} chars)",
                self._build_type_instruction(config.forced_type),
            ]

        if config.include_body:
            thresholds = BULLET_THRESHOLDS_DETAILED if config.style == "detailed" else BULLET_THRESHOLDS_DEFAULT
            bullets = self._get_bullet_range(file_count, thresholds)
            lines.append(
                f"After a blank line, write {bullets} bullet points explaining WHAT changed and WHY, "
                "naming specific files, components, or functions."
            )
        else:
            lines.append("Do NOT include a body or bullet points. Subject line only.")

        return "\n".join(lines)

    def _build_type_instruction(self, forced_type: str | None) -> str:
        if forced_type:
            return f"IMPORTANT: Use type '{forced_type}' for this commit."
        types_list = "\n".join(f"  - {t}: {desc}" for t, desc in COMMIT_TYPES.items())
        return f"Choose the most appropriate type:\n{types_list}"

    def _get_bullet_range(self, file_count: int, thresholds: list[tuple[int, str]]) -> str:
        for threshold, range_str in thresholds:
            if file_count >= threshold:
                return range_str
        return thresholds[-1][1]

    def _build_output_rules(self, config: PromptConfig) -> str:
        if config.num_options > 1:
            n = config.num_options
            labels = "\n".join(f"[Option {i}]" for i in range(1, n + 1))
            return (
                f"OUTPUT: Generate exactly {n} SEPARATE commit message options, each taking a "
                f"meaningfully different angle on the change. Label them exactly like this:\n{labels}\n"
                "No markdown, no extra explanation, no preamble."
            )
        return (
            "OUTPUT: Output ONLY the commit message, nothing else "
            "(no markdown, no quotes, no preamble, no explanation)."
        )

    def _build_language_directive(self, language: str | None) -> str:
        if not language or language.lower().startswith("en"):
            return ""
        name = LANGUAGE_NAMES.get(language.lower(), language)
        return f"LANGUAGE: Write the commit message in {name}. Keep the type and scope in English."

    # -- user prompt -------------------------------------------------------

    def build_user_prompt(self, diff_text: str, config: PromptConfig) -> str:
        sections = [
            self._build_branch_section(config),
            self._build_hints_section(config),
            f"DIFF:\n{diff_text}",
        ]
        return "\n\n".join(filter(None, sections))

    def _build_branch_section(self, config: PromptConfig) -> str:
        branch = config.branch_name
        if not branch or branch == "HEAD":
            return ""
        lines = [f"BRANCH: {branch}"]
        ticket = extract_ticket(branch, config.branch_pattern)
        if ticket:
            lines.append(f'→ Include "{ticket}" reference if appropriate.')
        return "\n".join(lines)

    def _build_hints_section(self, config: PromptConfig) -> str:
        if not config.hint:
            return ""
        return (
            "DEVELOPER CONTEXT:\n"
            f"{config.hint}\n"
            "→ The developer provided this context about the changes. Use it to understand intent, "
            "but verify it matches what you see in the diff."
        )
