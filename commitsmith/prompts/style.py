"""Style Learner - Describe a repository's commit conventions from its history."""

import json
import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path

from commitsmith import COMMIT_TYPE_NAMES
from commitsmith.git import CommitInfo, GitError

logger = logging.getLogger(__name__)

CACHE_FILE = ".commitsmith-cache.json"

_CONVENTIONAL_RE = re.compile(rf'^({"|".join(COMMIT_TYPE_NAMES)})(\(([^)]+)\))?!?:\s*(.*)')
_EMOJI_RE = re.compile(r'[\U0001F300-\U0001F9FF]|[☀-⛿]|[✀-➿]|:\w+:')
_TICKET_RE = re.compile(r'([A-Z]+-\d+)|#(\d+)|(?:refs?\s+#?\d+)', re.IGNORECASE)

# Imperative verbs that open most subjects, used to guess the history's language
ENGLISH_WORDS = frozenset({
    "add", "fix", "update", "remove", "change", "implement", "create", "delete", "move", "rename",
    "refactor", "improve", "support", "handle", "use", "set", "merge", "release", "bump", "init",
})
ITALIAN_WORDS = frozenset({
    "aggiungi", "aggiorna", "correggi", "rimuovi", "modifica", "implementa", "crea", "elimina",
    "sposta", "rinomina", "migliora", "gestisci", "usa", "imposta",
})
LANGUAGE_LABELS = {
    "english": "English",
    "italian": "Italian",
    "mixed": "Mixed (English/Italian)",
}


@dataclass
class StyleAnalysis:
    commit_count: int = 0
    conventional_ratio: float = 0.0
    scope_ratio: float = 0.0
    common_scopes: list[str] = field(default_factory=list)
    average_subject_length: int = 0
    lowercase_ratio: float = 0.0
    emoji_ratio: float = 0.0
    body_ratio: float = 0.0
    language: str = "unknown"
    ticket_pattern: str | None = None

    @property
    def uses_conventional(self) -> bool:
        return self.conventional_ratio > 0.5

    @property
    def uses_scope(self) -> bool:
        return self.scope_ratio > 0.3

    @property
    def uses_lowercase(self) -> bool:
        return self.lowercase_ratio > 0.7

    @property
    def uses_emoji(self) -> bool:
        return self.emoji_ratio > 0.2

    @property
    def uses_body(self) -> bool:
        return self.body_ratio > 0.3


def detect_language(subjects: list[str]) -> str:
    """'english', 'italian', 'mixed' or 'unknown', from common commit verbs."""
    english = italian = 0
    for subject in subjects:
        for word in subject.lower().split():
            english += word in ENGLISH_WORDS
            italian += word in ITALIAN_WORDS

    if not english and not italian:
        return "unknown"
    if english > italian * 2:
        return "english"
    if italian > english * 2:
        return "italian"
    return "mixed"


def analyze_commits(commits: list[CommitInfo]) -> StyleAnalysis:
    if not commits:
        return StyleAnalysis()

    subjects = [c.message for c in commits]
    conventional = scoped = lowercase = emoji = 0
    scopes: Counter[str] = Counter()
    tickets: Counter[str] = Counter()

    for subject in subjects:
        text = subject
        match = _CONVENTIONAL_RE.match(subject)
        if match:
            conventional += 1
            if match.group(3):
                scoped += 1
                scopes[match.group(3)] += 1
            text = match.group(4)

        if text and text[0] == text[0].lower():
            lowercase += 1
        if _EMOJI_RE.search(subject):
            emoji += 1

        ticket = _TICKET_RE.search(subject)
        if ticket:
            tickets[re.sub(r'\d+', 'N', ticket.group(0))] += 1

    n = len(commits)
    top_ticket = next((p for p, count in tickets.most_common() if count >= 3), None)

    return StyleAnalysis(
        commit_count=n,
        conventional_ratio=conventional / n,
        scope_ratio=scoped / n,
        common_scopes=[s for s, count in scopes.most_common(8) if count >= 2],
        average_subject_length=round(sum(len(s) for s in subjects) / n),
        lowercase_ratio=lowercase / n,
        emoji_ratio=emoji / n,
        body_ratio=sum(1 for c in commits if c.body) / n,
        language=detect_language(subjects),
        ticket_pattern=top_ticket,
    )


def build_style_context(analysis: StyleAnalysis) -> str:
    """Render the analysis as a style-guide block for the system prompt."""
    if analysis.commit_count == 0:
        return ""

    lines = ["STYLE GUIDE (from repo history):"]
    if analysis.uses_conventional:
        scope = "with scope" if analysis.uses_scope else "(no scope)"
        lines.append(f"- Format: conventional commits {scope}")
    else:
        lines.append("- Format: freeform (no conventional commits pattern)")

    if analysis.common_scopes:
        lines.append(f"- Common scopes: {', '.join(analysis.common_scopes)}")
    if analysis.language in LANGUAGE_LABELS:
        lines.append(f"- Language: {LANGUAGE_LABELS[analysis.language]}")
    lines.append(f"- Average subject length: {analysis.average_subject_length} chars")
    if analysis.body_ratio > 0:
        lines.append(f"- Body: used in {round(analysis.body_ratio * 100)}% of commits")
    if analysis.uses_emoji:
        lines.append("- Uses emoji/gitmoji in commit messages")
    if analysis.uses_lowercase:
        lines.append("- Subject starts with lowercase")
    if analysis.ticket_pattern:
        lines.append(f'- Pattern: ticket reference "{analysis.ticket_pattern}"')
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Cached learning
# ---------------------------------------------------------------------------

def _load_cache(path: Path) -> dict | None:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None


def _save_cache(path: Path, data: dict) -> None:
    try:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as e:
        logger.debug("Could not write style cache %s: %s", path, e)


def learn_style(analyzer, n: int = 50) -> str:
    """Style-guide block for the last n commits.

    The result is cached in the repository root and reused while HEAD and
    the number of analysed commits are unchanged.
    """
    commits = analyzer.get_recent_commits(n)
    if not commits:
        return ""

    try:
        cache_path = Path(analyzer.get_root_dir()) / CACHE_FILE
    except GitError as e:
        logger.debug("Style cache disabled: %s", e)
        cache_path = None

    if cache_path is not None:
        cached = _load_cache(cache_path)
        if (isinstance(cached, dict)
                and cached.get("last_commit_hash") == commits[0].hash
                and cached.get("commit_count") == len(commits)
                and isinstance(cached.get("style_context"), str)):
            logger.debug("Using cached style for %s", commits[0].hash[:8])
            return cached["style_context"]

    analysis = analyze_commits(commits)
    style_context = build_style_context(analysis)
    if cache_path is not None:
        _save_cache(cache_path, {
            "last_commit_hash": commits[0].hash,
            "commit_count": len(commits),
            "style_context": style_context,
            "analysis": asdict(analysis),
        })
    return style_context
