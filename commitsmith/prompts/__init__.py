"""Prompt Construction Package"""

from commitsmith.prompts.builder import Prompt, PromptBuilder, PromptConfig, extract_ticket, is_initial_commit
from commitsmith.prompts.style import (
    StyleAnalysis,
    analyze_commits,
    build_style_context,
    detect_language,
    learn_style,
)

__all__ = [
    "Prompt",
    "PromptBuilder",
    "PromptConfig",
    "extract_ticket",
    "is_initial_commit",
    "StyleAnalysis",
    "analyze_commits",
    "build_style_context",
    "detect_language",
    "learn_style",
]
