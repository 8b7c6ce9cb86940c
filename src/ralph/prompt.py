"""Prompt rendering: read markdown, substitute the plan path."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .config import LoopOptions

PLAN_PLACEHOLDER = "{plan}"
DONE_MARKER = ".ralph-done"

DEFAULT_PROMPT = (
    "READ all of {plan}. Pick ONE task. If needed, verify via web/code search. "
    "Complete task. Commit change (update the plan.md in the same commit). "
    "ONLY do one task unless GLARINGLY OBVIOUS steps should run together. "
    "Update {plan}. If you learn a critical operational detail, update AGENTS.md. "
    f"When ALL tasks complete, create {DONE_MARKER} and exit. "
    "NEVER GIT PUSH. ONLY COMMIT."
)


@dataclass(frozen=True)
class PromptTemplate:
    body: str
    meta: dict[str, Any] = field(default_factory=dict)
    path: Path | None = None


def render_prompt(template: str, plan_file: str) -> str:
    return template.replace(PLAN_PLACEHOLDER, plan_file)


def build_prompt(options: "LoopOptions") -> str:
    """Return the instruction text for one iteration.

    Uses ``options.prompt`` when set, otherwise :data:`DEFAULT_PROMPT`, and
    replaces every ``{plan}`` with the plan file path.
    """
    template = options.prompt or DEFAULT_PROMPT
    return render_prompt(template, options.plan_file)


def _split_frontmatter(text: str) -> tuple[dict, str]:
    """Split optional YAML frontmatter from markdown body."""
    if not text.startswith("---"):
        return {}, text
    parts = text.split("---", 2)
    if len(parts) < 3:
        return {}, text
    try:
        meta = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError:
        return {}, text
    if not isinstance(meta, dict):
        return {}, text
    return meta, parts[2].lstrip("\n")


def load_prompt_template(path: str | Path) -> PromptTemplate:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"prompt file not found: {p}") from exc
    meta, body = _split_frontmatter(text)
    body = body.strip()
    if not body:
        raise ConfigurationError(f"prompt file is empty: {p}")
    return PromptTemplate(body=body, meta=meta, path=p)
