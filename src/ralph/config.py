from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import tomllib

from .errors import ConfigurationError
from .prompt import PromptTemplate, load_prompt_template

CONFIG_FILE = "ralph.toml"
DEFAULT_PLAN = "plan.md"
DEFAULT_MODEL = "anthropic/claude-opus-4"


@dataclass(frozen=True)
class ModelRef:
    provider_id: str
    model_id: str

    def __str__(self) -> str:
        return f"{self.provider_id}/{self.model_id}"


def parse_model(model: str) -> ModelRef:
    """Split ``provider/model`` at the first ``/``."""
    provider, sep, name = model.partition("/")
    if not sep:
        raise ConfigurationError(
            f'Invalid model format: "{model}". Expected "provider/model" '
            '(e.g., "anthropic/claude-opus-4")'
        )
    return ModelRef(provider_id=provider, model_id=name)


@dataclass(frozen=True)
class LoopOptions:
    plan_file: str
    model: str
    prompt: str | None = None
    max_iterations: int | None = None
    repo_root: Path = field(default_factory=Path.cwd)

    def validate(self) -> ModelRef:
        if not self.plan_file.strip():
            raise ConfigurationError("plan file path is required")
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ConfigurationError(
                f"max iterations must be at least 1 (got {self.max_iterations})"
            )
        return parse_model(self.model)

    @property
    def plan_path(self) -> Path:
        p = Path(self.plan_file)
        return p if p.is_absolute() else self.repo_root / p


@dataclass(frozen=True)
class RalphFileConfig:
    path: Path
    plan: str | None = None
    model: str | None = None
    prompt: str | None = None
    prompt_file: str | None = None
    max_iterations: int | None = None
    output: str | None = None


def _as_str(value: object, *, key: str, source: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{source}: {key} must be a string")
    stripped = value.strip()
    return stripped or None


def _as_int(value: object, *, key: str, source: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{source}: {key} must be an integer")
    return value


def load_file_config(repo_root: Path) -> RalphFileConfig:
    path = repo_root / CONFIG_FILE
    if not path.is_file():
        return RalphFileConfig(path=path)
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"invalid TOML in {CONFIG_FILE}: {exc}") from exc

    table = raw.get("ralph", {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"{CONFIG_FILE}: [ralph] must be a table")
    unknown = sorted(
        set(table) - {"plan", "model", "prompt", "prompt_file", "max_iterations", "output"}
    )
    if unknown:
        raise ConfigurationError(f"{CONFIG_FILE}: unknown keys: {', '.join(unknown)}")

    return RalphFileConfig(
        path=path,
        plan=_as_str(table.get("plan"), key="plan", source=CONFIG_FILE),
        model=_as_str(table.get("model"), key="model", source=CONFIG_FILE),
        prompt=_as_str(table.get("prompt"), key="prompt", source=CONFIG_FILE),
        prompt_file=_as_str(table.get("prompt_file"), key="prompt_file", source=CONFIG_FILE),
        max_iterations=_as_int(
            table.get("max_iterations"), key="max_iterations", source=CONFIG_FILE
        ),
        output=_as_str(table.get("output"), key="output", source=CONFIG_FILE),
    )


def _env_int(env: Mapping[str, str], name: str) -> int | None:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer (got {raw!r})") from exc


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_options(
    repo_root: Path,
    *,
    plan: str | None = None,
    model: str | None = None,
    prompt: str | None = None,
    prompt_file: str | None = None,
    max_iterations: int | None = None,
    env: Mapping[str, str] | None = None,
) -> LoopOptions:
    """Merge CLI values, environment, ralph.toml and prompt frontmatter.

    Earlier sources win: flags, then ``RALPH_*`` variables, then the
    ``[ralph]`` table, then the prompt file's frontmatter, then defaults.
    """
    env = os.environ if env is None else env
    file_cfg = load_file_config(repo_root)

    template: PromptTemplate | None = None
    prompt_text: str | None = None
    flag_or_env_file = _first(prompt_file, env.get("RALPH_PROMPT_FILE") or None)
    if prompt is not None:
        prompt_text = prompt
    elif flag_or_env_file is not None:
        template = load_prompt_template(repo_root / flag_or_env_file)
    elif file_cfg.prompt is not None:
        prompt_text = file_cfg.prompt
    elif file_cfg.prompt_file is not None:
        template = load_prompt_template(repo_root / file_cfg.prompt_file)

    meta: dict[str, Any] = template.meta if template else {}
    if template is not None:
        prompt_text = template.body

    plan_file = _first(
        plan,
        env.get("RALPH_PLAN") or None,
        file_cfg.plan,
        meta.get("plan"),
        DEFAULT_PLAN,
    )
    model_name = _first(
        model,
        env.get("RALPH_MODEL") or None,
        file_cfg.model,
        meta.get("model"),
        DEFAULT_MODEL,
    )
    iterations = _first(
        max_iterations,
        _env_int(env, "RALPH_MAX_ITERATIONS"),
        file_cfg.max_iterations,
        meta.get("max_iterations"),
    )
    if iterations is not None and not isinstance(iterations, int):
        raise ConfigurationError(f"max_iterations must be an integer (got {iterations!r})")

    options = LoopOptions(
        plan_file=str(plan_file),
        model=str(model_name),
        prompt=prompt_text,
        max_iterations=iterations,
        repo_root=repo_root,
    )
    options.validate()
    return options
