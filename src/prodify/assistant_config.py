from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_MODEL = "google/gemini-2.5-flash"
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful productivity assistant for Prodify. Help users with task management, "
    "time management, study techniques, and motivation. Keep responses concise and actionable."
)
DEFAULT_PRIORITIZE_PROMPT = (
    "You are analyzing tasks for prioritization. Here are the user's current tasks: {tasks}.\n\n"
    "Analyze them based on:\n"
    "- Deadlines and due dates\n"
    "- Priority levels\n"
    "- Estimated time\n"
    "- Categories\n\n"
    "Suggest the top 3 most important tasks to work on now and explain why."
)


@dataclass(frozen=True)
class AssistantConfig:
    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    prioritize_prompt: str = DEFAULT_PRIORITIZE_PROMPT
    max_tokens: int = 1024
    temperature: float = 0.2
    timeout_seconds: int = 45


def get_int(cfg: dict[str, Any], key: str, default: int, min_value: int = 0) -> int:
    try:
        value = int(cfg.get(key, default))
    except (TypeError, ValueError):
        value = default
    return max(min_value, value)


def _get_float(cfg: dict[str, Any], key: str, default: float) -> float:
    try:
        return float(cfg.get(key, default))
    except (TypeError, ValueError):
        return default


def _get_str(cfg: dict[str, Any], key: str, default: str) -> str:
    value = cfg.get(key)
    if not isinstance(value, str) or not value.strip():
        return default
    return value.strip()


def load_assistant_config(path: Path | None, model_override: str | None = None) -> AssistantConfig:
    raw: dict[str, Any] = {}
    if path is not None and path.exists():
        loaded = yaml.safe_load(path.read_text()) or {}
        if isinstance(loaded, dict):
            raw = loaded

    model = (model_override or "").strip() or _get_str(raw, "model", DEFAULT_MODEL)
    prioritize_prompt = _get_str(raw, "prioritize_prompt", DEFAULT_PRIORITIZE_PROMPT)
    if "{tasks}" not in prioritize_prompt:
        prioritize_prompt = prioritize_prompt + "\n\nTasks: {tasks}"

    return AssistantConfig(
        model=model,
        system_prompt=_get_str(raw, "system_prompt", DEFAULT_SYSTEM_PROMPT),
        prioritize_prompt=prioritize_prompt,
        max_tokens=get_int(raw, "max_tokens", 1024, min_value=1),
        temperature=_get_float(raw, "temperature", 0.2),
        timeout_seconds=get_int(raw, "timeout_seconds", 45, min_value=1),
    )
