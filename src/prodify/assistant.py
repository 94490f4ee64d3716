from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from prodify.assistant_config import AssistantConfig
from prodify.db import Task
from prodify.db_constants import TASK_PRIORITIES
from prodify.errors import PaymentRequired, RateLimited, UpstreamUnavailable, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"

MODES = ("chat", "create_task", "prioritize", "decompose")

_PRIORITY_SCHEMA = {"type": "string", "enum": list(TASK_PRIORITIES)}

CREATE_TASK_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "create_task",
        "description": "Extract task details from natural language input",
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "The task title"},
                "description": {"type": "string", "description": "Task description or details"},
                "priority": {**_PRIORITY_SCHEMA, "description": "Task priority"},
                "category": {"type": "string", "description": "Task category or project"},
                "due_date": {"type": "string", "description": "Due date in ISO format (YYYY-MM-DDTHH:MM:SS)"},
                "estimated_time": {"type": "number", "description": "Estimated time in minutes"},
            },
            "required": ["title"],
            "additionalProperties": False,
        },
    },
}

DECOMPOSE_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "decompose_task",
        "description": "Break down a large task into smaller subtasks",
        "parameters": {
            "type": "object",
            "properties": {
                "subtasks": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string"},
                            "description": {"type": "string"},
                            "priority": _PRIORITY_SCHEMA,
                            "estimated_time": {"type": "number"},
                        },
                        "required": ["title"],
                        "additionalProperties": False,
                    },
                },
                "explanation": {"type": "string", "description": "Brief explanation of how the task was broken down"},
            },
            "required": ["subtasks"],
            "additionalProperties": False,
        },
    },
}


@dataclass(frozen=True)
class TaskDraft:
    title: str
    description: str | None = None
    priority: str = "medium"
    category: str | None = None
    due_date: datetime | None = None
    estimated_time: int | None = None


@dataclass(frozen=True)
class SubtaskDraft:
    title: str
    description: str | None = None
    priority: str = "medium"
    estimated_time: int | None = None


@dataclass(frozen=True)
class Decomposition:
    subtasks: tuple[SubtaskDraft, ...]
    explanation: str | None = None


@dataclass(frozen=True)
class AssistantReply:
    mode: str
    model_id: str
    text: str | None = None
    task: TaskDraft | None = None
    decomposition: Decomposition | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


def _extract_text(payload: dict[str, Any]) -> str | None:
    message = _first_message(payload)
    if message is None:
        return None
    content = message.get("content")
    if isinstance(content, str):
        return content.strip() or None
    if isinstance(content, list):
        chunks: list[str] = []
        for item in content:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                chunks.append(str(item["text"]))
        joined = "\n".join(chunks).strip()
        return joined or None
    return None


def _first_message(payload: dict[str, Any]) -> dict[str, Any] | None:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    return message if isinstance(message, dict) else None


def _extract_tool_arguments(payload: dict[str, Any], name: str) -> dict[str, Any] | None:
    message = _first_message(payload)
    if message is None:
        return None
    calls = message.get("tool_calls")
    if not isinstance(calls, list):
        return None
    for call in calls:
        fn = call.get("function") if isinstance(call, dict) else None
        if not isinstance(fn, dict) or fn.get("name") != name:
            continue
        args = fn.get("arguments")
        if isinstance(args, dict):
            return args
        if isinstance(args, str):
            return parse_json_object(args)
    return None


def parse_json_object(text: str) -> dict[str, Any] | None:
    cleaned = text.strip()
    try:
        obj = json.loads(cleaned)
        return obj if isinstance(obj, dict) else None
    except json.JSONDecodeError:
        pass

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    snippet = cleaned[start : end + 1]
    try:
        obj = json.loads(snippet)
        return obj if isinstance(obj, dict) else None
    except json.JSONDecodeError:
        return None


def _opt_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _opt_minutes(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    minutes = int(value)
    return minutes if minutes > 0 else None


def _priority(value: Any) -> str:
    raw = _opt_str(value)
    if raw and raw.lower() in TASK_PRIORITIES:
        return raw.lower()
    return "medium"


def _parse_due(value: Any) -> datetime | None:
    raw = _opt_str(value)
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _task_draft(args: dict[str, Any]) -> TaskDraft:
    title = _opt_str(args.get("title"))
    if title is None:
        raise UpstreamUnavailable("Assistant returned a task without a title")
    return TaskDraft(
        title=title,
        description=_opt_str(args.get("description")),
        priority=_priority(args.get("priority")),
        category=_opt_str(args.get("category")),
        due_date=_parse_due(args.get("due_date")),
        estimated_time=_opt_minutes(args.get("estimated_time")),
    )


def _decomposition(args: dict[str, Any]) -> Decomposition:
    raw_subtasks = args.get("subtasks")
    if not isinstance(raw_subtasks, list):
        raise UpstreamUnavailable("Assistant returned no subtasks")
    subtasks: list[SubtaskDraft] = []
    for item in raw_subtasks:
        if not isinstance(item, dict):
            continue
        title = _opt_str(item.get("title"))
        if title is None:
            continue
        subtasks.append(
            SubtaskDraft(
                title=title,
                description=_opt_str(item.get("description")),
                priority=_priority(item.get("priority")),
                estimated_time=_opt_minutes(item.get("estimated_time")),
            )
        )
    return Decomposition(subtasks=tuple(subtasks), explanation=_opt_str(args.get("explanation")))


def _task_payload(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "category": task.category,
        "due_date": task.due_date.isoformat() if task.due_date else None,
        "estimated_time": task.estimated_time,
        "created_at": task.created_at.isoformat(),
    }


class AssistantClient:
    """Chat-completions client for the hosted AI gateway."""

    def __init__(self, api_key: str, config: AssistantConfig, url: str = DEFAULT_GATEWAY_URL) -> None:
        self.api_key = api_key
        self.config = config
        self.url = url

    def build_payload(
        self,
        messages: list[dict[str, str]],
        mode: str,
        open_tasks: list[Task] | None = None,
    ) -> dict[str, Any]:
        if mode not in MODES:
            raise ValidationError(f"Unknown assistant mode: {mode}")
        turns = [m for m in messages if m.get("role") in {"user", "assistant"} and m.get("content")]
        if not turns:
            raise ValidationError("At least one message is required")

        system_prompt = self.config.system_prompt
        if mode == "prioritize":
            tasks_json = json.dumps([_task_payload(t) for t in (open_tasks or [])], ensure_ascii=False)
            system_prompt = self.config.prioritize_prompt.replace("{tasks}", tasks_json)

        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": [{"role": "system", "content": system_prompt}, *turns],
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if mode == "create_task":
            payload["tools"] = [CREATE_TASK_TOOL]
            payload["tool_choice"] = {"type": "function", "function": {"name": "create_task"}}
        elif mode == "decompose":
            payload["tools"] = [DECOMPOSE_TOOL]
            payload["tool_choice"] = {"type": "function", "function": {"name": "decompose_task"}}
        return payload

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.config.timeout_seconds) as client:
                resp = client.post(self.url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Assistant gateway unreachable: %s", exc)
            raise UpstreamUnavailable("AI gateway error") from exc

        if resp.status_code == 429:
            raise RateLimited("Rate limits exceeded, please try again later.")
        if resp.status_code == 402:
            raise PaymentRequired("Payment required, please add funds to your AI workspace.")
        if resp.status_code >= 400:
            logger.error("Assistant gateway error: %s %s", resp.status_code, resp.text[:500])
            raise UpstreamUnavailable("AI gateway error")
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable("AI gateway returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise UpstreamUnavailable("AI gateway returned invalid JSON")
        return data

    def send(
        self,
        messages: list[dict[str, str]],
        mode: str,
        user_id: str,
        open_tasks: list[Task] | None = None,
    ) -> AssistantReply:
        payload = self.build_payload(messages, mode, open_tasks=open_tasks)
        logger.info("Assistant request user=%s mode=%s turns=%s", user_id, mode, len(payload["messages"]) - 1)
        data = self._post(payload)

        if mode == "create_task":
            args = _extract_tool_arguments(data, "create_task")
            if args is None:
                raise UpstreamUnavailable("Assistant did not return a task")
            return AssistantReply(mode=mode, model_id=self.config.model, task=_task_draft(args), raw=data)
        if mode == "decompose":
            args = _extract_tool_arguments(data, "decompose_task")
            if args is None:
                raise UpstreamUnavailable("Assistant did not return subtasks")
            return AssistantReply(mode=mode, model_id=self.config.model, decomposition=_decomposition(args), raw=data)

        text = _extract_text(data)
        if not text:
            raise UpstreamUnavailable("Assistant returned an empty reply")
        return AssistantReply(mode=mode, model_id=self.config.model, text=text, raw=data)
