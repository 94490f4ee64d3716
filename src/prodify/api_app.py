from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from prodify import service, shop, social
from prodify.assistant import AssistantClient
from prodify.assistant_config import load_assistant_config
from prodify.config import Settings, load_settings
from prodify.db import Database, Ledger, Task
from prodify.errors import ProdifyError, UpstreamUnavailable
from prodify.logging_setup import setup_logging
from prodify.processor import EventProcessor
from prodify.quests import claim_quest, evaluate_daily_quests, list_quest_progress
from prodify.rewards import AppliedDelta, level_progress
from prodify.stats import compute_overview, focus_minutes_by_day
from prodify.time_utils import now_local

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[str, int] = {
    "ledger_not_found": 404,
    "conflict": 409,
    "duplicate_event": 409,
    "insufficient_funds": 422,
    "already_owned": 409,
    "validation_error": 422,
    "upstream_unavailable": 503,
    "rate_limited": 429,
    "payment_required": 402,
}


def _require_auth(request: Request, token: str | None) -> None:
    if not token:
        return
    header = request.headers.get("x-api-token")
    if header == token:
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


def _ledger_payload(ledger: Ledger) -> dict[str, Any]:
    lp = level_progress(ledger.xp)
    return {
        "user_id": ledger.user_id,
        "xp": ledger.xp,
        "level": ledger.level,
        "xp_current_level": lp.current_level_xp,
        "xp_next_level": lp.next_level_xp,
        "gems": ledger.gems,
        "current_streak": ledger.current_streak,
        "last_activity_date": ledger.last_activity_date.isoformat() if ledger.last_activity_date else None,
        "total_focus_time": ledger.total_focus_time,
        "total_tasks_completed": ledger.total_tasks_completed,
        "purchased_items": sorted(ledger.purchased_items),
        "version": ledger.version,
    }


def _delta_payload(delta: AppliedDelta) -> dict[str, Any]:
    payload = asdict(delta)
    payload["leveled_up"] = delta.leveled_up
    return payload


def _outcome_payload(outcome: service.RewardOutcome) -> dict[str, Any]:
    return {
        "delta": _delta_payload(outcome.delta),
        "quests_completed": [asdict(q) for q in outcome.quests_completed],
    }


def _task_payload(task: Task) -> dict[str, Any]:
    return asdict(task)


class TaskCreateRequest(BaseModel):
    title: str
    description: str | None = None
    priority: str | None = None
    category: str | None = None
    due_date: datetime | None = None
    estimated_time: int | None = None


class FocusStartRequest(BaseModel):
    duration_minutes: int = 25


class PurchaseRequest(BaseModel):
    item: str


class UsernameRequest(BaseModel):
    username: str


class FriendRequestCreate(BaseModel):
    username: str


class StudySessionCreate(BaseModel):
    name: str
    invite_friend_id: str | None = None


class StudyInviteRequest(BaseModel):
    friend_id: str


class StudyMessageCreate(BaseModel):
    content: str


class ChatMessage(BaseModel):
    role: str
    content: str


class AssistantRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)
    mode: str = "chat"


def build_assistant(settings: Settings) -> AssistantClient | None:
    if not settings.ai_gateway_api_key:
        return None
    config = load_assistant_config(settings.ai_config_path, model_override=settings.ai_model)
    return AssistantClient(settings.ai_gateway_api_key, config, url=settings.ai_gateway_url)


def build_api_app(
    db: Database,
    settings: Settings,
    assistant: AssistantClient | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    app = FastAPI(title="Prodify API", version="1.0.0")
    processor = EventProcessor(db)
    token = settings.api_token

    def now() -> datetime:
        return clock() if clock is not None else now_local(settings.tz)

    @app.exception_handler(ProdifyError)
    async def prodify_error_handler(request: Request, exc: ProdifyError) -> JSONResponse:
        status = ERROR_STATUS.get(exc.kind, 500)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=status,
            content={"error": exc.kind, "message": exc.message, "retryable": exc.retryable},
        )

    @app.post("/api/users/{user_id}/ledger")
    async def api_provision(user_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        ledger = service.provision_user(db, user_id, now())
        return {"ledger": _ledger_payload(ledger)}

    @app.get("/api/users/{user_id}/ledger")
    async def api_ledger(user_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return {"ledger": _ledger_payload(db.get_ledger(user_id))}

    @app.get("/api/users/{user_id}/overview")
    async def api_overview(user_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return {"overview": asdict(compute_overview(db, user_id, now()))}

    @app.get("/api/users/{user_id}/focus-by-day")
    async def api_focus_by_day(user_id: str, request: Request, days: int = 7) -> dict[str, Any]:
        _require_auth(request, token)
        totals = focus_minutes_by_day(db, user_id, now(), days=days)
        return {"days": [{"date": d.isoformat(), "minutes": m} for d, m in totals.items()]}

    @app.get("/api/users/{user_id}/tasks")
    async def api_tasks(user_id: str, request: Request, open_only: bool = False) -> dict[str, Any]:
        _require_auth(request, token)
        return {"tasks": [_task_payload(t) for t in db.list_tasks(user_id, open_only=open_only)]}

    @app.post("/api/users/{user_id}/tasks")
    async def api_create_task(user_id: str, request: Request, payload: TaskCreateRequest) -> dict[str, Any]:
        _require_auth(request, token)
        db.get_ledger(user_id)
        task = service.create_task(
            db,
            user_id,
            payload.title,
            now(),
            description=payload.description,
            priority=payload.priority,
            category=payload.category,
            due_date=payload.due_date,
            estimated_time=payload.estimated_time,
        )
        return {"task": _task_payload(task)}

    @app.post("/api/users/{user_id}/tasks/{task_id}/complete")
    async def api_complete_task(user_id: str, task_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return _outcome_payload(service.complete_task(db, processor, user_id, task_id, now()))

    @app.post("/api/users/{user_id}/tasks/{task_id}/reopen")
    async def api_reopen_task(user_id: str, task_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return {"task": _task_payload(service.reopen_task(db, user_id, task_id, now()))}

    @app.delete("/api/users/{user_id}/tasks/{task_id}")
    async def api_delete_task(user_id: str, task_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        service.delete_task(db, user_id, task_id)
        return {"ok": True}

    @app.post("/api/users/{user_id}/focus-sessions")
    async def api_start_focus(user_id: str, request: Request, payload: FocusStartRequest) -> dict[str, Any]:
        _require_auth(request, token)
        session = service.start_focus_session(db, user_id, payload.duration_minutes, now())
        return {"session": asdict(session)}

    @app.post("/api/users/{user_id}/focus-sessions/{session_id}/complete")
    async def api_complete_focus(user_id: str, session_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return _outcome_payload(service.complete_focus_session(db, processor, user_id, session_id, now()))

    @app.get("/api/users/{user_id}/quests")
    async def api_quests(user_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        rows = []
        for progress in list_quest_progress(db, user_id, now()):
            item = asdict(progress.quest)
            item.update(current=progress.current, target=progress.target, unit=progress.unit)
            rows.append(item)
        return {"quests": rows}

    @app.post("/api/users/{user_id}/quests/evaluate")
    async def api_evaluate_quests(user_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        completed = evaluate_daily_quests(db, processor, user_id, now())
        return {"quests_completed": [asdict(q) for q in completed]}

    @app.post("/api/users/{user_id}/quests/{quest_id}/claim")
    async def api_claim_quest(user_id: str, quest_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return {"quest": asdict(claim_quest(db, processor, user_id, quest_id, now()))}

    @app.get("/api/store")
    async def api_store(request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return {"items": [asdict(item) for item in shop.list_store_items()]}

    @app.post("/api/users/{user_id}/purchases")
    async def api_purchase(user_id: str, request: Request, payload: PurchaseRequest) -> dict[str, Any]:
        _require_auth(request, token)
        delta = shop.purchase_item(processor, user_id, payload.item, now())
        return {"delta": _delta_payload(delta)}

    @app.put("/api/users/{user_id}/profile")
    async def api_set_username(user_id: str, request: Request, payload: UsernameRequest) -> dict[str, Any]:
        _require_auth(request, token)
        return {"profile": asdict(social.update_username(db, user_id, payload.username, now()))}

    @app.get("/api/users/{user_id}/friends")
    async def api_friends(user_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return {
            "friends": db.list_friend_ids(user_id),
            "incoming": [asdict(r) for r in db.list_incoming_requests(user_id)],
            "outgoing": [asdict(r) for r in db.list_outgoing_requests(user_id)],
        }

    @app.post("/api/users/{user_id}/friend-requests")
    async def api_send_friend_request(user_id: str, request: Request, payload: FriendRequestCreate) -> dict[str, Any]:
        _require_auth(request, token)
        return {"request": asdict(social.send_friend_request(db, user_id, payload.username, now()))}

    @app.post("/api/users/{user_id}/friend-requests/{request_id}/accept")
    async def api_accept_friend(user_id: str, request_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        social.accept_friend_request(db, user_id, request_id, now())
        return {"ok": True}

    @app.post("/api/users/{user_id}/friend-requests/{request_id}/reject")
    async def api_reject_friend(user_id: str, request_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        social.reject_friend_request(db, user_id, request_id, now())
        return {"ok": True}

    @app.delete("/api/users/{user_id}/friends/{friend_id}")
    async def api_remove_friend(user_id: str, friend_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        social.remove_friend(db, user_id, friend_id)
        return {"ok": True}

    @app.post("/api/users/{user_id}/study-sessions")
    async def api_create_study(user_id: str, request: Request, payload: StudySessionCreate) -> dict[str, Any]:
        _require_auth(request, token)
        session = social.create_study_session(db, user_id, payload.name, now(), payload.invite_friend_id)
        return {"session": asdict(session)}

    @app.get("/api/users/{user_id}/study-sessions/active")
    async def api_active_study(user_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        return {"session_id": db.active_study_session_id(user_id)}

    @app.post("/api/users/{user_id}/study-sessions/{session_id}/join")
    async def api_join_study(user_id: str, session_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        social.join_study_session(db, user_id, session_id, now())
        return {"ok": True}

    @app.post("/api/users/{user_id}/study-sessions/{session_id}/leave")
    async def api_leave_study(user_id: str, session_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, token)
        social.leave_study_session(db, user_id, session_id, now())
        return {"ok": True}

    @app.post("/api/users/{user_id}/study-sessions/{session_id}/invite")
    async def api_invite_study(
        user_id: str, session_id: int, request: Request, payload: StudyInviteRequest
    ) -> dict[str, Any]:
        _require_auth(request, token)
        social.invite_to_study_session(db, user_id, session_id, payload.friend_id, now())
        return {"ok": True}

    @app.get("/api/users/{user_id}/study-sessions/{session_id}/messages")
    async def api_study_messages(user_id: str, session_id: int, request: Request, limit: int = 100) -> dict[str, Any]:
        _require_auth(request, token)
        messages = social.list_study_messages(db, user_id, session_id, limit=limit)
        return {"messages": [asdict(m) for m in messages]}

    @app.post("/api/users/{user_id}/study-sessions/{session_id}/messages")
    async def api_post_study_message(
        user_id: str, session_id: int, request: Request, payload: StudyMessageCreate
    ) -> dict[str, Any]:
        _require_auth(request, token)
        message = social.post_study_message(db, user_id, session_id, payload.content, now())
        return {"message": asdict(message)}

    @app.post("/api/users/{user_id}/assistant")
    def api_assistant(user_id: str, request: Request, payload: AssistantRequest) -> dict[str, Any]:
        _require_auth(request, token)
        if assistant is None:
            raise UpstreamUnavailable("Assistant is not configured")
        outcome = service.ask_assistant(
            db,
            assistant,
            user_id,
            [m.model_dump() for m in payload.messages],
            payload.mode,
            now(),
        )
        reply = outcome.reply
        return {
            "mode": reply.mode,
            "text": reply.text,
            "task": _task_payload(outcome.created_task) if outcome.created_task else None,
            "decomposition": asdict(reply.decomposition) if reply.decomposition else None,
        }

    return app


def run_api() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    db = Database(settings.database_path)
    app = build_api_app(db, settings, assistant=build_assistant(settings))
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
