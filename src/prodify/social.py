from __future__ import annotations

import logging
import re
from datetime import datetime

from prodify.db import Database, FriendRequest, Profile, StudyMessage, StudySession
from prodify.errors import ValidationError

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
USERNAME_MIN = 3
USERNAME_MAX = 20
MAX_MESSAGE_LENGTH = 2000


def validate_username(raw: str) -> str:
    value = (raw or "").strip()
    if not value:
        raise ValidationError("Username cannot be empty")
    if len(value) < USERNAME_MIN:
        raise ValidationError(f"Username must be at least {USERNAME_MIN} characters")
    if len(value) > USERNAME_MAX:
        raise ValidationError(f"Username must be at most {USERNAME_MAX} characters")
    if not USERNAME_PATTERN.fullmatch(value):
        raise ValidationError("Username can only contain letters, numbers, and underscores")
    return value


def update_username(db: Database, user_id: str, raw: str, now: datetime) -> Profile:
    username = validate_username(raw)
    db.upsert_profile(user_id, now)
    holder = db.find_profile_by_username(username)
    if (holder is not None and holder.user_id != user_id) or not db.set_username(user_id, username):
        raise ValidationError("Username already taken")
    profile = db.get_profile(user_id)
    assert profile is not None
    return profile


def send_friend_request(db: Database, sender_id: str, username: str, now: datetime) -> FriendRequest:
    target = db.find_profile_by_username((username or "").strip())
    if target is None:
        raise ValidationError("User not found")
    if target.user_id == sender_id:
        raise ValidationError("You cannot add yourself as a friend")
    if db.are_friends(sender_id, target.user_id):
        raise ValidationError("You are already friends")
    if db.has_pending_request_between(sender_id, target.user_id):
        raise ValidationError("A friend request is already pending")
    request = db.create_friend_request(sender_id, target.user_id, now)
    logger.info("Friend request %s: %s -> %s", request.id, sender_id, target.user_id)
    return request


def _pending_for_receiver(db: Database, user_id: str, request_id: int) -> FriendRequest:
    request = db.get_friend_request(request_id)
    if request is None or request.receiver_id != user_id or request.status != "pending":
        raise ValidationError("Friend request not found")
    return request


def accept_friend_request(db: Database, user_id: str, request_id: int, now: datetime) -> None:
    _pending_for_receiver(db, user_id, request_id)
    if not db.resolve_friend_request(request_id, "accepted", now):
        raise ValidationError("Friend request not found")


def reject_friend_request(db: Database, user_id: str, request_id: int, now: datetime) -> None:
    _pending_for_receiver(db, user_id, request_id)
    if not db.resolve_friend_request(request_id, "rejected", now):
        raise ValidationError("Friend request not found")


def remove_friend(db: Database, user_id: str, friend_id: str) -> None:
    if not db.remove_friendship(user_id, friend_id):
        raise ValidationError("Not in your friends list")


def create_study_session(
    db: Database,
    host_id: str,
    name: str,
    now: datetime,
    invite_friend_id: str | None = None,
) -> StudySession:
    clean = (name or "").strip()
    if not clean:
        raise ValidationError("Please enter a session name")
    if invite_friend_id and not db.are_friends(host_id, invite_friend_id):
        raise ValidationError("You can only invite friends")
    session = db.create_study_session(host_id, clean, now)
    if invite_friend_id:
        db.add_study_participant(session.id, invite_friend_id, now)
    return session


def _active_session(db: Database, session_id: int) -> StudySession:
    session = db.get_study_session(session_id)
    if session is None or not session.is_active:
        raise ValidationError("Study session not found")
    return session


def invite_to_study_session(db: Database, user_id: str, session_id: int, friend_id: str, now: datetime) -> None:
    _active_session(db, session_id)
    if not _is_participant(db, session_id, user_id):
        raise ValidationError("Join the session before inviting friends")
    if not db.are_friends(user_id, friend_id):
        raise ValidationError("You can only invite friends")
    db.add_study_participant(session_id, friend_id, now)


def join_study_session(db: Database, user_id: str, session_id: int, now: datetime) -> None:
    session = _active_session(db, session_id)
    if session.host_id != user_id and not db.are_friends(user_id, session.host_id):
        raise ValidationError("Only friends of the host can join")
    db.add_study_participant(session_id, user_id, now)


def leave_study_session(db: Database, user_id: str, session_id: int, now: datetime) -> None:
    if not db.deactivate_study_participant(session_id, user_id, now):
        raise ValidationError("You are not in this session")


def _is_participant(db: Database, session_id: int, user_id: str) -> bool:
    return any(p.user_id == user_id for p in db.list_active_participants(session_id))


def post_study_message(db: Database, user_id: str, session_id: int, content: str, now: datetime) -> StudyMessage:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")
    _active_session(db, session_id)
    if not _is_participant(db, session_id, user_id):
        raise ValidationError("Only active participants can post")
    return db.add_study_message(session_id, user_id, text, now)


def list_study_messages(db: Database, user_id: str, session_id: int, limit: int = 100) -> list[StudyMessage]:
    _active_session(db, session_id)
    if not _is_participant(db, session_id, user_id):
        raise ValidationError("Only active participants can read messages")
    return db.list_study_messages(session_id, limit=limit)
