from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from prodify import service, social
from prodify.db import Database
from prodify.errors import ValidationError


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _users(tmp_path) -> Database:
    db = Database(tmp_path / "app.db")
    now = _dt(2026, 3, 2, 8)
    for user_id, name in (("u1", "alice"), ("u2", "bob_42"), ("u3", "carol")):
        service.provision_user(db, user_id, now)
        social.update_username(db, user_id, name, now)
    return db


def _befriend(db: Database, a: str, b_name: str, b: str) -> None:
    request = social.send_friend_request(db, a, b_name, _dt(2026, 3, 2, 9))
    social.accept_friend_request(db, b, request.id, _dt(2026, 3, 2, 9, 5))


@pytest.mark.parametrize("name", ["ab", "x" * 21, "bad name", "dash-name", ""])
def test_invalid_usernames(name: str) -> None:
    with pytest.raises(ValidationError):
        social.validate_username(name)


def test_username_must_be_unique(tmp_path) -> None:
    db = _users(tmp_path)
    with pytest.raises(ValidationError, match="already taken"):
        social.update_username(db, "u3", "alice", _dt(2026, 3, 2))
    assert db.get_profile("u3").username == "carol"


def test_friend_request_lifecycle(tmp_path) -> None:
    db = _users(tmp_path)
    request = social.send_friend_request(db, "u1", "BOB_42", _dt(2026, 3, 2, 9))
    assert request.receiver_id == "u2"
    assert [r.id for r in db.list_incoming_requests("u2")] == [request.id]

    with pytest.raises(ValidationError):
        social.send_friend_request(db, "u2", "alice", _dt(2026, 3, 2, 9, 1))
    with pytest.raises(ValidationError):
        social.accept_friend_request(db, "u1", request.id, _dt(2026, 3, 2, 9, 2))

    social.accept_friend_request(db, "u2", request.id, _dt(2026, 3, 2, 9, 3))
    assert db.are_friends("u1", "u2")
    assert db.list_friend_ids("u2") == ["u1"]
    with pytest.raises(ValidationError, match="already friends"):
        social.send_friend_request(db, "u1", "bob_42", _dt(2026, 3, 2, 9, 4))

    social.remove_friend(db, "u2", "u1")
    assert not db.are_friends("u1", "u2")
    with pytest.raises(ValidationError):
        social.remove_friend(db, "u2", "u1")


def test_friend_request_rejections(tmp_path) -> None:
    db = _users(tmp_path)
    with pytest.raises(ValidationError):
        social.send_friend_request(db, "u1", "alice", _dt(2026, 3, 2))
    with pytest.raises(ValidationError):
        social.send_friend_request(db, "u1", "nobody", _dt(2026, 3, 2))

    request = social.send_friend_request(db, "u1", "carol", _dt(2026, 3, 2))
    social.reject_friend_request(db, "u3", request.id, _dt(2026, 3, 2, 11))
    assert not db.are_friends("u1", "u3")
    assert db.list_incoming_requests("u3") == []


def test_study_session_messages(tmp_path) -> None:
    db = _users(tmp_path)
    _befriend(db, "u1", "bob_42", "u2")

    session = social.create_study_session(db, "u1", " Exam prep ", _dt(2026, 3, 2, 10), invite_friend_id="u2")
    assert session.name == "Exam prep"
    assert db.active_study_session_id("u2") == session.id

    social.post_study_message(db, "u1", session.id, "hi", _dt(2026, 3, 2, 10, 1))
    social.post_study_message(db, "u2", session.id, "hello", _dt(2026, 3, 2, 10, 2))
    messages = social.list_study_messages(db, "u2", session.id)
    assert [(m.user_id, m.content) for m in messages] == [("u1", "hi"), ("u2", "hello")]

    with pytest.raises(ValidationError):
        social.post_study_message(db, "u3", session.id, "let me in", _dt(2026, 3, 2, 10, 3))
    with pytest.raises(ValidationError):
        social.join_study_session(db, "u3", session.id, _dt(2026, 3, 2, 10, 3))
    with pytest.raises(ValidationError):
        social.post_study_message(db, "u1", session.id, "   ", _dt(2026, 3, 2, 10, 4))


def test_session_closes_when_everyone_leaves(tmp_path) -> None:
    db = _users(tmp_path)
    _befriend(db, "u1", "bob_42", "u2")
    session = social.create_study_session(db, "u1", "Late night", _dt(2026, 3, 2, 22))
    social.join_study_session(db, "u2", session.id, _dt(2026, 3, 2, 22, 5))

    social.leave_study_session(db, "u1", session.id, _dt(2026, 3, 2, 23))
    assert db.get_study_session(session.id).is_active is True
    social.leave_study_session(db, "u2", session.id, _dt(2026, 3, 2, 23, 5))
    assert db.get_study_session(session.id).is_active is False

    with pytest.raises(ValidationError):
        social.join_study_session(db, "u1", session.id, _dt(2026, 3, 2, 23, 10))


def test_create_session_requires_name_and_friend_invite(tmp_path) -> None:
    db = _users(tmp_path)
    with pytest.raises(ValidationError):
        social.create_study_session(db, "u1", "  ", _dt(2026, 3, 2))
    with pytest.raises(ValidationError):
        social.create_study_session(db, "u1", "Solo", _dt(2026, 3, 2), invite_friend_id="u3")


def test_username_uniqueness_ignores_case_in_storage(tmp_path) -> None:
    db = _users(tmp_path)
    assert db.set_username("u3", "ALICE") is False
    assert db.get_profile("u3").username == "carol"
    with pytest.raises(ValidationError, match="already taken"):
        social.update_username(db, "u3", "Alice", _dt(2026, 3, 2))
