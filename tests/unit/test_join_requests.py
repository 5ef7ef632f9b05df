"""
Unit tests for the join request repository and the approval transition.
"""
import uuid

import pytest
from sqlalchemy.exc import IntegrityError, NoResultFound

from fakebusters.audit import AuditAction
from fakebusters.db import models
from fakebusters.db.repositories import audits as repo_audits
from fakebusters.db.repositories import join_requests as repo_requests
from fakebusters.db.results import BASE_ERROR_KEY
from fakebusters.errors import JoinRequestApprovalError
from fakebusters.utils.feature_flags import refresh_feature_flag_cache
from fakebusters.utils.roles import BoardRole


@pytest.fixture
def board(board_factory):
    return board_factory()


@pytest.fixture
def applicant(user_factory):
    return user_factory("applicant@example.com")


@pytest.fixture
def pending(db_session, board, applicant):
    return repo_requests.create_join_request(
        db_session,
        {"motivation": "please", "preferred_role": 1, "user_id": applicant.id, "board_id": board.id},
    ).unwrap()


class TestJoinRequestCrud:

    def test_create_join_request(self, pending, board, applicant):
        assert pending.motivation == "please"
        assert pending.preferred_role == BoardRole.JUROR
        assert pending.board_id == board.id
        assert pending.user_id == applicant.id

    def test_create_join_request_requires_fields(self, db_session):
        result = repo_requests.create_join_request(db_session, {"motivation": "", "preferred_role": None})

        assert set(result.errors) == {"motivation", "preferred_role"}
        assert db_session.query(models.JoinRequest).count() == 0

    def test_duplicate_request_is_rejected(self, db_session, pending, board, applicant):
        result = repo_requests.create_join_request(
            db_session,
            {"motivation": "again", "preferred_role": 2, "user_id": applicant.id, "board_id": board.id},
        )

        assert result.errors == {"user_id": [repo_requests.DUPLICATE_REQUEST_MESSAGE]}
        assert db_session.query(models.JoinRequest).count() == 1

    def test_list_and_get(self, db_session, pending):
        assert [jr.id for jr in repo_requests.list_join_requests(db_session)] == [pending.id]
        assert repo_requests.get_join_request_strict(db_session, pending.id).id == pending.id
        assert repo_requests.get_join_request(db_session, uuid.uuid4()) is None
        with pytest.raises(NoResultFound):
            repo_requests.get_join_request_strict(db_session, uuid.uuid4())

    def test_already_requested(self, db_session, pending, board, applicant, user_factory, board_factory):
        assert repo_requests.already_requested(db_session, applicant, board) is True
        assert repo_requests.already_requested(db_session, user_factory(), board) is False
        assert repo_requests.already_requested(db_session, applicant, board_factory()) is False

    def test_list_for_board(self, db_session, pending, board, board_factory, user_factory, join_request_factory):
        join_request_factory(board_factory(), user_factory())

        assert [jr.id for jr in repo_requests.list_for_board(db_session, board)] == [pending.id]

    def test_update_only_changes_motivation_and_role(self, db_session, pending, board, board_factory):
        other_board = board_factory()

        result = repo_requests.update_join_request(
            db_session, pending, {"motivation": "pretty please", "preferred_role": "observer", "board_id": other_board.id}
        )

        assert result.ok
        assert pending.motivation == "pretty please"
        assert pending.preferred_role == BoardRole.OBSERVER
        assert pending.board_id == board.id

    def test_update_with_invalid_data(self, db_session, pending):
        result = repo_requests.update_join_request(db_session, pending, {"motivation": None})

        assert "motivation" in result.errors
        db_session.expire_all()
        assert repo_requests.get_join_request_strict(db_session, pending.id).motivation == "please"

    def test_withdraw_deletes_without_membership(self, db_session, pending):
        request_id = pending.id

        result = repo_requests.delete_join_request(db_session, pending)

        assert result.ok
        assert repo_requests.get_join_request(db_session, request_id) is None
        assert db_session.query(models.BoardMember).count() == 0
        logs = repo_audits.get_audit_logs(db_session, target_id=request_id)
        assert [row.action_type for row in logs] == [AuditAction.JOIN_REQUEST_WITHDRAW.value]

    def test_withdraw_twice_returns_failure(self, db_session, pending):
        request_id = pending.id
        assert repo_requests.delete_join_request(db_session, pending).ok

        result = repo_requests.delete_join_request(db_session, pending)

        assert result.errors == {BASE_ERROR_KEY: [repo_requests.STALE_REQUEST_MESSAGE]}
        logs = repo_audits.get_audit_logs(db_session, target_id=request_id)
        assert len(logs) == 1

    def test_withdraw_after_approval_returns_failure(self, db_session, pending, board, applicant):
        request_id = pending.id
        repo_requests.approve_join_request(
            db_session, {"user_id": applicant.id, "board_id": board.id, "role": 1}
        )

        result = repo_requests.delete_join_request(db_session, pending)

        assert not result.ok
        assert result.errors == {BASE_ERROR_KEY: [repo_requests.STALE_REQUEST_MESSAGE]}
        assert db_session.query(models.BoardMember).count() == 1
        actions = [row.action_type for row in repo_audits.get_audit_logs(db_session, target_id=request_id)]
        assert actions == [AuditAction.JOIN_REQUEST_APPROVE.value]


class TestApproveJoinRequest:

    def test_approve_turns_request_into_membership(self, db_session, board_repo, pending, board, applicant):
        request_id = pending.id

        result = repo_requests.approve_join_request(
            db_session, {"user_id": applicant.id, "board_id": board.id, "role": 1}
        )

        assert result.ok
        member = result.value
        assert member.board_id == board.id
        assert member.user_id == applicant.id
        assert member.role == BoardRole.JUROR
        assert repo_requests.get_join_request(db_session, request_id) is None
        assert board_repo.is_member(board, applicant) is True
        assert board_repo.role(board, applicant) is BoardRole.JUROR

    def test_approve_is_audited_separately_from_withdrawal(self, db_session, pending, board, applicant, judge_user):
        repo_requests.approve_join_request(
            db_session,
            {"user_id": applicant.id, "board_id": board.id, "role": BoardRole.JUROR},
            actor_user_id=judge_user.id,
        )

        logs = repo_audits.get_audit_logs(db_session, board_id=board.id)
        assert len(logs) == 1
        assert logs[0].action_type == AuditAction.JOIN_REQUEST_APPROVE.value
        assert logs[0].target_id == pending.id
        assert logs[0].actor_user_id == judge_user.id
        assert logs[0].metadata_json["role"] == 1

    def test_approve_without_pending_request_fails(self, db_session, board, applicant):
        with pytest.raises(JoinRequestApprovalError) as exc_info:
            repo_requests.approve_join_request(
                db_session, {"user_id": applicant.id, "board_id": board.id, "role": 1}
            )

        assert exc_info.value.matched == 0
        assert exc_info.value.user_id == applicant.id
        assert db_session.query(models.BoardMember).count() == 0

    def test_approve_for_other_board_leaves_request(self, db_session, pending, applicant, board_factory):
        other_board = board_factory()

        with pytest.raises(JoinRequestApprovalError):
            repo_requests.approve_join_request(
                db_session, {"user_id": applicant.id, "board_id": other_board.id, "role": 1}
            )

        assert repo_requests.get_join_request(db_session, pending.id) is not None
        assert db_session.query(models.BoardMember).count() == 0

    def test_approve_with_invalid_attrs_returns_errors(self, db_session, pending, board, applicant):
        result = repo_requests.approve_join_request(db_session, {"user_id": applicant.id, "board_id": board.id})

        assert result.errors == {"role": ["Field required"]}
        assert repo_requests.get_join_request(db_session, pending.id) is not None
        assert db_session.query(models.BoardMember).count() == 0

    def test_approve_existing_member_rolls_back(self, db_session, pending, board, applicant, membership_factory):
        membership_factory(board, applicant, role=BoardRole.OBSERVER)

        with pytest.raises(IntegrityError):
            repo_requests.approve_join_request(
                db_session, {"user_id": applicant.id, "board_id": board.id, "role": 1}
            )

        assert repo_requests.get_join_request(db_session, pending.id) is not None
        assert db_session.query(models.BoardMember).count() == 1
        assert repo_audits.get_audit_logs(db_session, board_id=board.id) == []

    def test_second_approval_fails(self, db_session, pending, board, applicant):
        attrs = {"user_id": applicant.id, "board_id": board.id, "role": 1}
        repo_requests.approve_join_request(db_session, attrs)

        with pytest.raises(JoinRequestApprovalError):
            repo_requests.approve_join_request(db_session, attrs)

        assert db_session.query(models.BoardMember).count() == 1

    def test_approve_without_audit_trail(self, db_session, pending, board, applicant, monkeypatch):
        monkeypatch.setenv("AUDIT_TRAIL_ENABLED", "false")
        refresh_feature_flag_cache()

        result = repo_requests.approve_join_request(
            db_session, {"user_id": applicant.id, "board_id": board.id, "role": 1}
        )

        assert result.ok
        assert repo_audits.get_audit_logs(db_session) == []


@pytest.fixture
def judge_user(user_factory):
    return user_factory("judge@example.com")
