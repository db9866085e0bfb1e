"""Tests for denial classification and the resolution workflow."""
from datetime import date, timedelta

import pytest

from app.models.database import (
    Denial,
    DenialCategory,
    DenialPriority,
    ResolutionStatus,
    UserRole,
)
from app.services.denials.classifier import (
    classify_category,
    classify_priority,
    derive_denial_terms,
)
from app.services.denials.workflow import DenialWorkflow
from app.utils.errors import ForbiddenRoleError, NotFoundError, StateConflictError, ValidationError
from tests.factories import (
    ClaimFactory,
    DenialFactory,
    RemittanceClaimDetailFactory,
    SystemSettingFactory,
    UserFactory,
)


@pytest.mark.unit
class TestClassifier:
    @pytest.mark.parametrize(
        "code, expected",
        [
            ("16", DenialCategory.TECHNICAL),
            ("26", DenialCategory.TECHNICAL),
            ("11", DenialCategory.CLINICAL),
            ("15", DenialCategory.CLINICAL),
            ("52", DenialCategory.AUTHORIZATION),
            ("56", DenialCategory.AUTHORIZATION),
            ("29", DenialCategory.ELIGIBILITY),
            ("31", DenialCategory.ELIGIBILITY),
            ("4", DenialCategory.OTHER),
            ("", DenialCategory.OTHER),
        ],
    )
    def test_category(self, code, expected):
        assert classify_category(code) == expected

    def test_shared_code_resolves_to_first_table(self):
        # "27" is listed under both technical and eligibility
        assert classify_category("27") == DenialCategory.TECHNICAL

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("16", DenialPriority.URGENT),
            ("18", DenialPriority.URGENT),
            ("11", DenialPriority.HIGH),
            ("29", DenialPriority.HIGH),
            ("52", DenialPriority.MEDIUM),
            ("4", DenialPriority.MEDIUM),
        ],
    )
    def test_priority(self, code, expected):
        assert classify_priority(code) == expected

    def test_deadlines(self):
        terms = derive_denial_terms("4", date(2024, 1, 31))

        assert terms.appeal_deadline == date(2024, 4, 30)
        assert terms.follow_up_date == date(2024, 2, 14)

    def test_custom_windows(self):
        terms = derive_denial_terms("4", date(2024, 1, 1), appeal_window_days=30, follow_up_days=7)

        assert terms.appeal_deadline == date(2024, 1, 31)
        assert terms.follow_up_date == date(2024, 1, 8)


@pytest.mark.unit
class TestCreateFromRemittance:
    def test_creates_open_denial(self, db_session):
        claim = ClaimFactory()
        detail = RemittanceClaimDetailFactory(claim_number=claim.claim_number, claim_status_code="4")

        denial = DenialWorkflow(db_session).create_from_remittance(claim.id, detail, denial_date=date(2024, 3, 1))
        db_session.commit()

        assert denial.resolution_status == ResolutionStatus.OPEN
        assert denial.denial_reason_code == "4"
        assert denial.denial_reason_description == "Denied"
        assert denial.remittance_claim_detail_id == detail.id
        assert denial.follow_up_date == date(2024, 3, 15)
        assert denial.appeal_deadline == date(2024, 5, 30)
        assert denial.assigned_to is None

    def test_defaults_to_today(self, db_session):
        claim = ClaimFactory()
        detail = RemittanceClaimDetailFactory(claim_status_code="4")

        denial = DenialWorkflow(db_session).create_from_remittance(claim.id, detail)

        assert denial.denial_date == date.today()
        assert denial.follow_up_date == date.today() + timedelta(days=14)

    def test_follow_up_window_override(self, db_session):
        SystemSettingFactory(setting_key="denial_follow_up_days", setting_value="7")
        claim = ClaimFactory()
        detail = RemittanceClaimDetailFactory(claim_status_code="4")

        denial = DenialWorkflow(db_session).create_from_remittance(claim.id, detail, denial_date=date(2024, 3, 1))

        assert denial.follow_up_date == date(2024, 3, 8)
        assert denial.appeal_deadline == date(2024, 5, 30)


@pytest.mark.unit
class TestAssign:
    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.MANAGER, UserRole.BILLER, UserRole.COLLECTOR])
    def test_assign_moves_to_in_progress(self, db_session, role):
        denial = DenialFactory()
        user = UserFactory(role=role)

        result = DenialWorkflow(db_session).assign(denial.id, user.id)

        assert result.assigned_to == user.id
        assert result.resolution_status == ResolutionStatus.IN_PROGRESS

    def test_viewer_cannot_be_assigned(self, db_session):
        denial = DenialFactory()
        viewer = UserFactory(role=UserRole.VIEWER)

        with pytest.raises(ForbiddenRoleError) as exc_info:
            DenialWorkflow(db_session).assign(denial.id, viewer.id)

        assert exc_info.value.code == "FORBIDDEN_ROLE"
        assert isinstance(exc_info.value, StateConflictError)
        db_session.refresh(denial)
        assert denial.assigned_to is None
        assert denial.resolution_status == ResolutionStatus.OPEN

    def test_unknown_user(self, db_session):
        denial = DenialFactory()

        with pytest.raises(NotFoundError):
            DenialWorkflow(db_session).assign(denial.id, 4040)

    def test_inactive_user(self, db_session):
        denial = DenialFactory()
        user = UserFactory(is_active=False)

        with pytest.raises(NotFoundError):
            DenialWorkflow(db_session).assign(denial.id, user.id)

    def test_unknown_denial(self, db_session):
        user = UserFactory()

        with pytest.raises(NotFoundError):
            DenialWorkflow(db_session).assign(4040, user.id)

    def test_closed_denial_cannot_be_assigned(self, db_session):
        denial = DenialFactory(resolution_status=ResolutionStatus.WRITTEN_OFF)
        user = UserFactory()

        with pytest.raises(StateConflictError):
            DenialWorkflow(db_session).assign(denial.id, user.id)


@pytest.mark.unit
class TestUpdate:
    def test_resolution_date_set_on_first_resolve(self, db_session):
        denial = DenialFactory(resolution_status=ResolutionStatus.IN_PROGRESS)

        result = DenialWorkflow(db_session).update(
            denial.id, {"resolution_status": "RESOLVED", "resolution_notes": "Paid on resubmission"}
        )

        assert result.resolution_status == ResolutionStatus.RESOLVED
        assert result.resolution_date == date.today()
        assert result.resolution_notes == "Paid on resubmission"

    def test_resolution_date_set_only_once(self, db_session):
        original = date(2024, 1, 5)
        denial = DenialFactory(resolution_status=ResolutionStatus.RESOLVED, resolution_date=original)
        workflow = DenialWorkflow(db_session)

        workflow.update(denial.id, {"resolution_status": "APPEALED"})
        result = workflow.update(denial.id, {"resolution_status": "RESOLVED"})

        assert result.resolution_date == original

    @pytest.mark.parametrize(
        "target",
        [ResolutionStatus.APPEALED, ResolutionStatus.CORRECTED, ResolutionStatus.WRITTEN_OFF],
    )
    def test_other_outcomes_leave_resolution_date_empty(self, db_session, target):
        denial = DenialFactory(resolution_status=ResolutionStatus.IN_PROGRESS)

        result = DenialWorkflow(db_session).update(denial.id, {"resolution_status": target})

        assert result.resolution_status == target
        assert result.resolution_date is None

    def test_reassign_through_update_checks_role(self, db_session):
        denial = DenialFactory()
        viewer = UserFactory(role=UserRole.VIEWER)

        with pytest.raises(ForbiddenRoleError):
            DenialWorkflow(db_session).update(denial.id, {"assigned_to": viewer.id})

    def test_unknown_status_rejected(self, db_session):
        denial = DenialFactory()

        with pytest.raises(ValidationError):
            DenialWorkflow(db_session).update(denial.id, {"resolution_status": "FORGOTTEN"})

    @pytest.mark.parametrize("target", [ResolutionStatus.OPEN, ResolutionStatus.IN_PROGRESS])
    def test_resolved_denial_cannot_be_reopened(self, db_session, target):
        original = date(2024, 1, 5)
        denial = DenialFactory(resolution_status=ResolutionStatus.RESOLVED, resolution_date=original)

        with pytest.raises(ValidationError):
            DenialWorkflow(db_session).update(denial.id, {"resolution_status": target})

        db_session.expire_all()
        assert denial.resolution_status == ResolutionStatus.RESOLVED
        assert denial.resolution_date == original

    def test_update_missing_denial(self, db_session):
        with pytest.raises(NotFoundError):
            DenialWorkflow(db_session).update(999, {"resolution_notes": "x"})


@pytest.mark.unit
class TestBulkAssign:
    def test_items_are_isolated(self, db_session):
        open_denial = DenialFactory()
        closed_denial = DenialFactory(resolution_status=ResolutionStatus.RESOLVED)
        other_open = DenialFactory()
        user = UserFactory(role=UserRole.COLLECTOR)

        result = DenialWorkflow(db_session).bulk_assign(
            [open_denial.id, 9999, closed_denial.id, other_open.id], user.id
        )

        assert result["total"] == 4
        assert result["successful"] == 2
        assert result["failed"] == 2
        outcomes = {r["denial_id"]: r for r in result["results"]}
        assert outcomes[9999]["error"] == "NOT_FOUND"
        assert outcomes[closed_denial.id]["error"] == "STATE_CONFLICT"
        for denial in (open_denial, other_open):
            db_session.refresh(denial)
            assert denial.assigned_to == user.id
            assert denial.resolution_status == ResolutionStatus.IN_PROGRESS

    def test_forbidden_assignee_fails_whole_batch(self, db_session):
        denial = DenialFactory()
        viewer = UserFactory(role=UserRole.VIEWER)

        with pytest.raises(ForbiddenRoleError):
            DenialWorkflow(db_session).bulk_assign([denial.id], viewer.id)


@pytest.mark.unit
def test_list_filters(db_session):
    user = UserFactory()
    DenialFactory(category=DenialCategory.TECHNICAL, priority=DenialPriority.URGENT)
    DenialFactory(category=DenialCategory.CLINICAL, assigned_to=user.id,
                  resolution_status=ResolutionStatus.IN_PROGRESS)
    workflow = DenialWorkflow(db_session)

    assert len(workflow.list_denials()) == 2
    assert len(workflow.list_denials(category=DenialCategory.TECHNICAL)) == 1
    assert len(workflow.list_denials(priority=DenialPriority.URGENT)) == 1
    assert len(workflow.list_denials(assigned_to=user.id)) == 1
    assert len(workflow.list_denials(resolution_status=ResolutionStatus.OPEN)) == 1
    assert db_session.query(Denial).count() == 2
