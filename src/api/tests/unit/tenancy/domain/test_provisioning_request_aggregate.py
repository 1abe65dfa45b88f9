"""Unit tests for the ProvisioningRequest state machine."""

import pytest

from tenancy.domain.aggregates import ProvisioningRequest
from tenancy.domain.aggregates.provisioning_request import ALLOWED_TRANSITIONS
from tenancy.domain.exceptions import (
    InvalidStateTransitionError,
    ProvisioningRequestFinalizedError,
    SlugUnavailableError,
)
from tenancy.domain.value_objects import (
    IdempotencyKey,
    OwnerId,
    ProvisioningStatus,
    TenantId,
)


def _request() -> ProvisioningRequest:
    return ProvisioningRequest.initiate(
        idempotency_key=IdempotencyKey.from_string(
            "5e1d0c8a-41a5-4e3e-9b44-0f2a6c7d9e10"
        ),
        request_id="req-1",
        requester_id="admin-1",
        tenant_slug="acme-bistro",
        owner_email="chef@acme.test",
        request_payload={"tenant": {"slug": "acme-bistro"}},
    )


class TestTransitionTable:
    """The allowed edges of the saga."""

    def test_forward_path_allows_next_stage_or_failure(self):
        assert ALLOWED_TRANSITIONS[ProvisioningStatus.INITIATED] == {
            ProvisioningStatus.VALIDATING,
            ProvisioningStatus.FAILED,
        }
        assert ALLOWED_TRANSITIONS[ProvisioningStatus.VERIFYING] == {
            ProvisioningStatus.COMPLETED,
            ProvisioningStatus.FAILED,
        }

    def test_terminal_states_have_no_outgoing_edges(self):
        assert ALLOWED_TRANSITIONS[ProvisioningStatus.COMPLETED] == frozenset()
        assert ALLOWED_TRANSITIONS[ProvisioningStatus.ROLLED_BACK] == frozenset()

    def test_failed_can_only_roll_back(self):
        assert ALLOWED_TRANSITIONS[ProvisioningStatus.FAILED] == {
            ProvisioningStatus.ROLLING_BACK
        }
        assert ALLOWED_TRANSITIONS[ProvisioningStatus.ROLLING_BACK] == {
            ProvisioningStatus.ROLLED_BACK
        }

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(ProvisioningStatus)


class TestAdvance:
    def test_new_request_starts_initiated(self):
        request = _request()

        assert request.status is ProvisioningStatus.INITIATED
        assert request.is_terminal is False
        assert request.id.value

    def test_skipping_a_stage_is_rejected(self):
        request = _request()

        with pytest.raises(InvalidStateTransitionError):
            request.advance(ProvisioningStatus.CREATING_IDENTITY)

        assert request.status is ProvisioningStatus.INITIATED

    def test_fast_forward_walks_each_edge(self):
        request = _request()

        request.fast_forward(ProvisioningStatus.VERIFYING)

        assert request.status is ProvisioningStatus.VERIFYING

    def test_fast_forward_cannot_go_backwards(self):
        request = _request()
        request.fast_forward(ProvisioningStatus.LINKING_IDENTITY)

        with pytest.raises(InvalidStateTransitionError):
            request.fast_forward(ProvisioningStatus.VALIDATING)


class TestFinalization:
    def test_complete_stores_response_and_finalizes(self):
        request = _request()
        request.fast_forward(ProvisioningStatus.VERIFYING)

        request.complete({"tenantId": "t"})

        assert request.status is ProvisioningStatus.COMPLETED
        assert request.response_payload == {"tenantId": "t"}
        assert request.is_terminal
        assert request.succeeded

    def test_finalized_request_is_immutable(self):
        request = _request()
        request.fast_forward(ProvisioningStatus.VERIFYING)
        request.complete({"tenantId": "t"})

        with pytest.raises(ProvisioningRequestFinalizedError):
            request.record_tenant(TenantId.generate())

    def test_fail_without_compensation_finalizes_with_error_payload(self):
        request = _request()
        request.advance(ProvisioningStatus.VALIDATING)
        error = SlugUnavailableError(
            "taken", suggestion="acme-bistro-2", request_id="req-1"
        )

        request.fail(error, finalize=True)

        assert request.status is ProvisioningStatus.FAILED
        assert request.is_terminal
        assert request.error_code == "SLUG_UNAVAILABLE"
        assert request.response_payload == {
            "code": "SLUG_UNAVAILABLE",
            "message": "taken",
            "suggestion": "acme-bistro-2",
            "requestId": "req-1",
        }

    def test_fail_before_compensation_stays_mutable(self):
        request = _request()
        request.fast_forward(ProvisioningStatus.CREATING_IDENTITY)

        request.fail(SlugUnavailableError("x"), finalize=False)
        request.begin_rollback()

        assert request.status is ProvisioningStatus.ROLLING_BACK
        assert request.is_terminal is False

    def test_rollback_with_orphans_flags_compensation_incomplete(self):
        request = _request()
        request.fast_forward(ProvisioningStatus.LINKING_IDENTITY)
        request.fail(SlugUnavailableError("x"), finalize=False)
        request.begin_rollback()

        request.finish_rollback(orphaned_identity_id="idp-9")

        assert request.status is ProvisioningStatus.ROLLED_BACK
        assert request.compensation_incomplete is True
        assert request.orphaned_identity_id == "idp-9"
        assert request.is_terminal

    def test_clean_rollback_is_not_flagged(self):
        request = _request()
        request.advance(ProvisioningStatus.VALIDATING)
        request.fail(SlugUnavailableError("x"), finalize=False)
        request.begin_rollback()

        request.finish_rollback()

        assert request.compensation_incomplete is False

    def test_record_identity_marks_identity_created(self):
        request = _request()

        request.record_identity(OwnerId(value="idp-1"))

        assert request.identity_created is True
        assert request.owner_id == OwnerId(value="idp-1")


class TestPayloadMatching:
    def test_same_payload_matches(self):
        request = _request()

        assert request.matches_payload({"tenant": {"slug": "acme-bistro"}})

    def test_different_payload_does_not_match(self):
        request = _request()

        assert not request.matches_payload({"tenant": {"slug": "other"}})
