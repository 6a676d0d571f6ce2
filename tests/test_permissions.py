from types import SimpleNamespace

import pytest

from app.permissions import (
    Actor,
    Decision,
    can_cancel_booking,
    can_manage_webhooks,
    can_update_booking,
    can_view_booking,
    is_admin_role,
)


def booking(status="confirmed"):
    return SimpleNamespace(id="bk-1", customer_id="cust-1", provider_id="prov-1", status=status)


OWNER = Actor(user_id="cust-1", role="customer")
STRANGER = Actor(user_id="cust-2", role="customer")
PROVIDER = Actor(user_id="user-9", role="provider", provider_id="prov-1")
OTHER_PROVIDER = Actor(user_id="user-8", role="provider", provider_id="prov-2")
ADMIN = Actor(user_id="admin-1", role="partner_admin")


@pytest.mark.unit
class TestRoles:
    @pytest.mark.parametrize("role", ["root_admin", "partner_admin", "tsmart_team", "cleaning_company"])
    def test_admin_roles(self, role):
        assert is_admin_role(role)

    @pytest.mark.parametrize("role", ["customer", "provider", None, ""])
    def test_non_admin_roles(self, role):
        assert not is_admin_role(role)

    def test_role_match_is_case_insensitive(self):
        assert is_admin_role("ROOT_ADMIN")


@pytest.mark.unit
class TestViewAndCancel:
    def test_view(self):
        assert can_view_booking(OWNER, booking()) is Decision.ALLOW
        assert can_view_booking(PROVIDER, booking()) is Decision.ALLOW
        assert can_view_booking(ADMIN, booking()) is Decision.ALLOW
        assert can_view_booking(STRANGER, booking()) is Decision.DENY
        assert can_view_booking(OTHER_PROVIDER, booking()) is Decision.DENY

    def test_cancel_is_owner_or_admin_only(self):
        assert can_cancel_booking(OWNER, booking()) is Decision.ALLOW
        assert can_cancel_booking(ADMIN, booking()) is Decision.ALLOW
        assert can_cancel_booking(PROVIDER, booking()) is Decision.DENY
        assert can_cancel_booking(STRANGER, booking()) is Decision.DENY

    def test_provider_without_profile_is_not_assigned(self):
        actor = Actor(user_id="user-7", role="provider", provider_id=None)
        unassigned = SimpleNamespace(id="bk-2", customer_id="cust-1", provider_id=None, status="pending")
        assert can_view_booking(actor, unassigned) is Decision.DENY


@pytest.mark.unit
class TestUpdate:
    def test_admin_may_change_anything(self):
        changes = {"status": "completed", "total_amount": 10}
        assert can_update_booking(ADMIN, booking(), changes) is Decision.ALLOW

    def test_owner_may_cancel(self):
        assert can_update_booking(OWNER, booking(), {"status": "cancelled"}) is Decision.ALLOW

    @pytest.mark.parametrize("status", ["completed", "in-progress", "confirmed", "refunded"])
    def test_owner_may_not_set_other_statuses(self, status):
        assert can_update_booking(OWNER, booking("pending"), {"status": status}) is Decision.DENY

    @pytest.mark.parametrize("status", ["in-progress", "completed"])
    def test_assigned_provider_may_progress(self, status):
        assert can_update_booking(PROVIDER, booking(), {"status": status}) is Decision.ALLOW

    def test_assigned_provider_may_not_cancel(self):
        assert can_update_booking(PROVIDER, booking(), {"status": "cancelled"}) is Decision.DENY

    def test_unassigned_provider_denied(self):
        assert can_update_booking(OTHER_PROVIDER, booking(), {"status": "completed"}) is Decision.DENY

    def test_unchanged_status_is_allowed(self):
        changes = {"status": "confirmed", "special_instructions": "Ring twice"}
        assert can_update_booking(OWNER, booking("confirmed"), changes) is Decision.ALLOW

    def test_non_admin_may_not_touch_money_fields(self):
        assert can_update_booking(OWNER, booking(), {"total_amount": 1}) is Decision.DENY
        assert can_update_booking(PROVIDER, booking(), {"payment_status": "paid"}) is Decision.DENY


@pytest.mark.unit
def test_only_admins_manage_webhooks():
    assert can_manage_webhooks(ADMIN) is Decision.ALLOW
    assert can_manage_webhooks(OWNER) is Decision.DENY
    assert can_manage_webhooks(PROVIDER) is Decision.DENY
