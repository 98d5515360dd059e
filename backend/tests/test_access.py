"""
Startup Dashboard - Access Resolver Tests

Caller classification and the full / filtered / denied decision.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

pytestmark = pytest.mark.timeout(10)


def _snapshot(role, startup_id=None, approved=True, user_id=7):
    return {"id": user_id, "email": "x@example.com", "role": role,
            "approved": approved, "startup_id": startup_id}


class TestClassification:

    def test_none_is_anonymous(self):
        from access import Anonymous, caller_from_snapshot
        assert isinstance(caller_from_snapshot(None), Anonymous)

    def test_member_carries_company(self):
        from access import Member, caller_from_snapshot
        caller = caller_from_snapshot(_snapshot("user", startup_id=3))
        assert caller == Member(7, "x@example.com", 3)

    def test_vc_carries_approval(self):
        from access import VC, caller_from_snapshot
        caller = caller_from_snapshot(_snapshot("vc", approved=False))
        assert isinstance(caller, VC)
        assert caller.approved is False

    def test_moderator_is_staff(self):
        from access import Admin, caller_from_snapshot
        caller = caller_from_snapshot(_snapshot("moderator"))
        assert isinstance(caller, Admin)
        assert caller.is_moderator

    def test_unknown_role_is_anonymous(self):
        from access import Anonymous, caller_from_snapshot
        assert isinstance(caller_from_snapshot(_snapshot("root")), Anonymous)

    def test_missing_claims_is_anonymous(self, db_session):
        from access import Anonymous, caller_from_claims
        assert isinstance(caller_from_claims(db_session, None), Anonymous)

    def test_deleted_account_is_anonymous(self, db_session):
        from access import Anonymous, caller_from_claims
        from cache import reset_cache
        reset_cache()
        assert isinstance(caller_from_claims(db_session, {"id": 987654, "role": "admin"}), Anonymous)


class TestResolveAccess:

    def test_owner_has_full_access(self):
        from access import Member, resolve_access
        assert resolve_access(Member(1, "a", 5), 5) is True

    def test_other_member_is_filtered(self):
        from access import Member, resolve_access
        assert resolve_access(Member(1, "a", 5), 6) is False

    def test_unlinked_member_is_filtered(self):
        from access import Member, resolve_access
        assert resolve_access(Member(1, "a", None), 6) is False

    def test_approved_vc_is_filtered(self):
        from access import VC, resolve_access
        assert resolve_access(VC(1, "a", True), 5) is False

    def test_unapproved_vc_denied(self):
        from access import VC, resolve_access
        from errors import Unauthorized
        with pytest.raises(Unauthorized):
            resolve_access(VC(1, "a", False), 5)

    def test_anonymous_denied(self):
        from access import Anonymous, resolve_access
        from errors import Unauthorized
        with pytest.raises(Unauthorized):
            resolve_access(Anonymous(), 5)

    @pytest.mark.parametrize("role", ["admin", "moderator"])
    def test_staff_has_full_access(self, role):
        from access import Admin, resolve_access
        assert resolve_access(Admin(1, "a", role), 99) is True


class TestRoleGuards:

    def test_require_member_rejects_vc(self):
        from access import VC, require_member
        from errors import Forbidden
        with pytest.raises(Forbidden):
            require_member(VC(1, "a", True))

    def test_require_company_member_rejects_unlinked(self):
        from access import Member, require_company_member
        from errors import Forbidden
        with pytest.raises(Forbidden):
            require_company_member(Member(1, "a", None))

    def test_require_admin_rejects_moderator(self):
        from access import Admin, require_admin, require_staff
        from errors import Forbidden
        moderator = Admin(1, "a", "moderator")
        assert require_staff(moderator) is moderator
        with pytest.raises(Forbidden):
            require_admin(moderator)
