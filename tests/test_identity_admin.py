"""
Tests for signup/sign-in, profile edits and the admin tools.
"""

from decimal import Decimal

import pytest

from conftest import run
from family_finance.config.settings import AppSettings
from family_finance.errors import PermissionDeniedError, ValidationError
from family_finance.models.audit import AuditEventType
from family_finance.models.entities import Role, TransactionType
from family_finance.orchestrator import create_in_memory_app
from family_finance.services.auth import AuthError
from family_finance.services.storage import InMemoryRowStore
from family_finance.services.storage.interface import BackendError
from family_finance.workflows.identity import role_for_signup


def empty_app(policy="first_user"):
    return create_in_memory_app(
        store=InMemoryRowStore(),
        settings=AppSettings(admin_role_policy=policy),
    )


class TestSignup:

    def test_first_user_becomes_admin_under_default_policy(self):
        app = empty_app()

        first = run(app.identity.sign_up("a@example.com", "secret1", "First"))
        second = run(app.identity.sign_up("b@example.com", "secret2", "Second"))

        assert first.role == Role.ADMIN
        assert second.role == Role.MEMBER

    def test_role_decision_is_audited(self):
        app = empty_app()

        user = run(app.identity.sign_up("a@example.com", "secret1", "First"))

        events = [
            e for e in app.audit_logger.history
            if e.event_type == AuditEventType.ROLE_ASSIGNED
        ]
        assert len(events) == 1
        assert events[0].entity_id == user.id
        assert events[0].details == {
            "role": "admin",
            "policy": "first_user",
            "existing_profiles": 0,
        }

    @pytest.mark.parametrize("policy,existing,expected", [
        ("first_user", 0, Role.ADMIN),
        ("first_user", 5, Role.MEMBER),
        ("all_users", 5, Role.ADMIN),
        ("none", 0, Role.MEMBER),
    ])
    def test_role_policy(self, policy, existing, expected):
        assert role_for_signup(policy, existing) == expected

    def test_signup_creates_profile_and_default_wallet(self):
        app = empty_app()

        user = run(app.identity.sign_up("a@example.com", "secret1", "Ada Lovelace"))

        profile = run(app.repositories.profiles.get(user.id))
        assert profile.name == "Ada Lovelace"
        assert profile.avatar == (
            "https://ui-avatars.com/api/?name=Ada%20Lovelace&background=random"
        )
        wallets = run(app.repositories.accounts.list_personal(owner_id=user.id))
        assert [(w.name, w.balance, w.currency) for w in wallets] == [
            ("Main Savings", Decimal("0"), "USD"),
        ]

    def test_duplicate_email(self):
        app = empty_app()
        run(app.identity.sign_up("a@example.com", "secret1", "First"))

        with pytest.raises(AuthError, match="already registered"):
            run(app.identity.sign_up("a@example.com", "secret1", "Again"))

    def test_missing_name(self):
        with pytest.raises(ValidationError):
            run(empty_app().identity.sign_up("a@example.com", "secret1", " "))

    def test_profile_failure_is_reported(self, app, store):
        store.fail("insert", "profiles")

        with pytest.raises(BackendError, match="profile setup failed"):
            run(app.identity.sign_up("d@example.com", "secret1", "Dana"))

    def test_default_wallet_failure_does_not_fail_signup(self, app, store):
        store.fail("insert", "accounts")

        user = run(app.identity.sign_up("d@example.com", "secret1", "Dana"))

        assert run(app.repositories.profiles.find(user.id)) is not None
        assert run(app.repositories.accounts.list_personal(owner_id=user.id)) == []


class TestSignInAndProfile:

    def test_sign_in(self):
        app = empty_app()
        user = run(app.identity.sign_up("a@example.com", "secret1", "First"))

        session = run(app.identity.sign_in("a@example.com", "secret1"))

        assert session.user_id == user.id

    def test_bad_password(self):
        app = empty_app()
        run(app.identity.sign_up("a@example.com", "secret1", "First"))

        with pytest.raises(AuthError):
            run(app.identity.sign_in("a@example.com", "wrong!!"))

    def test_update_name(self, app, ben):
        updated = run(app.identity.update_name(ben, "  Benjamin "))

        assert updated.name == "Benjamin"
        assert run(app.repositories.profiles.get("U2")).name == "Benjamin"


class TestAdminTools:

    def test_add_and_delete_category(self, app, asha):
        category = run(app.admin.add_category(asha, "Rent", TransactionType.EXPENSE, color="#ef4444"))

        names = [c.name for c in run(app.repositories.categories.list())]
        assert "Rent" in names
        assert category.is_default is False

        run(app.admin.delete_category(asha, category.id))
        assert "Rent" not in [c.name for c in run(app.repositories.categories.list())]

    def test_members_cannot_manage_categories(self, app, ben):
        with pytest.raises(PermissionDeniedError):
            run(app.admin.add_category(ben, "Toys", TransactionType.EXPENSE))
        with pytest.raises(PermissionDeniedError):
            run(app.admin.delete_category(ben, "C-FOOD"))

    def test_user_activity(self, app, asha, ben):
        run(app.ledger.record_simple_entry("A2", "10", "expense", ben))
        run(app.ledger.record_simple_entry("A1", "10", "expense", asha))
        snapshot = run(app.aggregator.load_all("U1"))

        activity = app.admin.user_activity(asha, "U2", snapshot)

        assert activity.user.name == "Ben"
        assert [a.id for a in activity.accounts] == ["A2"]
        assert activity.total_balance == Decimal("30")
        assert len(activity.transactions) == 1

    def test_user_activity_unknown_user(self, app, asha):
        snapshot = run(app.aggregator.load_all())
        assert app.admin.user_activity(asha, "nobody", snapshot) is None

    def test_user_activity_is_admin_only(self, app, ben):
        snapshot = run(app.aggregator.load_all())
        with pytest.raises(PermissionDeniedError):
            app.admin.user_activity(ben, "U1", snapshot)
