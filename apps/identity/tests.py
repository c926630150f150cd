import json
from unittest import mock

from django.test import TestCase, Client, override_settings

from apps.governance.audit_service import AuditAction
from apps.governance.models import AuditLog
from .entitlements import (
    CrewAccessReason,
    Entitlement,
    EntitlementContext,
    check_crew_entitlement,
    get_dev_crew_email_allowlist,
    get_dev_override_description,
    has_entitlement,
)
from .jwt_auth import create_access_token, create_refresh_token, get_user_id_from_token
from .models import User, UserRole, SubscriptionPlan


def make_user(username, **kwargs):
    kwargs.setdefault('email', f"{username}@example.com")
    return User.objects.create_user(username=username, password="pw-12345", **kwargs)


@override_settings(APP_ENV='development')
class CrewEntitlementTest(TestCase):
    def test_crew_subscription_grants_access(self):
        result = check_crew_entitlement(EntitlementContext(user_id="1", subscription_plan="crew"))
        self.assertTrue(result.has_crew_access)
        self.assertFalse(result.is_dev_override)
        self.assertEqual(result.reason, CrewAccessReason.SUBSCRIPTION)

    def test_explicit_grant(self):
        ctx = EntitlementContext(user_id="1", subscription_plan="pro", entitlements=(Entitlement.CREW_ACCESS,))
        result = check_crew_entitlement(ctx)
        self.assertTrue(result.has_crew_access)
        self.assertEqual(result.reason, CrewAccessReason.ENTITLEMENT)

    @mock.patch.dict('os.environ', {'DEV_CREW_EMAILS': ' Dev@Example.com, not-an-email ,', 'DEV_FORCE_CREW': ''})
    def test_dev_email_allowlist(self):
        self.assertEqual(get_dev_crew_email_allowlist(), {'dev@example.com'})
        result = check_crew_entitlement(EntitlementContext(user_id="1", email="DEV@example.com"))
        self.assertTrue(result.has_crew_access)
        self.assertTrue(result.is_dev_override)
        self.assertEqual(get_dev_override_description(result), "Dev: Email Allowlist")

    @mock.patch.dict('os.environ', {'DEV_CREW_EMAILS': '', 'DEV_FORCE_CREW': 'true'})
    def test_dev_force_flag(self):
        result = check_crew_entitlement(EntitlementContext(user_id="1"))
        self.assertEqual(result.reason, CrewAccessReason.DEV_FORCE_FLAG)
        self.assertEqual(get_dev_override_description(result), "Dev: Force Flag")

    @mock.patch.dict('os.environ', {'DEV_CREW_EMAILS': 'dev@example.com', 'DEV_FORCE_CREW': 'true'})
    def test_dev_overrides_ignored_in_production(self):
        with self.settings(APP_ENV='production'):
            result = check_crew_entitlement(EntitlementContext(user_id="1", email="dev@example.com"))
        self.assertFalse(result.has_crew_access)
        self.assertEqual(result.reason, CrewAccessReason.NONE)

    @mock.patch.dict('os.environ', {'DEV_CREW_EMAILS': '', 'DEV_FORCE_CREW': 'false'})
    def test_no_access(self):
        result = check_crew_entitlement(EntitlementContext(user_id="1", subscription_plan="starter"))
        self.assertFalse(result.has_crew_access)
        self.assertIsNone(get_dev_override_description(result))

    def test_admin_implicitly_holds_admin_users(self):
        admin = make_user("root", role=UserRole.ADMIN)
        regular = make_user("regular")
        self.assertTrue(has_entitlement(admin, Entitlement.ADMIN_USERS))
        self.assertFalse(has_entitlement(regular, Entitlement.ADMIN_USERS))

    def test_inactive_user_holds_nothing(self):
        user = make_user("gone", entitlements=[Entitlement.SEARCH_CONSOLE], is_active=False)
        self.assertFalse(has_entitlement(user, Entitlement.SEARCH_CONSOLE))


class JWTTest(TestCase):
    def test_access_token_round_trip(self):
        user = make_user("jwt")
        token = create_access_token(user.id, user.role)
        self.assertEqual(get_user_id_from_token(token), user.id)

    def test_refresh_token_is_not_an_access_token(self):
        user = make_user("jwt2")
        token = create_refresh_token(user.id)
        self.assertIsNone(get_user_id_from_token(token))
        self.assertEqual(get_user_id_from_token(token, token_type='refresh'), user.id)

    def test_garbage_token(self):
        self.assertIsNone(get_user_id_from_token("not-a-token"))


class AuthAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.user = make_user("contractor", company_name="Acme Remodel")

    def test_login_sets_cookies(self):
        response = self.client.post(
            "/api/identity/login",
            data=json.dumps({"username": "contractor", "password": "pw-12345"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("access_token", response.cookies)
        self.assertIn("refresh_token", response.cookies)
        self.assertEqual(response.json()["user"]["company_name"], "Acme Remodel")

    def test_login_bad_password(self):
        response = self.client.post(
            "/api/identity/login",
            data=json.dumps({"username": "contractor", "password": "wrong"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 401)

    def test_me_with_access_cookie(self):
        self.client.cookies["access_token"] = create_access_token(self.user.id, self.user.role)
        response = self.client.get("/api/identity/me")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["username"], "contractor")

    def test_me_requires_auth(self):
        self.assertEqual(self.client.get("/api/identity/me").status_code, 401)

    def test_refresh(self):
        self.client.cookies["refresh_token"] = create_refresh_token(self.user.id)
        response = self.client.post("/api/identity/refresh")
        self.assertEqual(response.status_code, 200)
        self.assertIn("access_token", response.cookies)

    def test_update_profile(self):
        self.client.force_login(self.user)
        response = self.client.patch(
            "/api/identity/me",
            data=json.dumps({"company_phone": "555-0100"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.company_phone, "555-0100")


class AdminEntitlementAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.admin = make_user("admin", role=UserRole.ADMIN)
        self.target = make_user("target", subscription_plan=SubscriptionPlan.PRO)

    def _post(self, path, body):
        return self.client.post(path, data=json.dumps(body), content_type="application/json")

    def test_non_admin_forbidden(self):
        self.client.force_login(self.target)
        response = self._post(
            f"/api/identity/admin/users/{self.target.id}/entitlements/grant",
            {"entitlement": Entitlement.CREW_ACCESS},
        )
        self.assertEqual(response.status_code, 403)

    def test_grant_and_revoke_are_audited(self):
        self.client.force_login(self.admin)
        response = self._post(
            f"/api/identity/admin/users/{self.target.id}/entitlements/grant",
            {"entitlement": Entitlement.CREW_ACCESS, "reason": "beta"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn(Entitlement.CREW_ACCESS, response.json()["entitlements"])

        log = AuditLog.objects.get(action=AuditAction.GRANT_ENTITLEMENT)
        self.assertEqual(log.actor, self.admin)
        self.assertEqual(log.target_user_id, self.target.id)
        self.assertEqual(log.previous_value, "false")
        self.assertEqual(log.new_value, "true")
        self.assertEqual(log.metadata, {"reason": "beta"})

        response = self._post(
            f"/api/identity/admin/users/{self.target.id}/entitlements/revoke",
            {"entitlement": Entitlement.CREW_ACCESS},
        )
        self.assertEqual(response.status_code, 200)
        self.target.refresh_from_db()
        self.assertEqual(self.target.entitlements, [])
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.REVOKE_ENTITLEMENT).exists())

    def test_duplicate_grant_not_audited_twice(self):
        self.client.force_login(self.admin)
        path = f"/api/identity/admin/users/{self.target.id}/entitlements/grant"
        self._post(path, {"entitlement": Entitlement.SEARCH_CONSOLE})
        self._post(path, {"entitlement": Entitlement.SEARCH_CONSOLE})
        self.assertEqual(AuditLog.objects.filter(action=AuditAction.GRANT_ENTITLEMENT).count(), 1)

    def test_unknown_entitlement_rejected(self):
        self.client.force_login(self.admin)
        response = self._post(
            f"/api/identity/admin/users/{self.target.id}/entitlements/grant",
            {"entitlement": "TIME_TRAVEL"},
        )
        self.assertEqual(response.status_code, 400)

    def test_grant_credits(self):
        self.client.force_login(self.admin)
        response = self._post(f"/api/identity/admin/users/{self.target.id}/credits", {"amount": 5})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["proposal_credits"], 5)
        log = AuditLog.objects.get(action=AuditAction.GRANT_CREDITS)
        self.assertEqual(log.previous_value, "0")
        self.assertEqual(log.new_value, "5")

    def test_cannot_change_own_role(self):
        self.client.force_login(self.admin)
        response = self._post(f"/api/identity/admin/users/{self.admin.id}/role", {"role": "user"})
        self.assertEqual(response.status_code, 400)
