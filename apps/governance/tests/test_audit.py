"""
Tests for the Audit Logging system.

Covers:
1. audit_service.log_action() creates an AuditLog with correct fields
2. GET /governance/audit-logs list endpoint with filters, auth requirement
3. GET /governance/audit-logs/{id} detail endpoint
"""
from unittest import mock
from uuid import uuid4

from django.test import TestCase, Client
from django.contrib.auth import get_user_model

from apps.identity.models import UserRole
from apps.governance.models import AuditLog
from apps.governance.audit_service import log_action, AuditAction


User = get_user_model()


def make_user(role=UserRole.USER, username=None):
    username = username or f"user_{uuid4().hex[:8]}"
    return User.objects.create_user(
        username=username,
        email=f"{username}@test.com",
        password="testpass123",
        role=role,
    )


class AuditServiceTest(TestCase):
    """Test the log_action() helper directly."""

    def setUp(self):
        self.admin = make_user(UserRole.ADMIN)
        self.target = make_user()

    def test_log_action_creates_audit_log(self):
        log = log_action(
            actor=self.admin,
            action=AuditAction.GRANT_ENTITLEMENT,
            resource_type="entitlement",
            resource_value="CREW_ACCESS",
            target_user=self.target,
            previous_value=False,
            new_value=True,
            metadata={"reason": "pilot"},
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.action, AuditAction.GRANT_ENTITLEMENT)
        self.assertEqual(log.actor_email, self.admin.email)
        self.assertEqual(log.target_user_id, self.target.id)
        self.assertEqual(log.target_user_email, self.target.email)
        self.assertEqual(log.previous_value, "false")
        self.assertEqual(log.new_value, "true")
        self.assertEqual(log.metadata["reason"], "pilot")

    def test_log_action_without_actor(self):
        log = log_action(
            action=AuditAction.ACCEPT_PROPOSAL,
            resource_type="proposal",
            resource_value="42",
        )
        self.assertIsNotNone(log)
        self.assertIsNone(log.actor)
        self.assertEqual(log.actor_email, "")
        self.assertEqual(log.metadata, {})

    def test_log_action_never_raises(self):
        with mock.patch.object(AuditLog.objects, "create", side_effect=RuntimeError("db down")):
            result = log_action(action=AuditAction.UNLOCK_PROPOSAL, resource_type="proposal")
        self.assertIsNone(result)


class AuditLogAPITest(TestCase):
    """Test GET /governance/audit-logs endpoints."""

    def setUp(self):
        self.client = Client()
        self.admin = make_user(UserRole.ADMIN, username="audit_admin")
        self.contractor = make_user(username="audit_contractor")

        self.log1 = log_action(
            actor=self.admin,
            action=AuditAction.GRANT_CREDITS,
            resource_type="proposal_credits",
            resource_value="3",
            target_user=self.contractor,
        )
        self.log2 = log_action(
            actor=self.admin,
            action=AuditAction.CHANGE_ROLE,
            resource_type="role",
            resource_value="admin",
            target_user=self.admin,
        )

    def test_list_audit_logs_requires_auth(self):
        response = self.client.get("/api/governance/audit-logs")
        self.assertEqual(response.status_code, 401)

    def test_contractor_cannot_list_audit_logs(self):
        self.client.force_login(self.contractor)
        response = self.client.get("/api/governance/audit-logs")
        self.assertEqual(response.status_code, 403)

    def test_admin_lists_all(self):
        self.client.force_login(self.admin)
        response = self.client.get("/api/governance/audit-logs")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 2)

    def test_filter_by_action(self):
        self.client.force_login(self.admin)
        response = self.client.get(f"/api/governance/audit-logs?action={AuditAction.GRANT_CREDITS}")
        data = response.json()
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["resource_value"], "3")

    def test_filter_by_target_user(self):
        self.client.force_login(self.admin)
        response = self.client.get(f"/api/governance/audit-logs?target_user_id={self.contractor.id}")
        data = response.json()
        self.assertEqual([row["id"] for row in data], [str(self.log1.id)])

    def test_get_single_log(self):
        self.client.force_login(self.admin)
        response = self.client.get(f"/api/governance/audit-logs/{self.log2.id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["action"], AuditAction.CHANGE_ROLE)

    def test_get_missing_log(self):
        self.client.force_login(self.admin)
        response = self.client.get(f"/api/governance/audit-logs/{uuid4()}")
        self.assertEqual(response.status_code, 404)
