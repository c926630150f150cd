from datetime import timedelta

from django.test import TestCase, Client
from django.utils import timezone

from apps.identity.models import User
from .models import Subscription, SubscriptionStatus
from .services import deduct_proposal_credit, get_billing_status


def make_user(username="billing", **kwargs):
    return User.objects.create_user(username=username, email=f"{username}@example.com", password="pw", **kwargs)


class BillingStatusTest(TestCase):
    def test_defaults_without_subscription(self):
        status = get_billing_status(make_user())
        self.assertEqual(status.plan, "free")
        self.assertEqual(status.status, "none")
        self.assertFalse(status.has_active_subscription)
        self.assertFalse(status.can_access_premium_features)

    def test_active_subscription(self):
        user = make_user()
        Subscription.objects.create(user=user, status=SubscriptionStatus.ACTIVE, plan="pro")
        status = get_billing_status(user)
        self.assertEqual(status.plan, "pro")
        self.assertTrue(status.has_active_subscription)
        self.assertTrue(status.can_access_premium_features)

    def test_trialing_counts_as_active(self):
        user = make_user()
        Subscription.objects.create(user=user, status=SubscriptionStatus.TRIALING, plan="starter")
        self.assertTrue(get_billing_status(user).has_active_subscription)

    def test_past_due_is_not_active(self):
        user = make_user()
        Subscription.objects.create(user=user, status=SubscriptionStatus.PAST_DUE, plan="pro")
        status = get_billing_status(user)
        self.assertEqual(status.status, "past_due")
        self.assertFalse(status.has_active_subscription)

    def test_expired_credits_are_zero(self):
        user = make_user(proposal_credits=4, credits_expire_at=timezone.now() - timedelta(days=1))
        status = get_billing_status(user)
        self.assertEqual(status.proposal_credits, 0)
        self.assertFalse(status.can_access_premium_features)

    def test_credits_grant_premium(self):
        user = make_user(proposal_credits=2)
        self.assertTrue(get_billing_status(user).can_access_premium_features)

    def test_open_trial_grants_premium(self):
        user = make_user(trial_ends_at=timezone.now() + timedelta(days=3))
        self.assertTrue(get_billing_status(user).can_access_premium_features)


class DeductCreditTest(TestCase):
    def test_deducts_one(self):
        user = make_user(proposal_credits=2)
        self.assertTrue(deduct_proposal_credit(user))
        self.assertEqual(user.proposal_credits, 1)

    def test_no_credits(self):
        user = make_user(proposal_credits=0)
        self.assertFalse(deduct_proposal_credit(user))

    def test_expired_credits_not_spent(self):
        user = make_user(proposal_credits=3, credits_expire_at=timezone.now() - timedelta(hours=1))
        self.assertFalse(deduct_proposal_credit(user))
        user.refresh_from_db()
        self.assertEqual(user.proposal_credits, 3)


class BillingAPITest(TestCase):
    def test_requires_auth(self):
        self.assertEqual(Client().get("/api/billing/status").status_code, 401)

    def test_status(self):
        client = Client()
        client.force_login(make_user(proposal_credits=5))
        response = client.get("/api/billing/status")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["proposal_credits"], 5)
        self.assertEqual(response.json()["status"], "none")
