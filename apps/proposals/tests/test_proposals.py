"""
Tests for the proposal lifecycle.

Covers:
1. CRUD and ownership checks
2. Unlock rules (trial, subscription, credits, payment required)
3. Sending (email queued, status transition)
4. Public view and acceptance
5. Countersigning
6. Photo uploads
7. Server-side drafts
"""
import json
import shutil
import smtplib
import tempfile
from datetime import timedelta
from unittest import mock

from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, Client, override_settings
from django.utils import timezone

from apps.billing.models import Subscription, SubscriptionStatus
from apps.governance.audit_service import AuditAction
from apps.governance.models import AuditLog
from apps.identity.models import User
from apps.proposals.draft_persistence import create_empty_draft, serialize_draft
from apps.proposals.models import Proposal, ProposalDraftRecord, ProposalStatus, ProposalTemplate, ProposalView
from apps.proposals.pricing import calculate_total_price

SIGNATURE = "data:image/png;base64," + "A" * 1200


def make_user(username, **kwargs):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="pw",
        **kwargs
    )


def make_proposal(owner, **kwargs):
    data = {
        'client_name': 'Jane Client',
        'address': '123 Main St, Springfield, IL 62701',
        'trade_id': 'bathroom',
        'job_type_id': 'bathroom-remodel',
        'job_type_name': 'Bathroom Remodel',
        'scope': ['Demo', 'Tile'],
        'price_low': 10000,
        'price_high': 15001,
    }
    data.update(kwargs)
    return Proposal.objects.create(owner=owner, **data)


class JSONClientMixin:
    def post_json(self, path, body=None, **extra):
        return self.client.post(path, data=json.dumps(body or {}), content_type="application/json", **extra)

    def patch_json(self, path, body):
        return self.client.patch(path, data=json.dumps(body), content_type="application/json")

    def put_json(self, path, body):
        return self.client.put(path, data=json.dumps(body), content_type="application/json")


class PricingTest(TestCase):
    def test_single_service_midpoint(self):
        proposal = Proposal(price_low=10000, price_high=15001)
        self.assertEqual(calculate_total_price(proposal), 12501)

    def test_multi_service_sums_line_items(self):
        proposal = Proposal(
            price_low=1,
            price_high=2,
            line_items=[
                {'priceLow': 1000, 'priceHigh': 2000},
                {'priceLow': 3000, 'priceHigh': None},
            ],
        )
        self.assertEqual(calculate_total_price(proposal), 3000)

    def test_single_line_item_uses_price_range(self):
        proposal = Proposal(price_low=100, price_high=200, line_items=[{'priceLow': 5, 'priceHigh': 5}])
        self.assertEqual(calculate_total_price(proposal), 150)


class ProposalCRUDTest(JSONClientMixin, TestCase):
    def setUp(self):
        self.client = Client()
        self.owner = make_user("owner")
        self.other = make_user("other")
        self.client.force_login(self.owner)

    def test_create(self):
        response = self.post_json("/api/proposals/", {
            'client_name': 'Jane',
            'address': '1 Elm St',
            'trade_id': 'roofing',
            'job_type_id': 'roof-replacement',
            'job_type_name': 'Roof Replacement',
            'price_low': 9000,
            'price_high': 12000,
            'line_items': [{'priceLow': 1, 'priceHigh': 2}, {'priceLow': 3, 'priceHigh': 4}],
        })
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['status'], 'draft')
        self.assertTrue(body['is_multi_service'])
        self.assertFalse(body['is_unlocked'])

    def test_create_rejects_inverted_range(self):
        response = self.post_json("/api/proposals/", {
            'client_name': 'Jane',
            'address': '1 Elm St',
            'trade_id': 'roofing',
            'job_type_id': 'roof-replacement',
            'job_type_name': 'Roof Replacement',
            'price_low': 12000,
            'price_high': 9000,
        })
        self.assertEqual(response.status_code, 400)

    def test_requires_auth(self):
        self.assertEqual(Client().get("/api/proposals/").status_code, 401)

    def test_list_includes_view_stats(self):
        proposal = make_proposal(self.owner)
        ProposalView.objects.create(proposal=proposal, viewer_ip="1.1.1.1")
        ProposalView.objects.create(proposal=proposal, viewer_ip="2.2.2.2")
        make_proposal(self.other)

        response = self.client.get("/api/proposals/")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]['view_count'], 2)
        self.assertIsNotNone(data[0]['last_viewed_at'])

    def test_get_foreign_proposal_forbidden(self):
        proposal = make_proposal(self.other)
        self.assertEqual(self.client.get(f"/api/proposals/{proposal.id}").status_code, 403)
        self.assertEqual(self.client.get("/api/proposals/999999").status_code, 404)

    def test_update(self):
        proposal = make_proposal(self.owner)
        response = self.patch_json(f"/api/proposals/{proposal.id}", {'price_high': 20000, 'status': 'won'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['price_high'], 20000)

        response = self.patch_json(f"/api/proposals/{proposal.id}", {'price_low': 50000})
        self.assertEqual(response.status_code, 400)

    def test_only_drafts_can_be_deleted(self):
        accepted = make_proposal(self.owner, status=ProposalStatus.ACCEPTED)
        response = self.client.delete(f"/api/proposals/{accepted.id}")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['message'], "Only draft proposals can be deleted")
        self.assertTrue(Proposal.objects.filter(id=accepted.id).exists())

        draft = make_proposal(self.owner)
        self.assertEqual(self.client.delete(f"/api/proposals/{draft.id}").status_code, 204)
        self.assertFalse(Proposal.objects.filter(id=draft.id).exists())

    def test_update_rejects_unknown_status(self):
        proposal = make_proposal(self.owner)
        response = self.patch_json(f"/api/proposals/{proposal.id}", {'status': 'bogus'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Invalid status: bogus")

        response = self.patch_json(f"/api/proposals/{proposal.id}", {'status': None})
        self.assertEqual(response.status_code, 400)
        proposal.refresh_from_db()
        self.assertEqual(proposal.status, ProposalStatus.DRAFT)

    def test_update_cannot_mark_accepted(self):
        proposal = make_proposal(self.owner, status=ProposalStatus.SENT)
        response = self.patch_json(f"/api/proposals/{proposal.id}", {'status': 'accepted'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Proposals can only be accepted by the client")
        proposal.refresh_from_db()
        self.assertEqual(proposal.status, ProposalStatus.SENT)
        self.assertIsNone(proposal.accepted_at)


class UnlockTest(JSONClientMixin, TestCase):
    def setUp(self):
        self.client = Client()

    def _unlock(self, user, proposal):
        self.client.force_login(user)
        return self.post_json(f"/api/proposals/{proposal.id}/unlock")

    def test_already_unlocked_is_noop(self):
        user = make_user("u1", proposal_credits=2)
        proposal = make_proposal(user, is_unlocked=True)
        response = self._unlock(user, proposal)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()['credit_deducted'])
        user.refresh_from_db()
        self.assertEqual(user.proposal_credits, 2)

    def test_trial_unlocks_free(self):
        user = make_user("u2", trial_ends_at=timezone.now() + timedelta(days=1), proposal_credits=1)
        response = self._unlock(user, make_proposal(user))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()['credit_deducted'])
        self.assertEqual(response.json()['remaining_credits'], 1)

    def test_subscription_unlocks_free(self):
        user = make_user("u3")
        Subscription.objects.create(user=user, status=SubscriptionStatus.ACTIVE, plan="pro")
        response = self._unlock(user, make_proposal(user))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['proposal']['is_unlocked'])

    def test_credit_is_deducted(self):
        user = make_user("u4", proposal_credits=2)
        proposal = make_proposal(user)
        response = self._unlock(user, proposal)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['credit_deducted'])
        self.assertEqual(response.json()['remaining_credits'], 1)
        log = AuditLog.objects.get(action=AuditAction.UNLOCK_PROPOSAL)
        self.assertEqual(log.metadata, {"method": "credit"})

    def test_payment_required(self):
        user = make_user("u5")
        response = self._unlock(user, make_proposal(user))
        self.assertEqual(response.status_code, 402)
        body = response.json()
        self.assertTrue(body['requires_payment'])
        self.assertTrue(body['no_credits'])
        self.assertTrue(body['requires_upgrade'])

    def test_expired_credits_require_payment(self):
        user = make_user("u6", proposal_credits=3, credits_expire_at=timezone.now() - timedelta(days=1))
        self.assertEqual(self._unlock(user, make_proposal(user)).status_code, 402)


@override_settings(APP_BASE_URL="https://app.scopegen.test")
class SendProposalTest(JSONClientMixin, TestCase):
    def setUp(self):
        self.client = Client()
        self.owner = make_user("sender", company_name="Acme Remodel")
        self.client.force_login(self.owner)

    def test_requires_recipient(self):
        proposal = make_proposal(self.owner, is_unlocked=True)
        response = self.post_json(f"/api/proposals/{proposal.id}/email", {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Recipient email is required")

    def test_requires_unlock(self):
        proposal = make_proposal(self.owner)
        response = self.post_json(f"/api/proposals/{proposal.id}/email", {'recipient_email': 'c@example.com'})
        self.assertEqual(response.status_code, 402)
        self.assertTrue(response.json()['requires_unlock'])

    def test_not_owner(self):
        proposal = make_proposal(make_user("stranger"), is_unlocked=True)
        response = self.post_json(f"/api/proposals/{proposal.id}/email", {'recipient_email': 'c@example.com'})
        self.assertEqual(response.status_code, 403)

    def test_send(self):
        proposal = make_proposal(self.owner, is_unlocked=True)
        response = self.post_json(
            f"/api/proposals/{proposal.id}/email",
            {'recipient_email': 'client@example.com', 'message': 'Looking forward to it'},
        )
        self.assertEqual(response.status_code, 200)
        proposal.refresh_from_db()
        self.assertEqual(proposal.status, ProposalStatus.SENT)
        self.assertTrue(proposal.public_token)
        self.assertEqual(response.json()['public_url'], f"https://app.scopegen.test/p/{proposal.public_token}")

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['client@example.com'])
        self.assertIn("Acme Remodel", message.subject)
        self.assertIn(proposal.public_token, message.body)
        self.assertIn("$12,501", message.body)

    def test_resend_keeps_token_and_status(self):
        proposal = make_proposal(self.owner, is_unlocked=True, public_token="fixed-token", status=ProposalStatus.VIEWED)
        self.post_json(f"/api/proposals/{proposal.id}/email", {'recipient_email': 'client@example.com'})
        proposal.refresh_from_db()
        self.assertEqual(proposal.public_token, "fixed-token")
        self.assertEqual(proposal.status, ProposalStatus.VIEWED)

    @mock.patch("apps.proposals.services.TaskService.send_proposal_email", return_value="task-1")
    def test_send_queues_task(self, send_email):
        proposal = make_proposal(self.owner, is_unlocked=True)
        response = self.post_json(f"/api/proposals/{proposal.id}/email", {'recipient_email': 'c@example.com'})
        self.assertEqual(response.json()['task_id'], "task-1")
        send_email.assert_called_once_with(
            proposal_id=proposal.id,
            recipient_email='c@example.com',
            recipient_name=None,
            message=None,
        )


class PublicProposalTest(JSONClientMixin, TestCase):
    def setUp(self):
        self.client = Client()
        self.owner = make_user("contractor", company_name="Acme Remodel", company_phone="555-0100")
        self.proposal = make_proposal(self.owner, public_token="tok123", status=ProposalStatus.SENT, is_unlocked=True)

    def test_view_records_and_marks_viewed(self):
        response = self.client.get(
            "/api/public/proposal/tok123",
            HTTP_X_FORWARDED_FOR="203.0.113.9, 10.0.0.1",
            HTTP_USER_AGENT="TestBrowser",
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['proposal']['client_name'], 'Jane Client')
        self.assertEqual(body['proposal']['total_price'], 12501)
        self.assertEqual(body['company_info']['company_name'], 'Acme Remodel')

        view = ProposalView.objects.get(proposal=self.proposal)
        self.assertEqual(view.viewer_ip, "203.0.113.9")
        self.assertEqual(view.user_agent, "TestBrowser")
        self.proposal.refresh_from_db()
        self.assertEqual(self.proposal.status, ProposalStatus.VIEWED)

    def test_view_unknown_token(self):
        self.assertEqual(self.client.get("/api/public/proposal/nope").status_code, 404)

    def test_accept_validation(self):
        path = "/api/public/proposal/tok123/accept"
        response = self.post_json(path, {'name': 'Jane'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Name and email are required')

        response = self.post_json(path, {'name': 'Jane', 'email': 'jane@example.com'})
        self.assertEqual(response.json()['message'], 'Signature is required')

    def test_accept(self):
        path = "/api/public/proposal/tok123/accept"
        response = self.post_json(path, {'name': 'Jane', 'email': 'jane@example.com', 'signature': 'data:image/png;base64,xyz'})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

        self.proposal.refresh_from_db()
        self.assertEqual(self.proposal.status, ProposalStatus.ACCEPTED)
        self.assertEqual(self.proposal.accepted_by_email, 'jane@example.com')
        self.assertIsNotNone(self.proposal.accepted_at)
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.ACCEPT_PROPOSAL).exists())

        # Contractor notification
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['contractor@example.com'])

        response = self.post_json(path, {'name': 'Jane', 'email': 'jane@example.com', 'signature': 'sig'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'This proposal has already been accepted')

    @mock.patch("apps.proposals.email_service._send", side_effect=smtplib.SMTPException("relay down"))
    def test_accept_survives_notification_failure(self, send):
        path = "/api/public/proposal/tok123/accept"
        body = {'name': 'Jane', 'email': 'jane@example.com', 'signature': 'data:image/png;base64,xyz'}
        response = self.post_json(path, body)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(send.called)
        self.proposal.refresh_from_db()
        self.assertEqual(self.proposal.status, ProposalStatus.ACCEPTED)

        response = self.post_json(path, body)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'message': 'This proposal has already been accepted'})

    def test_accept_unknown_token(self):
        response = self.post_json("/api/public/proposal/nope/accept", {'name': 'a', 'email': 'b@c.d', 'signature': 's'})
        self.assertEqual(response.status_code, 404)


class CountersignTest(JSONClientMixin, TestCase):
    def setUp(self):
        self.client = Client()
        self.owner = make_user("signer")
        self.client.force_login(self.owner)

    def _countersign(self, proposal, signature=SIGNATURE):
        return self.post_json(f"/api/proposals/{proposal.id}/countersign", {'signature': signature})

    def test_signature_validation(self):
        proposal = make_proposal(self.owner, status=ProposalStatus.ACCEPTED)
        response = self._countersign(proposal, "not-a-data-url")
        self.assertEqual(response.json()['message'], "Valid signature is required")
        response = self._countersign(proposal, "data:image/png;base64,short")
        self.assertEqual(response.json()['message'], "Please provide a valid signature")

    def test_requires_acceptance(self):
        proposal = make_proposal(self.owner, status=ProposalStatus.SENT)
        response = self._countersign(proposal)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Proposal must be accepted by client before countersigning")

    def test_countersign_once(self):
        proposal = make_proposal(
            self.owner,
            status=ProposalStatus.ACCEPTED,
            accepted_by_email="client@example.com",
            accepted_at=timezone.now(),
            public_token="signed-tok",
        )
        response = self._countersign(proposal)
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.json()['contractor_signed_at'])
        self.assertEqual(mail.outbox[-1].to, ['client@example.com'])
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.COUNTERSIGN_PROPOSAL).exists())

        response = self._countersign(proposal)
        self.assertEqual(response.json()['message'], "Proposal has already been countersigned")

    @mock.patch("apps.proposals.email_service._send", side_effect=smtplib.SMTPException("relay down"))
    def test_countersign_survives_email_failure(self, send):
        proposal = make_proposal(
            self.owner,
            status=ProposalStatus.ACCEPTED,
            accepted_by_email="client@example.com",
            accepted_at=timezone.now(),
            public_token="fail-tok",
        )
        response = self._countersign(proposal)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(send.called)
        proposal.refresh_from_db()
        self.assertTrue(proposal.contractor_signature)

    def test_not_owner(self):
        proposal = make_proposal(make_user("x"), status=ProposalStatus.ACCEPTED)
        self.assertEqual(self._countersign(proposal).status_code, 403)


class PhotoUploadTest(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.client = Client()
        self.owner = make_user("photographer")
        self.client.force_login(self.owner)
        self.proposal = make_proposal(self.owner)

    def test_upload_list_and_delete(self):
        with self.settings(MEDIA_ROOT=self.media_root):
            upload = SimpleUploadedFile("front.jpg", b"\xff\xd8\xff fake jpeg", content_type="image/jpeg")
            response = self.client.post(
                f"/api/proposals/{self.proposal.id}/photos",
                {'file': upload, 'category': 'hero', 'caption': 'Front elevation'},
            )
            self.assertEqual(response.status_code, 201)
            body = response.json()
            self.assertEqual(body['category'], 'hero')
            self.assertTrue(body['url'].startswith('/media/proposals/'))

            response = self.client.get(f"/api/proposals/{self.proposal.id}/photos")
            self.assertEqual(len(response.json()), 1)

            response = self.client.delete(f"/api/proposals/{self.proposal.id}/photos/{body['id']}")
            self.assertEqual(response.status_code, 204)
            self.assertEqual(self.proposal.photos.count(), 0)

    def test_rejects_wrong_type(self):
        with self.settings(MEDIA_ROOT=self.media_root):
            upload = SimpleUploadedFile("notes.pdf", b"%PDF", content_type="application/pdf")
            response = self.client.post(f"/api/proposals/{self.proposal.id}/photos", {'file': upload})
        self.assertEqual(response.status_code, 400)

    def test_rejects_oversized(self):
        with self.settings(MEDIA_ROOT=self.media_root):
            upload = SimpleUploadedFile("big.png", b"0" * (10 * 1024 * 1024 + 1), content_type="image/png")
            response = self.client.post(f"/api/proposals/{self.proposal.id}/photos", {'file': upload})
        self.assertEqual(response.status_code, 400)


class ServerDraftTest(JSONClientMixin, TestCase):
    def setUp(self):
        self.client = Client()
        self.user = make_user("drafter")
        self.client.force_login(self.user)

    def test_empty_when_nothing_saved(self):
        response = self.client.get("/api/proposals/drafts/current")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()['draft'])

    def test_save_and_restore(self):
        draft = create_empty_draft()
        draft['clientName'] = 'Ada'
        response = self.put_json("/api/proposals/drafts/current", {'draft': draft})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['saved'])

        record = ProposalDraftRecord.objects.get()
        self.assertEqual(record.storage_key, f"scopegen_proposal_draft_{self.user.id}")

        response = self.client.get("/api/proposals/drafts/current")
        body = response.json()
        self.assertEqual(body['draft']['clientName'], 'Ada')
        self.assertEqual(body['saved_ago'], 'just now')

    def test_empty_draft_clears_record(self):
        draft = create_empty_draft()
        draft['clientName'] = 'Ada'
        self.put_json("/api/proposals/drafts/current", {'draft': draft})
        response = self.put_json("/api/proposals/drafts/current", {'draft': create_empty_draft()})
        self.assertFalse(response.json()['saved'])
        self.assertFalse(ProposalDraftRecord.objects.exists())

    def test_invalid_draft_rejected(self):
        response = self.put_json("/api/proposals/drafts/current", {'draft': {'clientName': 1}})
        self.assertEqual(response.status_code, 400)

    def test_old_record_is_migrated_on_read(self):
        legacy = create_empty_draft()
        legacy['clientName'] = 'Legacy'
        legacy['photos'] = [{'id': 'p', 'url': 'blob:abc'}]
        payload = json.loads(serialize_draft(legacy))
        payload['version'] = 2
        ProposalDraftRecord.objects.create(
            storage_key=f"scopegen_proposal_draft_{self.user.id}",
            user=self.user,
            payload=json.dumps(payload),
        )
        body = self.client.get("/api/proposals/drafts/current").json()
        self.assertEqual(body['draft']['photos'], [])

    def test_delete(self):
        draft = create_empty_draft()
        draft['address'] = '1 Elm'
        self.put_json("/api/proposals/drafts/current", {'draft': draft})
        self.assertEqual(self.client.delete("/api/proposals/drafts/current").status_code, 204)
        self.assertFalse(ProposalDraftRecord.objects.exists())


class DashboardStatsTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.owner = make_user("dash", proposal_credits=3)
        self.client.force_login(self.owner)

    def test_thirty_day_totals(self):
        make_proposal(self.owner)
        make_proposal(self.owner, status=ProposalStatus.SENT)
        make_proposal(self.owner, status=ProposalStatus.ACCEPTED)
        make_proposal(self.owner, status=ProposalStatus.WON, price_low=10000, price_high=15001)
        make_proposal(self.owner, status=ProposalStatus.WON, price_low=2000, price_high=4000)
        old = make_proposal(self.owner, status=ProposalStatus.WON)
        Proposal.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=31))
        make_proposal(make_user("someone"), status=ProposalStatus.WON)

        response = self.client.get("/api/dashboard/stats")
        self.assertEqual(response.status_code, 200)
        self.assertIn('no-store', response['Cache-Control'])
        self.assertEqual(response.json(), {
            'proposal_credits': 3,
            'credits_expire_at': None,
            'total_proposals': 5,
            'pending': 2,
            'accepted': 1,
            'won': 2,
            # 12500.5 + 3000
            'revenue_won': 15501,
        })

    def test_expired_credits_count_as_zero(self):
        self.owner.credits_expire_at = timezone.now() - timedelta(days=1)
        self.owner.save()
        body = self.client.get("/api/dashboard/stats").json()
        self.assertEqual(body['proposal_credits'], 0)
        self.assertEqual(body['total_proposals'], 0)
        self.assertEqual(body['revenue_won'], 0)

    def test_requires_auth(self):
        self.assertEqual(Client().get("/api/dashboard/stats").status_code, 401)


def make_template(created_by=None, **kwargs):
    data = {
        'trade_id': 'bathroom',
        'trade_name': 'Bathroom',
        'job_type_id': 'tub-to-shower',
        'job_type_name': 'Tub to Shower',
        'base_scope': ['Remove tub', 'Install shower pan'],
        'options': [{'id': 'glass', 'label': 'Glass door', 'priceModifier': 800}],
        'base_price_low': 8000,
        'base_price_high': 12000,
        'created_by': created_by,
        'is_default': created_by is None,
    }
    data.update(kwargs)
    return ProposalTemplate.objects.create(**data)


class TemplateTest(JSONClientMixin, TestCase):
    def setUp(self):
        self.client = Client()
        self.owner = make_user("templater")
        self.other = make_user("rival")
        self.client.force_login(self.owner)

    def test_list_groups_by_trade(self):
        make_template(job_type_id='vanity', job_type_name='Vanity Swap', usage_count=1)
        popular = make_template(usage_count=9)
        make_template(trade_id='roofing', trade_name='Roofing', job_type_id='reroof', job_type_name='Re-roof')
        mine = make_template(self.owner, job_type_id='custom', job_type_name='My Bath')
        make_template(self.other, job_type_id='theirs', job_type_name='Their Bath')
        make_template(job_type_id='retired', job_type_name='Retired', is_active=False)

        body = self.client.get("/api/templates/").json()
        self.assertEqual(body['total'], 4)
        self.assertEqual([g['trade_id'] for g in body['templates']], ['bathroom', 'roofing'])
        bathroom = body['templates'][0]['job_types']
        self.assertEqual(bathroom[0]['id'], popular.id)
        custom = [t for t in bathroom if t['is_custom']]
        self.assertEqual([t['id'] for t in custom], [mine.id])

        body = self.client.get("/api/templates/?tradeId=roofing").json()
        self.assertEqual(body['total'], 1)

    def test_anonymous_sees_system_templates(self):
        make_template()
        make_template(self.owner, job_type_id='custom')
        body = Client().get("/api/templates/").json()
        self.assertEqual(body['total'], 1)
        self.assertFalse(body['templates'][0]['job_types'][0]['is_custom'])

    def test_create(self):
        response = self.post_json("/api/templates/", {
            'trade_id': 'kitchen',
            'trade_name': 'Kitchen',
            'job_type_id': 'cabinet-refresh',
            'job_type_name': 'Cabinet Refresh',
            'base_scope': ['Paint cabinets'],
            'options': [],
            'base_price_low': 3000,
            'base_price_high': 5000,
        })
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body['is_custom'])
        self.assertFalse(body['is_default'])
        self.assertEqual(ProposalTemplate.objects.get(id=body['id']).created_by, self.owner)

    def test_create_requires_auth(self):
        self.assertEqual(Client().post("/api/templates/", data="{}", content_type="application/json").status_code, 401)

    def test_get(self):
        system = make_template()
        theirs = make_template(self.other, job_type_id='theirs')
        self.assertEqual(self.client.get(f"/api/templates/{system.id}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/templates/{theirs.id}").status_code, 404)

    def test_update_own_only(self):
        mine = make_template(self.owner)
        system = make_template()

        response = self.patch_json(f"/api/templates/{mine.id}", {'base_price_high': 15000, 'warranty': '2 years'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['base_price_high'], 15000)
        self.assertEqual(response.json()['warranty'], '2 years')

        response = self.patch_json(f"/api/templates/{mine.id}", {'base_price_low': 99999})
        self.assertEqual(response.status_code, 400)

        response = self.patch_json(f"/api/templates/{system.id}", {'warranty': 'forever'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json()['message'],
            "Template not found or you do not have permission to edit it",
        )

    def test_delete_own_only(self):
        mine = make_template(self.owner)
        system = make_template()

        response = self.client.delete(f"/api/templates/{system.id}")
        self.assertEqual(response.status_code, 404)
        self.assertTrue(ProposalTemplate.objects.filter(id=system.id).exists())

        response = self.client.delete(f"/api/templates/{mine.id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'message': 'Template deleted successfully'})
        self.assertFalse(ProposalTemplate.objects.filter(id=mine.id).exists())

    def test_usage_tracking(self):
        template = make_template()
        self.post_json(f"/api/templates/{template.id}/use")
        response = self.post_json(f"/api/templates/{template.id}/use")
        self.assertEqual(response.json(), {'message': 'Usage tracked'})
        template.refresh_from_db()
        self.assertEqual(template.usage_count, 2)

        self.assertEqual(self.post_json("/api/templates/999999/use").status_code, 404)
