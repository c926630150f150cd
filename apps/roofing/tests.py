"""
Tests for the EagleView integration.

Covers:
1. Client helpers (address parsing, status mapping, measurements, signatures)
2. OAuth token caching
3. Order / status endpoints
4. Webhook handling
5. Server-side polling
"""
import json
import os
from unittest import mock

from django.test import SimpleTestCase, TestCase, Client

from apps.identity.models import User
from .client import (
    EagleViewAddress,
    EagleViewClient,
    EagleViewConfig,
    EagleViewError,
    map_eagleview_status,
    parse_address,
    parse_roofing_measurements,
    verify_webhook_signature,
)
from .models import EagleViewRoofOrder
from .services import refresh_order
from .tasks import sync_pending_eagleview_orders

EAGLEVIEW_ENV = {
    'EAGLEVIEW_CLIENT_ID': 'client-id',
    'EAGLEVIEW_CLIENT_SECRET': 'client-secret',
    'EAGLEVIEW_WEBHOOK_SECRET': 's3cret',
}

CONFIG = EagleViewConfig(
    client_id='client-id',
    client_secret='client-secret',
    webhook_secret='s3cret',
    base_url='https://api.eagleview.test',
    auth_url='https://auth.eagleview.test/token',
)


def fake_response(status=200, data=None):
    response = mock.Mock()
    response.ok = status < 400
    response.status_code = status
    response.json.return_value = data
    response.text = json.dumps(data)
    return response


def make_user(username="roofer"):
    return User.objects.create_user(username=username, email=f"{username}@example.com", password="pw")


class AddressParsingTest(SimpleTestCase):
    def test_comma_separated(self):
        self.assertEqual(
            parse_address("123 Main St, Springfield, il 62701"),
            EagleViewAddress('123 Main St', 'Springfield', 'IL', '62701'),
        )

    def test_city_state_without_comma(self):
        parsed = parse_address("9 Oak Ave, Madison WI 53703-1234")
        self.assertEqual(parsed.city, 'Madison')
        self.assertEqual(parsed.state, 'WI')
        self.assertEqual(parsed.zip, '53703-1234')
        self.assertEqual(parsed.country, 'US')

    def test_unparseable(self):
        self.assertIsNone(parse_address("somewhere over the rainbow"))
        self.assertIsNone(parse_address("123 Main St, Springfield, Illinois 62701"))


class HelpersTest(SimpleTestCase):
    def test_status_map(self):
        self.assertEqual(map_eagleview_status('CREATED'), 'queued')
        self.assertEqual(map_eagleview_status('PENDING'), 'queued')
        self.assertEqual(map_eagleview_status('IN_PROGRESS'), 'processing')
        self.assertEqual(map_eagleview_status('COMPLETED'), 'completed')
        self.assertEqual(map_eagleview_status('CANCELLED'), 'failed')
        self.assertEqual(map_eagleview_status('SOMETHING_NEW'), 'queued')
        self.assertEqual(map_eagleview_status(None), 'queued')

    def test_measurements_absent(self):
        self.assertIsNone(parse_roofing_measurements({'reportId': 'r1'}))

    def test_measurements_squares_from_area(self):
        result = parse_roofing_measurements({
            'measurements': {
                'totalRoofArea': 2450,
                'ridgesLength': 40,
                'pitchBreakdown': [{'pitch': '6/12', 'area': 2000}],
            },
        })
        self.assertEqual(result['squares'], 25)
        self.assertEqual(result['roofAreaSqFt'], 2450)
        self.assertEqual(result['ridgesFt'], 40)
        self.assertEqual(result['hipsFt'], 0)
        self.assertIsNone(result['flashingFt'])
        self.assertEqual(result['pitchBreakdown'], [{'pitch': '6/12', 'areaSqFt': 2000}])

    def test_measurements_prefer_total_squares(self):
        result = parse_roofing_measurements({'measurements': {'totalSquares': 31, 'totalRoofArea': 2450}})
        self.assertEqual(result['squares'], 31)

    def test_signature(self):
        self.assertTrue(verify_webhook_signature('s3cret', 's3cret'))
        self.assertFalse(verify_webhook_signature('wrong', 's3cret'))
        self.assertFalse(verify_webhook_signature(None, 's3cret'))
        self.assertFalse(verify_webhook_signature('s3cret', ''))


class TokenCacheTest(SimpleTestCase):
    def setUp(self):
        EagleViewClient.clear_token_cache()
        self.addCleanup(EagleViewClient.clear_token_cache)
        self.session = mock.Mock()
        self.session.post.return_value = fake_response(data={'access_token': 'tok-1', 'expires_in': 3600})

    def test_token_is_cached(self):
        client = EagleViewClient(config=CONFIG, session=self.session)
        self.assertEqual(client.get_access_token(), 'tok-1')
        self.assertEqual(EagleViewClient(config=CONFIG, session=self.session).get_access_token(), 'tok-1')
        self.assertEqual(self.session.post.call_count, 1)

        _, kwargs = self.session.post.call_args
        self.assertEqual(kwargs['data']['grant_type'], 'client_credentials')
        self.assertEqual(kwargs['data']['scope'], 'measurement:create measurement:read report:read')

    def test_token_refreshed_near_expiry(self):
        client = EagleViewClient(config=CONFIG, session=self.session)
        with mock.patch('apps.roofing.client.time.time', return_value=1000.0):
            client.get_access_token()
        # 3600s token, refreshed 5 minutes early
        with mock.patch('apps.roofing.client.time.time', return_value=1000.0 + 3299):
            client.get_access_token()
        self.assertEqual(self.session.post.call_count, 1)
        with mock.patch('apps.roofing.client.time.time', return_value=1000.0 + 3301):
            client.get_access_token()
        self.assertEqual(self.session.post.call_count, 2)

    def test_token_failure(self):
        self.session.post.return_value = fake_response(status=401, data={'error': 'invalid_client'})
        with self.assertRaises(EagleViewError) as ctx:
            EagleViewClient(config=CONFIG, session=self.session).get_access_token()
        self.assertEqual(ctx.exception.status, 401)

    def test_create_order_payload(self):
        self.session.request.return_value = fake_response(data={'orderId': 'ev-1', 'status': 'CREATED'})
        client = EagleViewClient(config=CONFIG, session=self.session)
        result = client.create_measurement_order(
            EagleViewAddress('1 Elm St', 'Austin', 'TX', '78701'), 'ref-1', 'https://hook.test'
        )
        self.assertEqual(result['orderId'], 'ev-1')

        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('POST', 'https://api.eagleview.test/v2/orders'))
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer tok-1')
        self.assertEqual(kwargs['json'], {
            'address': {
                'streetAddress': '1 Elm St',
                'city': 'Austin',
                'state': 'TX',
                'postalCode': '78701',
                'country': 'US',
            },
            'productType': 'PREMIUM_ROOF_MEASUREMENT',
            'referenceId': 'ref-1',
            'deliveryMethod': 'API',
            'callbackUrl': 'https://hook.test',
        })

    def test_api_error(self):
        self.session.request.return_value = fake_response(status=500, data={})
        client = EagleViewClient(config=CONFIG, session=self.session)
        with self.assertRaises(EagleViewError) as ctx:
            client.get_order_status('ev-1')
        self.assertEqual(ctx.exception.status, 500)


@mock.patch.dict(os.environ, EAGLEVIEW_ENV)
class OrderAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.user = make_user()
        self.client.force_login(self.user)

    def _order(self, body):
        return self.client.post("/api/roofing/eagleview/order", data=json.dumps(body), content_type="application/json")

    def test_not_configured(self):
        with mock.patch.dict(os.environ, {'EAGLEVIEW_CLIENT_ID': ''}):
            response = self._order({'jobId': 'j1', 'trade': 'roofing', 'address': '1 Elm St, Austin, TX 78701'})
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['error']['code'], 'NOT_CONFIGURED')

    def test_rejects_other_trades(self):
        response = self._order({'jobId': 'j1', 'trade': 'bathroom', 'address': '1 Elm St, Austin, TX 78701'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['code'], 'INVALID_INPUT')

    def test_requires_address(self):
        response = self._order({'jobId': 'j1', 'trade': 'roofing', 'address1': '1 Elm St'})
        self.assertEqual(response.status_code, 400)

    def test_unparseable_address(self):
        response = self._order({'jobId': 'j1', 'trade': 'roofing', 'address': 'the yellow house on the hill'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('Could not parse address', response.json()['error']['message'])

    @mock.patch('apps.roofing.services.EagleViewClient')
    def test_create_order(self, client_cls):
        client_cls.return_value.create_measurement_order.return_value = {
            'orderId': 'ev-42',
            'status': 'CREATED',
            'estimatedCompletionDate': '2026-01-02',
        }
        response = self._order({
            'jobId': 'j1', 'trade': 'roofing',
            'address1': '1 Elm St', 'city': 'Austin', 'state': 'TX', 'zip': '78701',
        })
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['eagleviewOrderId'], 'ev-42')
        self.assertEqual(body['status'], 'queued')
        self.assertEqual(body['estimatedCompletionDate'], '2026-01-02')

        order = EagleViewRoofOrder.objects.get()
        self.assertEqual(order.address, '1 Elm St, Austin, TX 78701')
        address, reference_id, webhook_url = client_cls.return_value.create_measurement_order.call_args[0]
        self.assertEqual(reference_id, str(order.id))
        self.assertTrue(webhook_url.endswith('/api/webhooks/eagleview'))

    @mock.patch('apps.roofing.services.EagleViewClient')
    def test_existing_pending_order_returned(self, client_cls):
        order = EagleViewRoofOrder.objects.create(
            job_id='j1', user=self.user, address='x', status=EagleViewRoofOrder.Status.PROCESSING,
            eagleview_order_id='ev-1',
        )
        response = self._order({'jobId': 'j1', 'trade': 'roofing', 'address': '1 Elm St, Austin, TX 78701'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['orderId'], str(order.id))
        self.assertEqual(response.json()['message'], 'An order is already in progress for this job')
        client_cls.return_value.create_measurement_order.assert_not_called()

    @mock.patch('apps.roofing.services.EagleViewClient')
    def test_upstream_failure_recorded(self, client_cls):
        client_cls.return_value.create_measurement_order.side_effect = EagleViewError('boom', status=500)
        response = self._order({'jobId': 'j1', 'trade': 'roofing', 'address': '1 Elm St, Austin, TX 78701'})
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()['error']['code'], 'EAGLEVIEW_ERROR')
        self.assertEqual(EagleViewRoofOrder.objects.get().status, EagleViewRoofOrder.Status.FAILED)


class StatusAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.user = make_user()
        self.client.force_login(self.user)

    def test_requires_job_id(self):
        response = self.client.get("/api/roofing/eagleview/status")
        self.assertEqual(response.status_code, 400)

    def test_not_found(self):
        response = self.client.get("/api/roofing/eagleview/status?jobId=nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error']['code'], 'NOT_FOUND')

    def test_other_users_orders_hidden(self):
        EagleViewRoofOrder.objects.create(job_id='j1', user=make_user("other"), address='x')
        self.assertEqual(self.client.get("/api/roofing/eagleview/status?jobId=j1").status_code, 404)

    def test_completed(self):
        EagleViewRoofOrder.objects.create(
            job_id='j1', user=self.user, address='x', status=EagleViewRoofOrder.Status.COMPLETED,
            eagleview_order_id='ev-1', eagleview_report_id='r-1', report_url='https://ev.test/r-1',
            roofing_measurements=parse_roofing_measurements({'measurements': {'totalSquares': 20, 'totalRoofArea': 2000}}),
        )
        body = self.client.get("/api/roofing/eagleview/status?jobId=j1").json()
        self.assertEqual(body['reportId'], 'r-1')
        self.assertEqual(body['measurements']['squares'], 20)
        self.assertNotIn('errorMessage', body)

    def test_failed(self):
        EagleViewRoofOrder.objects.create(
            job_id='j1', user=self.user, address='x', status=EagleViewRoofOrder.Status.FAILED,
            error_message='Address not serviceable',
        )
        body = self.client.get("/api/roofing/eagleview/status?jobId=j1").json()
        self.assertEqual(body['errorMessage'], 'Address not serviceable')
        self.assertNotIn('reportUrl', body)


@mock.patch.dict(os.environ, EAGLEVIEW_ENV)
class WebhookTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.order = EagleViewRoofOrder.objects.create(
            job_id='j1', user=make_user(), address='x',
            status=EagleViewRoofOrder.Status.QUEUED, eagleview_order_id='ev-1',
        )

    def _hook(self, body, secret='s3cret', raw=None):
        headers = {'HTTP_X_WEBHOOK_SECRET': secret} if secret else {}
        return self.client.post(
            "/api/webhooks/eagleview",
            data=raw if raw is not None else json.dumps(body),
            content_type="application/json",
            **headers
        )

    def test_not_configured(self):
        with mock.patch.dict(os.environ, {'EAGLEVIEW_CLIENT_SECRET': ''}):
            self.assertEqual(self._hook({'orderId': 'ev-1'}).status_code, 503)

    def test_bad_signature(self):
        self.assertEqual(self._hook({'orderId': 'ev-1'}, secret='nope').status_code, 401)
        self.assertEqual(self._hook({'orderId': 'ev-1'}, secret=None).status_code, 401)

    def test_alternate_signature_header(self):
        response = self.client.post(
            "/api/webhooks/eagleview",
            data=json.dumps({'orderId': 'ev-1'}),
            content_type="application/json",
            HTTP_X_EAGLEVIEW_SIGNATURE='s3cret',
        )
        self.assertEqual(response.status_code, 200)

    def test_no_secret_skips_verification(self):
        with mock.patch.dict(os.environ, {'EAGLEVIEW_WEBHOOK_SECRET': ''}):
            self.assertEqual(self._hook({'orderId': 'ev-1'}, secret=None).status_code, 200)

    def test_bad_body(self):
        self.assertEqual(self._hook(None, raw='{oops').status_code, 400)
        response = self._hook({'eventType': 'ORDER_FAILED'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Missing orderId')

    def test_unknown_order_acknowledged(self):
        response = self._hook({'eventType': 'ORDER_FAILED', 'orderId': 'ev-404'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'received': True, 'message': 'Order not found'})

    def test_status_update(self):
        self._hook({'eventType': 'ORDER_STATUS_UPDATE', 'orderId': 'ev-1', 'status': 'IN_PROGRESS'})
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'processing')
        self.assertEqual(self.order.payload_json['lastEvent']['status'], 'IN_PROGRESS')

    @mock.patch('apps.roofing.services.EagleViewClient')
    def test_report_ready(self, client_cls):
        client_cls.return_value.get_report.return_value = {
            'reportId': 'r-1',
            'reportUrl': 'https://ev.test/r-1',
            'measurements': {'totalRoofArea': 1800},
        }
        response = self._hook({'eventType': 'REPORT_READY', 'orderId': 'ev-1', 'reportId': 'r-1'})
        self.assertEqual(response.json(), {'received': True})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'completed')
        self.assertEqual(self.order.report_url, 'https://ev.test/r-1')
        self.assertEqual(self.order.roofing_measurements['squares'], 18)
        self.assertIn('reportData', self.order.payload_json)

    @mock.patch('apps.roofing.services.EagleViewClient')
    def test_report_ready_without_fetchable_report(self, client_cls):
        client_cls.return_value.get_report.side_effect = EagleViewError('down', status=503)
        self._hook({'eventType': 'REPORT_READY', 'orderId': 'ev-1', 'reportId': 'r-1', 'reportUrl': 'https://ev.test/x'})
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'completed')
        self.assertEqual(self.order.report_url, 'https://ev.test/x')
        self.assertIsNone(self.order.roofing_measurements)

    def test_order_failed(self):
        self._hook({'eventType': 'ORDER_FAILED', 'orderId': 'ev-1'})
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'failed')
        self.assertEqual(self.order.error_message, 'Order failed')

    @mock.patch('apps.roofing.services.handle_webhook_event', side_effect=RuntimeError('db down'))
    def test_internal_error_acknowledged(self, _handler):
        response = self._hook({'eventType': 'ORDER_FAILED', 'orderId': 'ev-1'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'received': True, 'error': 'Internal error'})


@mock.patch.dict(os.environ, EAGLEVIEW_ENV)
class PollingTest(TestCase):
    def setUp(self):
        self.user = make_user()

    def _order(self, **kwargs):
        defaults = {'job_id': 'j1', 'user': self.user, 'address': 'x', 'status': EagleViewRoofOrder.Status.QUEUED}
        defaults.update(kwargs)
        return EagleViewRoofOrder.objects.create(**defaults)

    def test_refresh_completes_with_measurements(self):
        order = self._order(eagleview_order_id='ev-1')
        client = mock.Mock()
        client.get_order_status.return_value = {'orderId': 'ev-1', 'status': 'COMPLETED', 'reportId': 'r-1'}
        client.get_report.return_value = {'reportUrl': 'https://ev.test/r-1', 'measurements': {'totalSquares': 22}}

        refresh_order(order, client=client)
        order.refresh_from_db()
        self.assertEqual(order.status, 'completed')
        self.assertEqual(order.eagleview_report_id, 'r-1')
        self.assertEqual(order.roofing_measurements['squares'], 22)
        client.get_report.assert_called_once_with('r-1')

    def test_refresh_in_progress(self):
        order = self._order(eagleview_order_id='ev-1')
        client = mock.Mock()
        client.get_order_status.return_value = {'orderId': 'ev-1', 'status': 'IN_PROGRESS'}
        refresh_order(order, client=client)
        order.refresh_from_db()
        self.assertEqual(order.status, 'processing')
        client.get_report.assert_not_called()

    @mock.patch('apps.roofing.services.EagleViewClient')
    def test_sync_refreshes_pending_orders(self, client_cls):
        client_cls.return_value.get_order_status.return_value = {'status': 'IN_PROGRESS'}
        pending = self._order(eagleview_order_id='ev-1')
        done = self._order(job_id='j2', eagleview_order_id='ev-2', status=EagleViewRoofOrder.Status.COMPLETED)
        self._order(job_id='j3')  # never reached EagleView

        result = sync_pending_eagleview_orders()
        self.assertEqual(result, "Queued 1 orders")

        pending.refresh_from_db()
        done.refresh_from_db()
        self.assertEqual(pending.status, 'processing')
        self.assertEqual(done.status, 'completed')
        client_cls.return_value.get_order_status.assert_called_once_with('ev-1')

    def test_sync_skipped_when_not_configured(self):
        with mock.patch.dict(os.environ, {'EAGLEVIEW_CLIENT_ID': ''}):
            self.assertEqual(sync_pending_eagleview_orders(), "EagleView not configured")
