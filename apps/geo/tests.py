import json
from unittest import mock

import requests
from django.test import SimpleTestCase, TestCase, Client, override_settings

from apps.identity.models import User
from .services import (
    GeoServiceError,
    build_validation_request,
    extract_address_components,
    reverse_geocode,
    summarize_validation,
    validate_address,
)


def fake_response(status=200, data=None):
    response = mock.Mock()
    response.ok = status < 400
    response.status_code = status
    response.json.return_value = data
    response.text = json.dumps(data)
    return response


CONFIRMED_RESULT = {
    'verdict': {
        'validationGranularity': 'PREMISE',
        'geocodeGranularity': 'PREMISE',
        'addressComplete': True,
    },
    'address': {'formattedAddress': '123 Main Street, Springfield, IL 62701-1234, USA'},
    'metadata': {'residential': True},
    'uspsData': {
        'standardizedAddress': {
            'firstAddressLine': '123 MAIN ST',
            'cityStateZipAddressLine': 'SPRINGFIELD IL 62701-1234',
        },
        'dpvConfirmation': 'Y',
    },
}

GEOCODE_RESULT = {
    'formatted_address': '1600 Amphitheatre Pkwy, Mountain View, CA 94043, USA',
    'address_components': [
        {'long_name': '1600', 'short_name': '1600', 'types': ['street_number']},
        {'long_name': 'Amphitheatre Parkway', 'short_name': 'Amphitheatre Pkwy', 'types': ['route']},
        {'long_name': 'Mountain View', 'short_name': 'Mountain View', 'types': ['locality', 'political']},
        {'long_name': 'Santa Clara County', 'short_name': 'Santa Clara County', 'types': ['administrative_area_level_2']},
        {'long_name': 'California', 'short_name': 'CA', 'types': ['administrative_area_level_1', 'political']},
        {'long_name': 'United States', 'short_name': 'US', 'types': ['country', 'political']},
        {'long_name': '94043', 'short_name': '94043', 'types': ['postal_code']},
    ],
    'geometry': {'location': {'lat': 37.422, 'lng': -122.084}, 'location_type': 'ROOFTOP'},
    'place_id': 'place-1',
    'types': ['street_address'],
}


class BuildRequestTest(SimpleTestCase):
    def test_structured_preferred(self):
        request = build_validation_request({
            'address': 'ignored',
            'structured': {
                'line1': '123 Main St',
                'line2': 'Apt 4',
                'city': 'Springfield',
                'state': 'IL',
                'postalCode': '62701',
                'postalCodeSuffix': '1234',
            },
        })
        self.assertEqual(request, {
            'address': {
                'regionCode': 'US',
                'addressLines': ['123 Main St', 'Apt 4'],
                'locality': 'Springfield',
                'administrativeArea': 'IL',
                'postalCode': '62701-1234',
            },
            'enableUspsCass': True,
        })

    def test_non_us_disables_cass(self):
        request = build_validation_request({'structured': {'line1': '1 King St', 'regionCode': 'CA'}})
        self.assertFalse(request['enableUspsCass'])

    def test_legacy_string(self):
        request = build_validation_request({'address': '  123 Main St, Springfield IL  '})
        self.assertEqual(request['address'], {'regionCode': 'US', 'addressLines': ['123 Main St, Springfield IL']})

    def test_nothing_usable(self):
        self.assertIsNone(build_validation_request({}))
        self.assertIsNone(build_validation_request({'address': '   '}))


class SummarizeValidationTest(SimpleTestCase):
    def test_confirmed(self):
        summary = summarize_validation(CONFIRMED_RESULT)
        self.assertEqual(summary['verdict'], 'CONFIRMED')
        self.assertEqual(summary['standardizedAddress'], '123 MAIN ST, SPRINGFIELD IL 62701-1234')
        self.assertEqual(summary['correctedFormatted'], summary['standardizedAddress'])
        self.assertEqual(summary['granularity'], 'PREMISE')
        self.assertTrue(summary['isResidential'])
        self.assertFalse(summary['missingSubpremise'])
        self.assertEqual(summary['messages'], [])

    def test_usps_city_state_fallback(self):
        result = {
            'verdict': {},
            'uspsData': {'standardizedAddress': {
                'firstAddressLine': '9 OAK AVE', 'city': 'MADISON', 'state': 'WI',
                'zipCode': '53703', 'zipCodeExtension': '0001',
            }},
        }
        self.assertEqual(summarize_validation(result)['standardizedAddress'], '9 OAK AVE, MADISON, WI 53703-0001')

    def test_google_formatted_fallback(self):
        result = {'verdict': {}, 'address': {'formattedAddress': '1 King St W, Toronto, ON'}}
        summary = summarize_validation(result)
        self.assertEqual(summary['standardizedAddress'], '1 King St W, Toronto, ON')
        self.assertEqual(summary['verdict'], 'UNKNOWN')
        self.assertEqual(summary['granularity'], 'UNKNOWN')

    def test_warnings(self):
        result = {
            'verdict': {
                'validationGranularity': 'ROUTE',
                'hasUnconfirmedComponents': True,
                'hasInferredComponents': True,
            },
            'address': {
                'unconfirmedComponentTypes': ['street_number', 'subpremise'],
                'missingComponentTypes': ['subpremise'],
            },
            'metadata': {'residential': True},
            'uspsData': {'dpvConfirmation': 'D', 'dpvFootnote': 'AAM3'},
        }
        summary = summarize_validation(result)
        self.assertEqual(summary['verdict'], 'UNCONFIRMED_COMPONENTS')
        self.assertTrue(summary['missingSubpremise'])
        self.assertTrue(summary['addressInferred'])
        self.assertEqual(summary['messages'], [
            'Address validated to street level only - building number may be unconfirmed',
            'Some address parts could not be verified: street number, subpremise',
            'This address may need a unit or apartment number',
            'Address is missing secondary information (apt/unit)',
            'Some parts of this address were inferred - please verify',
        ])

    def test_verdict_labels(self):
        self.assertEqual(summarize_validation({'verdict': {'hasInferredComponents': True}})['verdict'], 'INFERRED')
        self.assertEqual(summarize_validation({'verdict': {'hasReplacedComponents': True}})['verdict'], 'CORRECTED')

    def test_missing_subpremise_requires_residential(self):
        result = {'verdict': {}, 'address': {'missingComponentTypes': ['room']}, 'metadata': {'residential': False}}
        self.assertFalse(summarize_validation(result)['missingSubpremise'])
        result['metadata']['residential'] = True
        self.assertTrue(summarize_validation(result)['missingSubpremise'])


@override_settings(GOOGLE_MAPS_API_KEY='test-key')
class ValidateAddressTest(SimpleTestCase):
    def setUp(self):
        self.session = mock.Mock()

    def _error(self, body=None):
        with self.assertRaises(GeoServiceError) as ctx:
            validate_address(body or {'address': '123 Main St'}, session=self.session)
        return ctx.exception

    def test_calls_google(self):
        self.session.post.return_value = fake_response(data={'result': CONFIRMED_RESULT})
        validation = validate_address({'address': '123 Main St'}, session=self.session)
        self.assertEqual(validation['verdict'], 'CONFIRMED')

        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], 'https://addressvalidation.googleapis.com/v1:validateAddress')
        self.assertEqual(kwargs['params'], {'key': 'test-key'})
        self.assertEqual(kwargs['timeout'], 10)
        self.assertTrue(kwargs['json']['enableUspsCass'])

    def test_invalid_input(self):
        error = self._error({'address': ''})
        self.assertEqual((error.code, error.status), ('INVALID_INPUT', 400))

    @override_settings(GOOGLE_MAPS_API_KEY='')
    def test_not_configured(self):
        error = self._error()
        self.assertEqual((error.code, error.status), ('CONFIG_ERROR', 500))

    def test_api_disabled(self):
        self.session.post.return_value = fake_response(status=403, data={})
        error = self._error()
        self.assertEqual((error.code, error.status), ('API_DISABLED', 502))

    def test_api_error(self):
        self.session.post.return_value = fake_response(status=500, data={})
        self.assertEqual(self._error().code, 'API_ERROR')

    def test_no_result(self):
        self.session.post.return_value = fake_response(data={'responseId': 'x'})
        error = self._error()
        self.assertEqual((error.code, error.status), ('NO_RESULT', 404))

    def test_timeout(self):
        self.session.post.side_effect = requests.Timeout()
        error = self._error()
        self.assertEqual((error.code, error.status), ('TIMEOUT', 504))


@override_settings(GOOGLE_MAPS_API_KEY='test-key')
class ReverseGeocodeTest(SimpleTestCase):
    def setUp(self):
        self.session = mock.Mock()

    def _error(self, lat=37.4, lng=-122.0):
        with self.assertRaises(GeoServiceError) as ctx:
            reverse_geocode(lat, lng, session=self.session)
        return ctx.exception

    def test_components(self):
        components = extract_address_components(GEOCODE_RESULT['address_components'])
        self.assertEqual(components, {
            'streetNumber': '1600',
            'street': 'Amphitheatre Parkway',
            'city': 'Mountain View',
            'county': 'Santa Clara County',
            'state': 'California',
            'stateCode': 'CA',
            'country': 'United States',
            'countryCode': 'US',
            'postalCode': '94043',
        })

    def test_ok(self):
        self.session.get.return_value = fake_response(data={'status': 'OK', 'results': [GEOCODE_RESULT, GEOCODE_RESULT]})
        result = reverse_geocode(37.422, -122.084, session=self.session)
        self.assertEqual(result['data']['placeId'], 'place-1')
        self.assertEqual(result['data']['locationType'], 'ROOFTOP')
        self.assertEqual(len(result['allResults']), 2)

        _, kwargs = self.session.get.call_args
        self.assertEqual(kwargs['params']['latlng'], '37.422,-122.084')
        self.assertEqual(kwargs['params']['result_type'], 'street_address|premise|subpremise|route')

    def test_input_validation(self):
        self.assertEqual(self._error(lat='37.4').code, 'INVALID_INPUT')
        self.assertEqual(self._error(lat=True).code, 'INVALID_INPUT')
        self.assertEqual(self._error(lat=91).code, 'INVALID_LATITUDE')
        self.assertEqual(self._error(lng=-180.5).code, 'INVALID_LONGITUDE')
        self.session.get.assert_not_called()

    def test_google_statuses(self):
        cases = [
            ({'status': 'OK', 'results': []}, 'NO_RESULTS', 404),
            ({'status': 'ZERO_RESULTS', 'results': []}, 'NO_RESULTS', 404),
            ({'status': 'OVER_QUERY_LIMIT'}, 'QUOTA_EXCEEDED', 429),
            ({'status': 'REQUEST_DENIED', 'error_message': 'bad key'}, 'REQUEST_DENIED', 403),
            ({'status': 'INVALID_REQUEST'}, 'INVALID_REQUEST', 400),
            ({'status': 'WHAT'}, 'UNKNOWN_ERROR', 500),
        ]
        for data, code, status in cases:
            with self.subTest(status=data['status']):
                self.session.get.return_value = fake_response(data=data)
                error = self._error()
                self.assertEqual((error.code, error.status), (code, status))

    def test_http_failure(self):
        self.session.get.return_value = fake_response(status=503, data={})
        error = self._error()
        self.assertEqual((error.code, error.status), ('API_ERROR', 502))


@override_settings(GOOGLE_MAPS_API_KEY='test-key')
class GeoAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.client.force_login(User.objects.create_user(username="mapper", password="pw"))

    def _post(self, path, body):
        return self.client.post(path, data=json.dumps(body), content_type="application/json")

    @mock.patch('apps.geo.services.requests.post')
    def test_validate(self, post):
        post.return_value = fake_response(data={'result': CONFIRMED_RESULT})
        response = self._post("/api/address/validate", {'structured': {
            'line1': '123 Main St', 'city': 'Springfield', 'state': 'IL', 'postalCode': '62701',
        }})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['validation']['verdict'], 'CONFIRMED')
        self.assertEqual(body['validation']['dpvConfirmation'], 'Y')

    def test_validate_error_body(self):
        response = self._post("/api/address/validate", {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {
            'success': False,
            'error': {
                'code': 'INVALID_INPUT',
                'message': 'Address is required. Provide either structured fields or address string.',
            },
        })

    @mock.patch('apps.geo.services.requests.get')
    def test_reverse(self, get):
        get.return_value = fake_response(data={'status': 'OK', 'results': [GEOCODE_RESULT]})
        response = self._post("/api/geocoding/reverse", {'latitude': 37.422, 'longitude': -122.084})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['data']['components']['stateCode'], 'CA')
        self.assertNotIn('neighborhood', body['data']['components'])

    def test_reverse_rejects_strings(self):
        response = self._post("/api/geocoding/reverse", {'latitude': 'north', 'longitude': 0})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['code'], 'INVALID_INPUT')

    def test_requires_auth(self):
        response = Client().post("/api/geocoding/reverse", data="{}", content_type="application/json")
        self.assertEqual(response.status_code, 401)
