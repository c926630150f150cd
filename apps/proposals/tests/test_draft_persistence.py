import json

from django.test import SimpleTestCase

from apps.proposals.draft_persistence import (
    DRAFT_SCHEMA_VERSION,
    create_empty_draft,
    deserialize_draft,
    draft_has_content,
    drafts_are_equal,
    format_relative_time,
    get_draft_storage_key,
    serialize_draft,
)


def make_draft(**overrides):
    draft = create_empty_draft()
    draft.update(overrides)
    return draft


def envelope(version, draft, timestamp=1_700_000_000_000):
    return json.dumps({"version": version, "timestamp": timestamp, "draft": draft})


class StorageKeyTest(SimpleTestCase):
    def test_user_key(self):
        self.assertEqual(get_draft_storage_key("abc"), "scopegen_proposal_draft_abc")

    def test_anonymous_key(self):
        self.assertEqual(get_draft_storage_key(None), "scopegen_proposal_draft_anon")
        self.assertEqual(get_draft_storage_key(""), "scopegen_proposal_draft_anon")


class EmptyDraftTest(SimpleTestCase):
    def test_defaults(self):
        draft = create_empty_draft()
        self.assertIsNone(draft["proposalId"])
        self.assertEqual(len(draft["services"]), 1)
        service = draft["services"][0]
        self.assertEqual(service["jobSize"], 2)
        self.assertEqual(service["windowQuantity"], 1)
        self.assertEqual(service["windowSizePreset"], "30x60")
        self.assertFalse(draft_has_content(draft))

    def test_service_ids_are_unique(self):
        self.assertNotEqual(create_empty_draft()["services"][0]["id"], create_empty_draft()["services"][0]["id"])


class DeserializeTest(SimpleTestCase):
    def test_current_version_round_trip(self):
        draft = make_draft(clientName="Ada", proposalId=7)
        result = deserialize_draft(serialize_draft(draft, timestamp=123))
        self.assertTrue(result.success)
        self.assertEqual(result.draft, draft)
        self.assertEqual(result.timestamp, 123)

    def test_serialized_envelope(self):
        payload = json.loads(serialize_draft(make_draft()))
        self.assertEqual(payload["version"], DRAFT_SCHEMA_VERSION)
        self.assertIsInstance(payload["timestamp"], int)

    def test_errors(self):
        cases = [
            (None, "No draft data"),
            ("", "No draft data"),
            ("[1, 2]", "Invalid draft format"),
            ('"text"', "Invalid draft format"),
            (json.dumps({"timestamp": 1, "draft": {}}), "Missing version"),
            (envelope(4, make_draft()), "Schema version mismatch: expected 3, got 4"),
            (envelope(0, make_draft()), "Schema version mismatch: expected 3, got 0"),
            (json.dumps({"version": 3, "draft": make_draft()}), "Missing timestamp"),
            (envelope(3, {"clientName": "x"}), "Invalid draft structure"),
        ]
        for raw, error in cases:
            with self.subTest(raw=raw):
                result = deserialize_draft(raw)
                self.assertFalse(result.success)
                self.assertIsNone(result.draft)
                self.assertIsNone(result.timestamp)
                self.assertEqual(result.error, error)

    def test_non_finite_numbers(self):
        draft = json.dumps(make_draft())
        cases = [
            ('{"version": 3, "timestamp": 1e400, "draft": %s}' % draft, "Missing timestamp"),
            ('{"version": 3, "timestamp": NaN, "draft": %s}' % draft, "Missing timestamp"),
            ('{"version": NaN, "timestamp": 1, "draft": %s}' % draft, "Schema version mismatch: expected 3, got nan"),
            ('{"version": -Infinity, "timestamp": 1, "draft": %s}' % draft, "Schema version mismatch: expected 3, got -inf"),
        ]
        for raw, error in cases:
            with self.subTest(error=error):
                result = deserialize_draft(raw)
                self.assertFalse(result.success)
                self.assertEqual(result.error, error)

    def test_parse_error(self):
        result = deserialize_draft("{not json")
        self.assertFalse(result.success)
        self.assertTrue(result.error.startswith("Parse error: "))

    def test_rejects_bad_service(self):
        draft = make_draft()
        draft["services"][0]["jobSize"] = "2"
        self.assertEqual(deserialize_draft(envelope(3, draft)).error, "Invalid draft structure")

    def test_boolean_is_not_a_number(self):
        draft = make_draft(proposalId=True)
        self.assertEqual(deserialize_draft(envelope(3, draft)).error, "Invalid draft structure")


class MigrationTest(SimpleTestCase):
    def _v1_draft(self):
        return {
            "clientName": "Old",
            "address": "1 Elm St",
            "services": [{
                "id": "s1",
                "tradeId": "windows",
                "jobTypeId": "window-replacement",
                "jobSize": 2,
                "homeArea": "",
                "footage": None,
                "options": {},
            }],
            "photos": [
                {"id": "p1", "url": "https://cdn.example.com/a.jpg"},
                {"id": "p2", "url": "blob:https://app/123"},
            ],
            "enhancedScopes": {},
        }

    def test_v1_migrates_through_v3(self):
        raw = envelope(1, self._v1_draft())
        result = deserialize_draft(raw)
        self.assertTrue(result.success)
        service = result.draft["services"][0]
        self.assertEqual(service["windowQuantity"], 1)
        self.assertEqual(service["windowSizePreset"], "30x60")
        self.assertIsNone(service["windowWidthIn"])
        self.assertIsNone(service["windowHeightIn"])
        self.assertIsNone(result.draft["proposalId"])
        self.assertEqual([p["id"] for p in result.draft["photos"]], ["p1"])

    def test_v1_keeps_existing_window_values(self):
        draft = self._v1_draft()
        draft["services"][0]["windowQuantity"] = 4
        result = deserialize_draft(envelope(1, draft))
        self.assertEqual(result.draft["services"][0]["windowQuantity"], 4)

    def test_v1_null_window_values_get_defaults(self):
        draft = self._v1_draft()
        draft["services"][0]["windowQuantity"] = None
        draft["services"][0]["windowSizePreset"] = None
        service = deserialize_draft(envelope(1, draft)).draft["services"][0]
        self.assertEqual(service["windowQuantity"], 1)
        self.assertEqual(service["windowSizePreset"], "30x60")

    def test_v2_drops_unrestorable_photos(self):
        draft = self._v1_draft()
        draft["proposalId"] = 99
        draft["photos"] = [
            {"id": "ok", "url": " /media/proposals/1/a.jpg "},
            {"id": "blank", "url": "   "},
            {"id": "missing"},
            {"id": "blob", "url": "  blob:xyz"},
            "not-a-photo",
        ]
        result = deserialize_draft(envelope(2, draft))
        self.assertTrue(result.success)
        self.assertIsNone(result.draft["proposalId"])
        self.assertEqual([p["id"] for p in result.draft["photos"]], ["ok"])

    def test_migration_does_not_mutate_input(self):
        draft = self._v1_draft()
        raw = envelope(1, draft)
        deserialize_draft(raw)
        self.assertNotIn("windowQuantity", draft["services"][0])

    def test_invalid_after_migration(self):
        result = deserialize_draft(envelope(2, {"clientName": 5}))
        self.assertEqual(result.error, "Invalid draft structure after migration")


class ContentAndEqualityTest(SimpleTestCase):
    def test_content_detection(self):
        self.assertTrue(draft_has_content(make_draft(clientName=" Ada ")))
        self.assertFalse(draft_has_content(make_draft(clientName="   ")))
        self.assertTrue(draft_has_content(make_draft(enhancedScopes={"s1": ["Tile"]})))
        self.assertTrue(draft_has_content(make_draft(photos=[{"id": "p", "url": "/x.jpg"}])))
        draft = make_draft()
        draft["services"][0]["tradeId"] = "roofing"
        self.assertTrue(draft_has_content(draft))

    def test_equality(self):
        a = make_draft(clientName="Ada")
        b = json.loads(json.dumps(a))
        self.assertTrue(drafts_are_equal(a, b))
        b["services"][0]["footage"] = 120
        self.assertFalse(drafts_are_equal(a, b))
        self.assertFalse(drafts_are_equal(a, make_draft(clientName="Bob")))


class RelativeTimeTest(SimpleTestCase):
    NOW = 1_700_000_000_000

    def test_buckets(self):
        self.assertEqual(format_relative_time(self.NOW - 9_999, now=self.NOW), "just now")
        self.assertEqual(format_relative_time(self.NOW - 42_000, now=self.NOW), "42s ago")
        self.assertEqual(format_relative_time(self.NOW - 5 * 60_000, now=self.NOW), "5 min ago")
        self.assertEqual(format_relative_time(self.NOW - 3 * 3_600_000, now=self.NOW), "3h ago")

    def test_older_than_a_day_shows_date(self):
        self.assertEqual(format_relative_time(self.NOW - 2 * 86_400_000, now=self.NOW), "2023-11-12")
