import copy
import json

from django.test import SimpleTestCase, TestCase, Client

from apps.identity.models import User
from .dedup import deduplicate_findings, deduplicate_items, extract_keywords, semantic_key


def finding(id, issue, category="repair", confidence=0.8, photo_ids=None):
    return {
        "id": id,
        "issue": issue,
        "category": category,
        "confidence": confidence,
        "photo_ids": photo_ids or [],
    }


class KeywordTest(SimpleTestCase):
    def test_extract_keywords(self):
        self.assertEqual(
            extract_keywords("The faucet is LEAKING, possibly from the handle!"),
            ["faucet", "handle", "leaking"],
        )

    def test_short_and_stop_words_dropped(self):
        self.assertEqual(extract_keywords("an old tub is at it"), ["old", "tub"])

    def test_semantic_key(self):
        self.assertEqual(semantic_key("Leaking faucet"), "faucet:leaking")
        self.assertEqual(semantic_key("Cracked tile near the tub"), "tile+tub:cracked")
        self.assertEqual(semantic_key("Something odd"), "general:issue")

    def test_substring_matching(self):
        # "faucets" contains "faucet"; "rusted" contains "rust"
        self.assertEqual(semantic_key("rusted faucets"), "faucets:rusted")


class DeduplicateTest(SimpleTestCase):
    def test_singletons_pass_through(self):
        items = [finding("1", "Leaking faucet"), finding("2", "Cracked tile")]
        result = deduplicate_findings(items)
        self.assertEqual(result, items)
        self.assertIs(result[0], items[0])

    def test_merges_photo_ids_in_first_seen_order(self):
        items = [
            finding("1", "Leaking faucet", photo_ids=[3, 1]),
            finding("2", "faucet leaking detected", photo_ids=[1, 2]),
        ]
        result = deduplicate_findings(items)
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0]["photo_ids"], [3, 1, 2])

    def test_prefers_damage_category(self):
        items = [
            finding("1", "Leaking faucet", category="plumbing", confidence=0.99),
            finding("2", "Faucet is leaking badly", category="damage", confidence=0.5),
        ]
        self.assertEqual(deduplicate_findings(items)[0]["id"], "2")

    def test_prefers_clearly_higher_confidence(self):
        items = [
            finding("1", "Leaking faucet", confidence=0.6),
            finding("2", "Faucet leaking under sink cabinet area", confidence=0.9),
        ]
        # Different objects, so not grouped
        self.assertEqual(len(deduplicate_findings(items)), 2)

        items = [
            finding("1", "Leaking faucet", confidence=0.6),
            finding("2", "The faucet is leaking", confidence=0.9),
        ]
        self.assertEqual(deduplicate_findings(items)[0]["id"], "2")

    def test_close_confidence_prefers_shorter_text(self):
        items = [
            finding("1", "The faucet is leaking", confidence=0.85),
            finding("2", "Leaking faucet", confidence=0.8),
        ]
        self.assertEqual(deduplicate_findings(items)[0]["id"], "2")

    def test_groups_keep_first_seen_order(self):
        items = [
            finding("a", "Cracked tile"),
            finding("b", "Leaking faucet"),
            finding("c", "tile cracked"),
        ]
        self.assertEqual([f["id"] for f in deduplicate_findings(items)], ["a", "b"])

    def test_inputs_not_mutated(self):
        items = [
            finding("1", "Leaking faucet", photo_ids=[1]),
            finding("2", "faucet leaking", photo_ids=[2]),
        ]
        snapshot = copy.deepcopy(items)
        result = deduplicate_findings(items)
        self.assertEqual(items, snapshot)
        self.assertIsNot(result[0], items[0])
        self.assertIsNot(result[0], items[1])

    def test_custom_text_field(self):
        items = [
            {"label": "Peeling paint", "category": "painting", "confidence": 0.7, "photo_ids": [1]},
            {"label": "paint peeling", "category": "painting", "confidence": 0.7, "photo_ids": [2]},
        ]
        result = deduplicate_items(items, lambda item: item["label"])
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0]["photo_ids"], [1, 2])


class DeduplicateAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(username="scanner", email="scanner@example.com", password="pw")

    def _post(self, body):
        return self.client.post(
            "/api/scopescan/findings/deduplicate",
            data=json.dumps(body),
            content_type="application/json",
        )

    def test_requires_auth(self):
        self.assertEqual(self._post({"findings": []}).status_code, 401)

    def test_deduplicate(self):
        self.client.force_login(self.user)
        response = self._post({"findings": [
            finding("1", "Leaking faucet", photo_ids=[1]),
            finding("2", "faucet leaking", photo_ids=[2]),
            finding("3", "Mold on ceiling", category="damage", photo_ids=[2]),
        ]})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["removed"], 1)
        self.assertEqual([f["id"] for f in body["findings"]], ["1", "3"])
        self.assertEqual(body["findings"][0]["photo_ids"], [1, 2])

    def test_rejects_unknown_category(self):
        self.client.force_login(self.user)
        response = self._post({"findings": [finding("1", "x", category="cosmetic")]})
        self.assertEqual(response.status_code, 422)
