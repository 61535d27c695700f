# tests/test_publish_state.py
import unittest

from entity_importer.processing.publish_state import effective_import_as_drafts, normalize_publish_state
from tests.helpers import ARTICLE, AUTHOR, load_schema


class TestPublishState(unittest.TestCase):
    def setUp(self):
        schema = load_schema()
        self.article = schema.get_model(ARTICLE)
        self.author = schema.get_model(AUTHOR)

    def test_draft_mode_clears_value(self):
        record = {"slug": "a", "publishedAt": "2024-01-01T00:00:00.000Z"}
        self.assertIs(normalize_publish_state(record, self.article, True), record)
        self.assertIsNone(record["publishedAt"])

    def test_draft_mode_adds_missing_field(self):
        self.assertEqual(normalize_publish_state({"slug": "a"}, self.article, True), {"slug": "a", "publishedAt": None})

    def test_publish_mode_keeps_value(self):
        record = normalize_publish_state({"publishedAt": "2024-01-01"}, self.article, False)
        self.assertEqual(record["publishedAt"], "2024-01-01")
        self.assertNotIn("publishedAt", normalize_publish_state({}, self.article, False))

    def test_model_without_drafts_drops_field(self):
        for drafts in (True, False):
            record = normalize_publish_state({"email": "a@example.com", "publishedAt": None}, self.author, drafts)
            self.assertEqual(record, {"email": "a@example.com"})

    def test_effective_drafts_flag(self):
        self.assertTrue(effective_import_as_drafts(self.article, True))
        self.assertFalse(effective_import_as_drafts(self.article, False))
        self.assertFalse(effective_import_as_drafts(self.author, True))


if __name__ == '__main__':
    unittest.main()
