# tests/test_upsert_service.py
import unittest

from entity_importer.errors import InvalidShape, UnknownModel
from entity_importer.services.upsert_service import UpsertService
from tests.helpers import ARTICLE, AUTHOR, CATEGORY, HOMEPAGE, StoreTestCase


class TestUpsertService(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.upsert_service = UpsertService()

    def upsert(self, model_id, record, identifying_field=None, **context_kwargs):
        context = self.make_context(model_id=model_id, **context_kwargs)
        return self.upsert_service.upsert(model_id, record, context, identifying_field)

    def test_create_then_update_by_identifying_field(self):
        created = self.upsert(ARTICLE, {"slug": "hello", "title": "Hello"})
        updated = self.upsert(ARTICLE, {"slug": "hello", "title": "Hello again"})
        self.assertEqual(created["id"], updated["id"])
        self.assertEqual([e["title"] for e in self.entities(ARTICLE)], ["Hello again"])

    def test_input_record_not_modified(self):
        record = {"slug": "hello", "author": {"email": "ann@example.com"}}
        self.upsert(ARTICLE, record)
        self.assertEqual(record, {"slug": "hello", "author": {"email": "ann@example.com"}})

    def test_incoming_id_ignored_for_non_id_identifier(self):
        other = self.store.create(ARTICLE, {"slug": "other"})
        entity = self.upsert(ARTICLE, {"id": other["id"], "slug": "fresh"})
        self.assertNotEqual(entity["id"], other["id"])
        self.assertEqual(self.store.find_one(ARTICLE, {"id": other["id"]})["slug"], "other")

    def test_id_identifier_updates_by_pk(self):
        existing = self.store.create(CATEGORY, {"name": "Old"})
        entity = self.upsert(CATEGORY, {"id": existing["id"], "name": "New"})
        self.assertEqual(entity["id"], existing["id"])
        self.assertEqual(self.entities(CATEGORY), [{"id": existing["id"], "name": "New"}])

    def test_id_identifier_creates_when_missing(self):
        entity = self.upsert(CATEGORY, {"id": 500, "name": "Fresh"})
        self.assertEqual(self.store.find_one(CATEGORY, {"id": entity["id"]})["name"], "Fresh")
        self.assertEqual(len(self.entities(CATEGORY)), 1)

    def test_blank_identifier_always_creates(self):
        self.upsert(ARTICLE, {"slug": "", "title": "one"})
        self.upsert(ARTICLE, {"title": "two"})
        self.assertEqual(len(self.entities(ARTICLE)), 2)

    def test_explicit_identifying_field(self):
        self.upsert(ARTICLE, {"slug": "a", "title": "Same"})
        entity = self.upsert(ARTICLE, {"slug": "b", "title": "Same"}, identifying_field="title")
        self.assertEqual(len(self.entities(ARTICLE)), 1)
        self.assertEqual(entity["slug"], "b")

    def test_single_type_updates_sole_entity(self):
        first = self.upsert(HOMEPAGE, {"id": 50, "headline": "Welcome"})
        second = self.upsert(HOMEPAGE, {"id": 51, "headline": "Hello"})
        self.assertEqual(first["id"], second["id"])
        self.assertEqual([e["headline"] for e in self.entities(HOMEPAGE)], ["Hello"])

    def test_relations_resolved_before_write(self):
        entity = self.upsert(ARTICLE, {
            "slug": "hello",
            "author": {"email": "ann@example.com", "name": "Ann"},
            "categories": [{"name": "News"}],
        })
        author = self.store.find_one(AUTHOR, {"email": "ann@example.com"})
        self.assertEqual(entity["author"], author["id"])
        self.assertEqual(len(entity["categories"]), 1)
        # 记录中缺失的关系属性也写入 None
        self.assertIsNone(entity["seo"])
        self.assertIsNone(entity["createdBy"])

    def test_audit_fields_overwritten(self):
        entity = self.upsert(ARTICLE, {"slug": "a", "createdBy": 1, "updatedBy": {"id": 2}})
        self.assertEqual((entity["createdBy"], entity["updatedBy"]), (7, 7))

    def test_publish_state(self):
        drafted = self.upsert(ARTICLE, {"slug": "a", "publishedAt": "2024-01-01T00:00:00.000Z"})
        self.assertIsNone(drafted["publishedAt"])

        published = self.upsert(ARTICLE, {"slug": "b", "publishedAt": "2024-01-01T00:00:00.000Z"}, import_as_drafts=False)
        self.assertEqual(published["publishedAt"], "2024-01-01T00:00:00.000Z")

        author = self.upsert(AUTHOR, {"email": "a@example.com", "publishedAt": "2024-01-01"})
        self.assertNotIn("publishedAt", author)

    def test_non_mapping_record(self):
        with self.assertRaises(InvalidShape):
            self.upsert(ARTICLE, ["not", "a", "record"])

    def test_unknown_model(self):
        with self.assertRaises(UnknownModel):
            self.upsert("api::missing.missing", {"a": 1})


if __name__ == '__main__':
    unittest.main()
