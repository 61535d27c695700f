# tests/test_import_v2.py
import copy
import json
import unittest

from entity_importer.errors import InvalidShape
from tests.helpers import ARTICLE, AUTHOR, CATEGORY, MEDIA, StoreTestCase

ENVELOPE = {
    "version": 2,
    "data": {
        AUTHOR: {
            "1": {"id": 1, "email": "ann@example.com", "name": "Ann", "articles": [100]},
        },
        CATEGORY: {
            "3": {"id": 3, "name": "News"},
        },
        ARTICLE: {
            "100": {
                "id": 100,
                "slug": "hello",
                "title": "Hello",
                "publishedAt": "2024-01-01T00:00:00.000Z",
                "author": 1,
                "categories": [3, 99],
                "cover": 10,
                "seo": {"id": 5, "metaTitle": "SEO", "shareImage": 10},
                "quotes": [7],
                "blocks": [{"__component": "shared.rich-text", "id": 8, "body": "intro"}],
            },
        },
        "shared.quote": {
            "7": {"id": 7, "text": "Quote", "author": "Ann"},
        },
        # 媒体放在最后，也会先于其他模型导入
        MEDIA: {
            "10": {"id": 10, "name": "cover.png", "url": "/uploads/cover.png", "mime": "image/png"},
        },
    },
}


class TestVersionedImport(StoreTestCase):

    def import_envelope(self, envelope=None, model_id="custom:db", **kwargs):
        raw = json.dumps(envelope or ENVELOPE)
        return self.service.import_data(raw, model_id=model_id, format="json", acting_user=self.user, **kwargs)

    def test_two_pass_import(self):
        result = self.import_envelope()
        self.assertEqual(result.to_dict(), {"failures": []})

        media = self.store.find_one(MEDIA, {"url": "/uploads/cover.png"})
        author = self.store.find_one(AUTHOR, {"email": "ann@example.com"})
        category = self.store.find_one(CATEGORY, {"name": "News"})
        article = self.store.find_one(ARTICLE, {"slug": "hello"})

        self.assertEqual(article["author"], author["id"])
        # 导出包中不存在的引用被丢弃
        self.assertEqual(article["categories"], [category["id"]])
        self.assertEqual(article["cover"], media["id"])
        self.assertEqual(author["articles"], [article["id"]])
        self.assertIsNone(article["publishedAt"])

    def test_components_created_as_nested_records(self):
        self.import_envelope()
        article = self.store.find_one(ARTICLE, {"slug": "hello"})
        media = self.store.find_one(MEDIA, {"url": "/uploads/cover.png"})

        seo = self.store.find_one("shared.seo", {"id": article["seo"]})
        self.assertEqual(seo["metaTitle"], "SEO")
        self.assertEqual(seo["shareImage"], media["id"])

        self.assertEqual(len(article["quotes"]), 1)
        self.assertEqual(self.store.find_one("shared.quote", {"id": article["quotes"][0]})["text"], "Quote")

        block = article["blocks"][0]
        self.assertEqual(block["__component"], "shared.rich-text")
        self.assertEqual(block["body"], "intro")

    def test_export_ids_not_trusted(self):
        # 已存在的实体占用了导出包中的 id
        occupant = self.store.create(CATEGORY, {"name": "Occupant"})
        self.session.commit()
        envelope = copy.deepcopy(ENVELOPE)
        envelope["data"][CATEGORY] = {str(occupant["id"]): {"id": occupant["id"], "name": "News"}}
        envelope["data"][ARTICLE]["100"]["categories"] = [occupant["id"]]

        self.import_envelope(envelope)

        self.assertEqual(self.store.find_one(CATEGORY, {"id": occupant["id"]})["name"], "Occupant")
        news = self.store.find_one(CATEGORY, {"name": "News"})
        self.assertEqual(self.store.find_one(ARTICLE, {"slug": "hello"})["categories"], [news["id"]])

    def test_publish_state_kept_when_not_drafts(self):
        self.import_envelope(import_as_drafts=False)
        article = self.store.find_one(ARTICLE, {"slug": "hello"})
        self.assertEqual(article["publishedAt"], "2024-01-01T00:00:00.000Z")

    def test_reimport_updates_by_identifier(self):
        self.import_envelope()
        self.import_envelope()
        self.assertEqual(len(self.entities(ARTICLE)), 1)
        self.assertEqual(len(self.entities(AUTHOR)), 1)
        self.assertEqual(len(self.entities(MEDIA)), 1)

    def test_reimport_duplicates_id_identified_models(self):
        # 导出 id 不参与匹配：按 id 标识的模型每次重新导入都会新建
        self.import_envelope()
        self.import_envelope()
        self.assertEqual(len(self.entities(ARTICLE)), 1)
        self.assertEqual([c["name"] for c in self.entities(CATEGORY)], ["News", "News"])

    def test_single_model_request_routes_envelope(self):
        result = self.import_envelope(model_id=ARTICLE)
        self.assertEqual(result.failure_count, 0)
        self.assertIsNotNone(self.store.find_one(ARTICLE, {"slug": "hello"}))

    def test_invalid_entries_recorded(self):
        envelope = {
            "version": 2,
            "data": {
                "api::ghost.ghost": {"1": {"id": 1}},
                AUTHOR: ["not", "keyed"],
                CATEGORY: {"1": "not an object", "2": {"id": 2, "name": "Kept"}},
            },
        }
        result = self.import_envelope(envelope)
        self.assertEqual(result.failure_count, 3)
        self.assertEqual(result.failures[0].error, "Model api::ghost.ghost is not defined in the schema.")
        self.assertEqual([c["name"] for c in self.entities(CATEGORY)], ["Kept"])

    def test_missing_data_object(self):
        with self.assertRaises(InvalidShape):
            self.service.import_data_v2({"version": 2, "data": []}, model_id="custom:db")


if __name__ == '__main__':
    unittest.main()
