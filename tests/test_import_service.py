# tests/test_import_service.py
import json
import unittest

from entity_importer.errors import InvalidShape, MalformedInput, UnknownModel, UnsupportedFormat
from entity_importer.services.import_service import ImportService
from tests.helpers import ARTICLE, AUTHOR, CATEGORY, HOMEPAGE, MEDIA, MEDIATION, StoreTestCase, build_config


class TestImportData(StoreTestCase):

    def import_data(self, raw, model_id=ARTICLE, format="jso", **kwargs):
        kwargs.setdefault("acting_user", self.user)
        return self.service.import_data(raw, model_id=model_id, format=format, **kwargs)

    def test_csv_create_and_update_by_id(self):
        for index in range(5):
            self.store.create(CATEGORY, {"name": f"Category {index + 1}"})
        self.session.commit()

        result = self.import_data("id,name\n,Fresh\n5,Renamed\n", model_id=CATEGORY, format="delimited-text")

        self.assertEqual(result.failure_count, 0)
        self.assertEqual(result.to_dict(), {"failures": []})
        names = [e["name"] for e in self.entities(CATEGORY)]
        self.assertEqual(names, ["Category 1", "Category 2", "Category 3", "Category 4", "Renamed", "Fresh"])
        self.assertEqual(self.store.find_one(CATEGORY, {"id": 5})["name"], "Renamed")

    def test_failing_record_isolated(self):
        records = [
            {"slug": "one", "title": "One"},
            {"slug": "two", "author": {"email": "ghost@example.com"}, "blocks": [{"text": "untagged"}]},
            {"slug": "three", "title": "Three"},
        ]

        result = self.import_data(records)

        self.assertEqual(result.failure_count, 1)
        failure = result.failures[0]
        self.assertEqual(failure.data, records[1])
        self.assertIn("__component", failure.error)
        self.assertEqual([e["slug"] for e in self.entities(ARTICLE)], ["one", "three"])
        # 失败记录中已创建的嵌套实体随事务回滚
        self.assertIsNone(self.store.find_one(AUTHOR, {"email": "ghost@example.com"}))

    def test_non_object_json_item_isolated(self):
        result = self.import_data(json.dumps([{"slug": "one"}, 5, {"slug": "three"}]), format="json")

        self.assertEqual(result.failure_count, 1)
        self.assertEqual(result.failures[0].data, 5)
        self.assertEqual([e["slug"] for e in self.entities(ARTICLE)], ["one", "three"])

    def test_single_type_imported_twice(self):
        self.import_data({"headline": "First"}, model_id=HOMEPAGE)
        self.import_data({"headline": "Second", "featured": [{"slug": "lead"}]}, model_id=HOMEPAGE)

        homepages = self.entities(HOMEPAGE)
        self.assertEqual(len(homepages), 1)
        self.assertEqual(homepages[0]["headline"], "Second")
        self.assertEqual(homepages[0]["featured"], [self.store.find_one(ARTICLE, {"slug": "lead"})["id"]])

    def test_reimport_exported_entity(self):
        self.import_data([{"slug": "hello", "title": "Hello", "author": {"email": "ann@example.com"}}])
        exported = self.entities(ARTICLE)[0]

        result = self.import_data([dict(exported)])

        self.assertEqual(result.failure_count, 0)
        self.assertEqual([e["id"] for e in self.entities(ARTICLE)], [exported["id"]])

    def test_drafts_clear_publish_state(self):
        raw = json.dumps([{"slug": "a", "publishedAt": "2024-01-01T00:00:00.000Z"}])
        self.import_data(raw, format="json")
        self.assertIsNone(self.entities(ARTICLE)[0]["publishedAt"])

        self.import_data(raw, format="json", import_as_drafts=False)
        self.assertEqual(self.entities(ARTICLE)[0]["publishedAt"], "2024-01-01T00:00:00.000Z")

    def test_model_without_drafts_never_stores_publish_state(self):
        records = [{"email": "a@example.com", "publishedAt": "2024-01-01"}]
        self.import_data(records, model_id=AUTHOR, import_as_drafts=False)
        self.assertNotIn("publishedAt", self.entities(AUTHOR)[0])

    def test_drafts_default_from_config(self):
        records = [{"slug": "a", "publishedAt": "2024-01-01T00:00:00.000Z"}]
        self.import_data(records, import_as_drafts=None)
        self.assertIsNone(self.entities(ARTICLE)[0]["publishedAt"])

    def test_explicit_identifying_field(self):
        self.import_data([{"slug": "a", "title": "Same"}])
        self.import_data([{"slug": "b", "title": "Same"}], identifying_field="title")
        self.assertEqual([e["slug"] for e in self.entities(ARTICLE)], ["b"])

    def test_whole_call_errors_raised_before_processing(self):
        with self.assertRaises(UnsupportedFormat):
            self.import_data("<xml/>", format="xml")
        with self.assertRaises(InvalidShape):
            self.import_data("just text", format="jso")
        with self.assertRaises(MalformedInput):
            self.import_data("[{", format="json")
        with self.assertRaises(UnknownModel):
            self.import_data([], model_id="api::missing.missing")
        with self.assertRaises(InvalidShape):
            self.import_data([{"slug": "a"}], model_id="custom:db")
        self.assertEqual(self.entities(ARTICLE), [])

    def test_media_import_path(self):
        records = [
            "https://cdn.example.com/a.png",
            {"url": "https://cdn.example.com/b.pdf", "caption": "Manual"},
            404,
            "https://cdn.example.com/a.png",
        ]

        result = self.import_data(records, model_id=MEDIA)

        self.assertEqual(result.failure_count, 1)
        self.assertEqual(result.failures[0].data, 404)
        media = self.entities(MEDIA)
        self.assertEqual([m["name"] for m in media], ["a.png", "b.pdf"])
        self.assertEqual(media[0]["createdBy"], 7)

    def test_postgres_import(self):
        raw = json.dumps([
            {"id": 1, "name": "alpha", "configuration": {"steps": [1, 2]}, "version": None,
             "published_at": "2024-05-01 12:00:00"},
            "broken row",
            {"id": 2, "name": "beta", "configuration": None, "version": "v3", "published_at": None},
        ])

        result = self.import_data(raw, model_id=MEDIATION, format="postgres", import_as_drafts=False)

        self.assertEqual(result.failure_count, 1)
        self.assertEqual(result.failures[0].data, "broken row")
        alpha, beta = self.entities(MEDIATION)
        self.assertEqual(alpha["configuration"], '{"steps": [1, 2]}')
        self.assertEqual(alpha["version"], "main")
        self.assertEqual(alpha["publishedAt"], "2024-05-01T12:00:00.000Z")
        self.assertIsNone(beta["publishedAt"])

        # 按 name 标识再次导入时更新
        self.import_data(raw, model_id=MEDIATION, format="postgres", import_as_drafts=False)
        self.assertEqual(len(self.entities(MEDIATION)), 2)

    def test_summary_logged(self):
        with self.assertLogs("tests.import", "WARNING") as captured:
            self.import_data([{"slug": "a"}, "not a record", {"slug": "b"}])
        self.assertTrue(any(
            f"Import complete for {ARTICLE}: 2 succeeded, 1 failed" in line for line in captured.output
        ))

    def test_parse_input_data(self):
        records = self.service.parse_input_data("csv", "slug,featured\na,true\n", model_id=ARTICLE)
        self.assertEqual(records[0]["featured"], True)
        self.assertIsNone(records[0]["publishedAt"])

        # 模型不支持草稿时，即使请求以草稿导入也不保留发布状态字段
        authors = self.service.parse_input_data(
            "json", json.dumps([{"email": "a@example.com", "publishedAt": "2024-01-01"}]), model_id=AUTHOR
        )
        self.assertEqual(authors, [{"email": "a@example.com"}])
        kept = self.service.parse_input_data("json", '{"slug": "a", "publishedAt": "2024-01-01"}', model_id=ARTICLE, import_as_drafts=False)
        self.assertEqual(kept["publishedAt"], "2024-01-01")

    def test_get_model_attributes(self):
        self.assertEqual(self.service.get_model_attributes(AUTHOR), {"attribute_names": ["id", "name", "email"], "id_field": "email"})


class TestStrictImport(StoreTestCase):
    import_overrides = {"strict_relation_cardinality": True, "detect_cycles": False}

    def test_strict_cardinality_failure_recorded(self):
        result = self.service.import_data(
            [{"slug": "a", "author": [1, 2]}, {"slug": "b", "author": 1}],
            model_id=ARTICLE, format="jso", acting_user=self.user,
        )
        self.assertEqual(result.failure_count, 1)
        self.assertEqual([e["slug"] for e in self.entities(ARTICLE)], ["b"])


class TestServiceWithoutConfig(StoreTestCase):

    def test_defaults_without_config(self):
        service = ImportService(self.schema, self.store)
        self.assertEqual(service.import_config["detect_cycles"], True)
        self.assertEqual(service.foreign_dump, {})
        result = service.import_data({"email": "a@example.com"}, model_id=AUTHOR, format="jso")
        self.assertEqual(result.failure_count, 0)

    def test_config_foreign_dump(self):
        service = ImportService(self.schema, self.store, config=build_config())
        self.assertIn(MEDIATION, service.foreign_dump["models"])


if __name__ == '__main__':
    unittest.main()
