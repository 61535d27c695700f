# tests/helpers.py
"""测试公用：内存 SQLite 存储、示例模型定义和配置"""
import logging
import unittest
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from entity_importer.models.database import get_engine, init_db
from entity_importer.processing.context import ActingUser, ImportContext, ImportOptions
from entity_importer.repositories.entry_repository import EntryRepository
from entity_importer.services.import_service import ImportService
from entity_importer.services.media_service import MediaService
from entity_importer.services.schema_service import SchemaRegistry
from entity_importer.utils.yaml_config import YAMLConfig

PROJECT_ROOT = Path(__file__).absolute().parent.parent
CONFIG_FILE = PROJECT_ROOT / "config" / "config.yaml"
SCHEMA_FILE = PROJECT_ROOT / "config" / "schema.yaml"

ARTICLE = "api::article.article"
AUTHOR = "api::author.author"
CATEGORY = "api::category.category"
HOMEPAGE = "api::homepage.homepage"
MEDIATION = "api::mediation.mediation"
MEDIA = "plugin::upload.file"

MEDIATION_DUMP = {
    "published_field": "published_at",
    "models": {
        MEDIATION: {
            "fields": {"name": "name", "configuration": "configuration", "version": "version"},
            "structured_fields": ["configuration"],
            "defaults": {"version": "main"},
        }
    },
}


def build_config_data(**import_overrides):
    return {
        "database": {"type": "sqlite", "path": ":memory:"},
        "schema": {"path": str(SCHEMA_FILE)},
        "import": {
            "import_as_drafts": True,
            "strict_relation_cardinality": False,
            "detect_cycles": True,
            **import_overrides,
        },
        "foreign_dump": MEDIATION_DUMP,
        "logging": {"log_dir": "./logs/", "log_level": "INFO"},
    }


def build_config(**import_overrides) -> YAMLConfig:
    return YAMLConfig.from_dict(build_config_data(**import_overrides))


def load_schema() -> SchemaRegistry:
    return SchemaRegistry.from_file(SCHEMA_FILE)


class StoreTestCase(unittest.TestCase):
    """每个测试使用一个新的内存 SQLite 库"""

    import_overrides = {}

    def setUp(self):
        self.config = build_config(**self.import_overrides)
        self.engine = get_engine(self.config)
        init_db(self.engine)
        self.session = sessionmaker(autoflush=False, bind=self.engine)()
        self.store = EntryRepository(self.session)
        self.schema = load_schema()
        self.media_service = MediaService(self.store)
        self.logger = logging.getLogger("tests.import")
        self.user = ActingUser(id=7, email="editor@example.com")
        self.service = ImportService(
            self.schema, self.store, media_service=self.media_service, config=self.config, logger=self.logger
        )

    def tearDown(self):
        self.session.close()
        self.engine.dispose()

    def make_context(self, model_id=ARTICLE, import_as_drafts=True, strict=False, detect_cycles=True, **option_overrides):
        options = ImportOptions(
            model_id=model_id,
            import_as_drafts=import_as_drafts,
            acting_user=option_overrides.pop("acting_user", self.user),
            **option_overrides
        )
        return ImportContext(
            options,
            schema=self.schema,
            store=self.store,
            media_service=self.media_service,
            logger=self.logger,
            strict_relation_cardinality=strict,
            detect_cycles=detect_cycles,
            foreign_dump=MEDIATION_DUMP,
        )

    def entities(self, model_id):
        return self.store.find_many(model_id)
