"""命令行入口

    entity-importer import --model api::article.article --format csv --file articles.csv
    entity-importer attributes --model api::article.article
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from entity_importer.models.database import get_engine, get_session, init_db
from entity_importer.processing.context import ActingUser
from entity_importer.processing.parsers import INPUT_FORMATS, FORMAT_ALIASES
from entity_importer.repositories.entry_repository import EntryRepository
from entity_importer.services.import_service import ImportService
from entity_importer.services.schema_service import SchemaRegistry
from entity_importer.utils.logging_config import get_import_logger
from entity_importer.utils.yaml_config import get_yaml_config

# 以文本读取的格式；jso 需要先按 JSON 解码
TEXT_FORMATS = ("csv", "json", "postgres", "delimited-text", "structured-export", "foreign-relational-dump")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="entity-importer", description="结构化数据导入工具")
    parser.add_argument('--config', '-c', help='配置文件路径（默认 config/config.yaml）')
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="导入数据文件")
    import_parser.add_argument('--model', '-m', required=True, help='目标模型标识')
    import_parser.add_argument(
        '--format', '-f', required=True,
        choices=INPUT_FORMATS + list(FORMAT_ALIASES),
        help='输入格式'
    )
    import_parser.add_argument('--file', required=True, help='数据文件路径')
    import_parser.add_argument('--id-field', help='标识字段（默认使用模型配置）')
    import_parser.add_argument('--publish', action='store_true', help='保留发布状态（不以草稿导入）')
    import_parser.add_argument('--user-id', type=int, default=None, help='执行导入的用户 id')

    attributes_parser = subparsers.add_parser("attributes", help="列出模型可作为标识字段的属性")
    attributes_parser.add_argument('--model', '-m', required=True, help='模型标识')
    return parser


def read_input(file_path: str, format_name: str):
    """读取数据文件；jso 格式按 JSON 解码后传入"""
    text = Path(file_path).read_text(encoding="utf-8-sig")
    if format_name in TEXT_FORMATS:
        return text
    return json.loads(text)


def run_import(args, config, logger: logging.Logger) -> int:
    schema = SchemaRegistry.from_config(config)
    raw = read_input(args.file, args.format)
    acting_user = ActingUser(id=args.user_id) if args.user_id is not None else None

    engine = get_engine(config)
    try:
        init_db(engine)
        with get_session(config, engine) as db_session:
            service = ImportService(schema, EntryRepository(db_session), config=config, logger=logger)
            result = service.import_data(
                raw,
                model_id=args.model,
                format=args.format,
                acting_user=acting_user,
                identifying_field=args.id_field,
                import_as_drafts=not args.publish,
            )
    finally:
        engine.dispose()

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2, default=str))
    return 1 if result.failure_count else 0


def run_attributes(args, config) -> int:
    schema = SchemaRegistry.from_config(config)
    print(json.dumps(schema.get_model_attributes(args.model), ensure_ascii=False, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_yaml_config(args.config)
    logger = get_import_logger(config)

    try:
        if args.command == "import":
            return run_import(args, config, logger)
        return run_attributes(args, config)
    except Exception as e:
        logger.critical(f"{args.command} failed: {str(e)}", exc_info=True)
        return 2


if __name__ == "__main__":
    sys.exit(main())
