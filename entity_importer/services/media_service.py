# entity_importer/services/media_service.py
"""
媒体文件查找/登记服务

按 id、hash、url、name 的顺序查找已存在的媒体记录；都找不到时按描述信息登记一条新的媒体记录
（不下载文件内容）。媒体类型受属性允许的类型（images / videos / audios / files / any）约束。
"""

import logging
import mimetypes
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlparse

from entity_importer.errors import DisallowedMediaType, EntityNotFound, InvalidShape
from entity_importer.models.schema import MEDIA_MODEL_ID
from entity_importer.repositories.entity_store import Entity, EntityStore
from entity_importer.utils.value_utils import is_mapping, is_number

logger = logging.getLogger(__name__)

ANY_TYPE = "any"

# 登记新媒体记录时保留的描述字段
MEDIA_METADATA_FIELDS = (
    "name", "alternativeText", "caption", "width", "height",
    "hash", "ext", "mime", "size", "url",
)

LOOKUP_FIELDS = ("hash", "url", "name")

MIME_PREFIX_TO_TYPE = {
    "image/": "images",
    "video/": "videos",
    "audio/": "audios",
}


def media_type_of(mime: Optional[str]) -> str:
    """mime 类型 -> 媒体大类（images / videos / audios / files）"""
    for prefix, media_type in MIME_PREFIX_TO_TYPE.items():
        if mime and mime.startswith(prefix):
            return media_type
    return "files"


class MediaService:
    """媒体文件解析服务"""

    def __init__(self, store: EntityStore):
        self.store = store

    def find_or_import(self, descriptor: Any, acting_user=None, allowed_types: Iterable[str] = (ANY_TYPE,)) -> Entity:
        """
        查找已存在的媒体记录，找不到时登记新记录

        Args:
            descriptor: 媒体 id（数字或数字字符串）、URL 字符串或描述字典
            acting_user: 执行导入的用户（写入 createdBy / updatedBy）
            allowed_types: 允许的媒体大类

        Returns:
            媒体实体

        Raises:
            EntityNotFound: 按 id 指定的媒体不存在
            InvalidShape: 描述信息无法用于查找或登记
            DisallowedMediaType: 媒体类型不在允许范围内
        """
        media = self._find_existing(descriptor)
        if media is None:
            return self._register(descriptor, acting_user, allowed_types)

        logger.debug(f"Found existing media id={media['id']}")
        self._check_type(media, allowed_types)
        return media

    def _find_existing(self, descriptor: Any) -> Optional[Entity]:
        media_id = self._as_media_id(descriptor)
        if media_id is not None:
            media = self.store.find_one(MEDIA_MODEL_ID, {"id": media_id})
            if media is None:
                raise EntityNotFound(f"Media file with id {descriptor!r} does not exist.")
            return media

        if isinstance(descriptor, str):
            return self.store.find_one(MEDIA_MODEL_ID, {"url": descriptor})

        if not is_mapping(descriptor):
            raise InvalidShape(f"Media descriptor must be an id, a url or an object, got {type(descriptor).__name__}")

        if descriptor.get("id") is not None:
            media = self.store.find_one(MEDIA_MODEL_ID, {"id": descriptor["id"]})
            if media is not None:
                return media

        for field in LOOKUP_FIELDS:
            value = descriptor.get(field)
            if value:
                media = self.store.find_one(MEDIA_MODEL_ID, {field: value})
                if media is not None:
                    return media
        return None

    @staticmethod
    def _as_media_id(descriptor: Any) -> Optional[int]:
        if is_number(descriptor):
            return int(descriptor)
        if isinstance(descriptor, str) and descriptor.strip().isdigit():
            return int(descriptor.strip())
        return None

    def _register(self, descriptor: Any, acting_user, allowed_types: Iterable[str]) -> Entity:
        if isinstance(descriptor, str):
            descriptor = {"url": descriptor}

        data: Dict[str, Any] = {
            field: descriptor[field] for field in MEDIA_METADATA_FIELDS if descriptor.get(field) is not None
        }
        if not any(data.get(field) for field in LOOKUP_FIELDS):
            raise InvalidShape("Media descriptor needs at least a url, a hash or a name.")

        source_name = PurePosixPath(urlparse(data.get("url") or "").path).name
        data.setdefault("name", source_name or data.get("hash") or data.get("url"))
        if "ext" not in data:
            suffix = PurePosixPath(data["name"]).suffix
            if suffix:
                data["ext"] = suffix
        if "mime" not in data and data.get("ext"):
            guessed, _ = mimetypes.guess_type(f"file{data['ext']}")
            if guessed:
                data["mime"] = guessed
        self._check_type(data, allowed_types)

        if acting_user is not None:
            data["createdBy"] = acting_user.id
            data["updatedBy"] = acting_user.id

        media = self.store.create(MEDIA_MODEL_ID, data)
        logger.info(f"Registered media {data.get('name')} as id={media['id']}")
        return media

    @staticmethod
    def _check_type(media: Entity, allowed_types: Iterable[str]) -> None:
        allowed = set(allowed_types or (ANY_TYPE,))
        if ANY_TYPE in allowed:
            return
        mime = media.get("mime")
        if not mime and media.get("ext"):
            mime, _ = mimetypes.guess_type(f"file{media['ext']}")
        media_type = media_type_of(mime)
        if media_type not in allowed:
            raise DisallowedMediaType(
                f"Media {media.get('name')!r} of type {media_type} is not allowed (allowed: {sorted(allowed)})."
            )
