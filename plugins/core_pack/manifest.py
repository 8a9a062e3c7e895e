# plugins/core_pack/manifest.py

import json
import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from .contracts import (
    Manifest,
    ManifestHeader,
    ManifestMetadata,
    ManifestModule,
    PackConfig,
    TokenSource,
)
from .models import (
    ADDON_NAME_SUFFIX,
    MANIFEST_FORMAT_VERSION,
    SCRIPT_ENTRY_PATH,
    UNKNOWN_AUTHOR,
)

logger = logging.getLogger(__name__)


def uuid_token_source() -> str:
    return str(uuid4())


def generate_manifest(config: PackConfig, token_source: TokenSource = uuid_token_source) -> Manifest:
    """
    由配置生成 manifest。

    每次调用都会从 token_source 取 3 个新的身份令牌（header、data 模块、script 模块，按此顺序），
    所以即使配置相同，两次生成的 manifest 也不相等。
    名称后缀总是直接追加，不做去重。
    """
    header_uuid = token_source()
    data_module_uuid = token_source()
    script_module_uuid = token_source()

    return Manifest(
        format_version=MANIFEST_FORMAT_VERSION,
        header=ManifestHeader(
            name=f"{config.name}{ADDON_NAME_SUFFIX}",
            description=config.description,
            uuid=header_uuid,
            version=config.version,
            min_engine_version=config.min_engine_version,
        ),
        modules=(
            ManifestModule(type="data", uuid=data_module_uuid, version=config.version),
            ManifestModule(type="script", uuid=script_module_uuid, version=config.version, entry=SCRIPT_ENTRY_PATH),
        ),
        dependencies=config.dependencies,
        metadata=ManifestMetadata(authors=(config.author,)),
    )


def strip_addon_suffix(name: str) -> str:
    if name.endswith(ADDON_NAME_SUFFIX):
        return name[: -len(ADDON_NAME_SUFFIX)]
    return name


def config_from_manifest_data(data: Dict[str, Any]) -> PackConfig:
    """
    从一个已解析的 manifest 文档推导配置。

    只读取推导配置所需的字段，其余字段（模块、令牌、format_version）一律不校验。
    缺少 header 或版本格式错误时抛出 ValueError / KeyError / TypeError。
    """
    header = data["header"]
    authors = (data.get("metadata") or {}).get("authors") or []
    author = authors[0] if authors and authors[0] else UNKNOWN_AUTHOR

    return PackConfig.model_validate({
        "name": strip_addon_suffix(header["name"]),
        "description": header.get("description", ""),
        "author": author,
        "version": header["version"],
        "min_engine_version": header["min_engine_version"],
        "dependencies": data.get("dependencies") or [],
    })


def derive_config_from_manifest_text(text: str) -> Optional[PackConfig]:
    """解析 manifest 文本并推导配置；任何失败都只记录警告并返回 None。"""
    try:
        return config_from_manifest_data(json.loads(text.lstrip("\ufeff")))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        # json.JSONDecodeError 和 pydantic.ValidationError 都是 ValueError 的子类
        logger.warning(f"Failed to derive configuration from manifest: {e}")
        return None
