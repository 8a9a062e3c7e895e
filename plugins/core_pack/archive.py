# plugins/core_pack/archive.py

import io
import re
import asyncio
import logging
import zipfile
import zlib
from typing import Dict, Iterable, List, Optional, Sequence

from .classifier import is_binary_path
from .contracts import (
    GeneratedTexture,
    ImportedPack,
    InvalidArchiveError,
    Manifest,
    PackConfig,
    ProjectFile,
    TextContent,
    normalize_project_path,
)
from .manifest import derive_config_from_manifest_text
from .models import (
    ARCHIVE_EXTENSION,
    DEFAULT_MIN_ENGINE_VERSION,
    DEFAULT_VERSION,
    FALLBACK_DESCRIPTION,
    MANIFEST_PATH,
    PACK_ICON_PATH,
    PACK_ICON_TEXTURE_NAME,
    TEXTURES_DIR,
    UNKNOWN_AUTHOR,
)
from .reconciler import merge_files

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9]")
_IMPORT_EXTENSION_RE = re.compile(r"\.(mcpack|zip)$", re.IGNORECASE)

# 读取单个条目时可能出现的、表示压缩包本身损坏的异常
_CORRUPT_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError)


# --- 打包 ---

def suggest_archive_filename(manifest: Manifest) -> str:
    """'Test [BP]' -> 'test__bp_.mcpack'：每个非字母数字字符替换为下划线并转小写。"""
    return _UNSAFE_FILENAME_CHARS.sub("_", manifest.header.name).lower() + ARCHIVE_EXTENSION


def texture_archive_path(texture: GeneratedTexture) -> str:
    if texture.name == PACK_ICON_TEXTURE_NAME:
        return PACK_ICON_PATH
    return f"{TEXTURES_DIR}/{texture.name}.png"


def assemble_archive(
    manifest: Manifest,
    files: Sequence[ProjectFile],
    textures: Iterable[GeneratedTexture] = (),
) -> bytes:
    """
    把 manifest、项目文件和生成的贴图打成一个 ZIP 包。

    - 文件集中有 manifest.json 时，不写入刚生成的 manifest；
    - 文件集中有 pack_icon.png 时，忽略图标贴图；多个图标贴图时第一个生效；
    - 其他贴图写到 textures/<name>.png，覆盖文件集中同路径的文件，同名贴图后写的生效。
    任何写入错误都会直接抛出，不会产出半成品。
    """
    tracked_paths = {f.path for f in files}
    texture_entries: Dict[str, bytes] = {}
    for texture in textures:
        target_path = texture_archive_path(texture)
        if target_path == PACK_ICON_PATH and (target_path in tracked_paths or target_path in texture_entries):
            logger.debug(f"Skipping texture '{texture.name}': '{target_path}' is already in the archive.")
            continue
        texture_entries[target_path] = texture.data

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        if MANIFEST_PATH not in tracked_paths:
            zf.writestr(MANIFEST_PATH, manifest.to_json())

        for project_file in files:
            if project_file.path in texture_entries:
                logger.debug(f"Project file '{project_file.path}' is replaced by a generated texture.")
                continue
            zf.writestr(project_file.path, project_file.content.to_bytes())

        for target_path, data in texture_entries.items():
            zf.writestr(target_path, data)

    archive_bytes = buffer.getvalue()
    logger.info(
        f"Assembled pack '{manifest.header.name}': {len(files)} project files, "
        f"{len(texture_entries)} textures, {len(archive_bytes)} bytes."
    )
    return archive_bytes


# --- 解包 ---

def fallback_config(archive_name: str) -> PackConfig:
    """没有可用 manifest 时，用压缩包自己的文件名合成一份配置。"""
    basename = archive_name.replace("\\", "/").rsplit("/", 1)[-1]
    return PackConfig(
        name=_IMPORT_EXTENSION_RE.sub("", basename),
        description=FALLBACK_DESCRIPTION,
        author=UNKNOWN_AUTHOR,
        version=DEFAULT_VERSION,
        min_engine_version=DEFAULT_MIN_ENGINE_VERSION,
        dependencies=(),
    )


def _decode_text(raw: bytes, path: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning(f"Entry '{path}' is not valid UTF-8; undecodable bytes were replaced.")
        return raw.decode("utf-8", errors="replace")


def project_file_from_bytes(path: str, raw: bytes) -> ProjectFile:
    """按路径决定条目是二进制还是文本。manifest.json 永远是文本，pack_icon.png 永远是二进制。"""
    path = normalize_project_path(path)
    if path == PACK_ICON_PATH or (path != MANIFEST_PATH and is_binary_path(path)):
        return ProjectFile.binary(path, raw)
    return ProjectFile.text(path, _decode_text(raw, path))


def _decode_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo) -> ProjectFile:
    return project_file_from_bytes(info.filename, zf.read(info))


async def parse_archive(archive_bytes: bytes, archive_name: str) -> ImportedPack:
    """
    把一个压缩包还原成项目。

    每个条目在独立的线程里解码，全部完成后才汇总；各条目的结果只按自身路径生效，
    所以完成顺序不影响结果。输出的文件顺序与压缩包中的条目顺序一致。
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(archive_bytes))
    except zipfile.BadZipFile as e:
        raise InvalidArchiveError(f"'{archive_name}' is not a valid pack archive: {e}") from e

    with zf:
        entries = [info for info in zf.infolist() if not info.is_dir()]
        # 等所有条目都结束后再关闭压缩包，失败的条目在汇总时统一处理
        results = await asyncio.gather(
            *(asyncio.to_thread(_decode_entry, zf, info) for info in entries),
            return_exceptions=True,
        )

    decoded: List[ProjectFile] = []
    for info, result in zip(entries, results):
        if isinstance(result, _CORRUPT_ENTRY_ERRORS):
            raise InvalidArchiveError(f"'{archive_name}' has a corrupt entry '{info.filename}': {result}") from result
        if isinstance(result, ValueError):
            # 条目路径无法规范化
            raise InvalidArchiveError(f"'{archive_name}' has an invalid entry name '{info.filename}': {result}") from result
        if isinstance(result, BaseException):
            raise result
        decoded.append(result)

    files = merge_files((), decoded)

    config: Optional[PackConfig] = None
    pack_icon: Optional[GeneratedTexture] = None
    for project_file in files:
        if project_file.path == MANIFEST_PATH and isinstance(project_file.content, TextContent):
            config = derive_config_from_manifest_text(project_file.content.text)
        elif project_file.path == PACK_ICON_PATH:
            pack_icon = GeneratedTexture(name=PACK_ICON_TEXTURE_NAME, data=project_file.content.to_bytes())

    manifest_found = config is not None
    if config is None:
        logger.info(f"No usable manifest in '{archive_name}'; falling back to defaults derived from the file name.")
        config = fallback_config(archive_name)

    logger.info(
        f"Parsed '{archive_name}': {len(files)} files, manifest={'yes' if manifest_found else 'no'}, "
        f"icon={'yes' if pack_icon else 'no'}."
    )
    return ImportedPack(files=files, config=config, pack_icon=pack_icon, manifest_found=manifest_found)

