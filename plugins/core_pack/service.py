# plugins/core_pack/service.py

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiofiles

from .archive import assemble_archive, parse_archive, suggest_archive_filename
from .contracts import (
    ExportedPack,
    ImportedPack,
    PackServiceInterface,
    ProjectState,
    TokenSource,
)
from .manifest import generate_manifest, uuid_token_source

logger = logging.getLogger(__name__)


class PackService(PackServiceInterface):
    """把 ProjectState 打成 .mcpack，或把上传的压缩包还原成项目。本身不持有状态。"""

    def __init__(self, export_dir: str = "exports", token_source: TokenSource = uuid_token_source):
        self.export_dir = Path(export_dir)
        self._token_source = token_source
        logger.info(f"PackService initialized. Export directory: {self.export_dir.resolve()}")

    @property
    def token_source(self) -> TokenSource:
        return self._token_source

    async def export_pack(self, state: ProjectState) -> ExportedPack:
        # 每次导出都会生成新的 manifest（新的身份令牌）
        manifest = generate_manifest(state.config, self._token_source)
        textures = (state.pack_icon,) if state.pack_icon is not None else ()

        archive_bytes = await asyncio.to_thread(assemble_archive, manifest, state.files, textures)
        return ExportedPack(filename=suggest_archive_filename(manifest), data=archive_bytes)

    async def import_pack(self, archive_bytes: bytes, archive_name: str) -> ImportedPack:
        return await parse_archive(archive_bytes, archive_name)

    async def save_export(self, exported: ExportedPack, directory: Optional[Path] = None) -> Path:
        target_dir = Path(directory) if directory is not None else self.export_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        file_path = target_dir / exported.filename

        async with aiofiles.open(file_path, mode='wb') as f:
            await f.write(exported.data)
        logger.info(f"Saved exported pack to {file_path} ({len(exported.data)} bytes).")
        return file_path
