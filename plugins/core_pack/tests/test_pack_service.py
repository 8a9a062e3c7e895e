# plugins/core_pack/tests/test_pack_service.py

import io
import json
import zipfile

import pytest

from plugins.core_pack.contracts import GeneratedTexture, ProjectFile
from plugins.core_pack.service import PackService
from plugins.core_pack.state import new_project, write_file


@pytest.fixture
def pack_service(tmp_path, token_source) -> PackService:
    return PackService(export_dir=str(tmp_path / "out"), token_source=token_source)


class TestPackService:

    async def test_export_uses_a_fresh_manifest_and_suggested_name(self, pack_service, token_source):
        # new_project 消耗 token-1..3，导出时的 manifest 会拿到 token-4..6
        state = new_project(token_source)
        state = state.model_copy(update={"files": tuple(f for f in state.files if f.path != "manifest.json")})

        exported = await pack_service.export_pack(state)

        assert exported.filename == "my_awesome_pack__bp_.mcpack"
        with zipfile.ZipFile(io.BytesIO(exported.data)) as zf:
            manifest = json.loads(zf.read("manifest.json"))
            assert set(zf.namelist()) == {"manifest.json", "scripts/main.js"}
        assert manifest["header"]["uuid"] == "token-4"

    async def test_export_includes_icon_texture(self, pack_service, token_source, png_bytes):
        state = new_project(token_source).model_copy(
            update={"pack_icon": GeneratedTexture(name="pack_icon", data=png_bytes)}
        )

        exported = await pack_service.export_pack(state)

        with zipfile.ZipFile(io.BytesIO(exported.data)) as zf:
            assert zf.read("pack_icon.png") == png_bytes

    async def test_export_then_import_round_trip(self, pack_service, token_source, png_bytes):
        state = write_file(new_project(token_source), ProjectFile.binary("sounds/hit.ogg", b"OggS\x00"))

        exported = await pack_service.export_pack(state)
        imported = await pack_service.import_pack(exported.data, exported.filename)

        assert [f.path for f in imported.files] == state.paths
        assert imported.files == state.files
        assert imported.config == state.config

    async def test_save_export_writes_into_export_dir(self, pack_service, token_source, tmp_path):
        exported = await pack_service.export_pack(new_project(token_source))

        saved_path = await pack_service.save_export(exported)

        assert saved_path == tmp_path / "out" / exported.filename
        assert saved_path.read_bytes() == exported.data

    async def test_save_export_to_explicit_directory(self, pack_service, token_source, tmp_path):
        exported = await pack_service.export_pack(new_project(token_source))
        saved_path = await pack_service.save_export(exported, tmp_path / "elsewhere")
        assert saved_path.parent == tmp_path / "elsewhere"
