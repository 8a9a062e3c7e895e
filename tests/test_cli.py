# tests/test_cli.py

import io
import json
import zipfile

import pytest
from typer.testing import CliRunner

from cli import app, write_files
from plugins.core_pack.contracts import ProjectFile

runner = CliRunner()


class TestNewCommand:

    def test_writes_default_project(self, tmp_path):
        target = tmp_path / "my_pack"
        result = runner.invoke(app, ["new", str(target)])

        assert result.exit_code == 0, result.output
        assert (target / "scripts" / "main.js").read_text(encoding="utf-8").startswith("// Generated with Bedrock Pack Studio")
        manifest = json.loads((target / "manifest.json").read_text(encoding="utf-8"))
        assert manifest["header"]["name"] == "My Awesome Pack [BP]"

    def test_refuses_non_empty_directory(self, tmp_path):
        (tmp_path / "existing.txt").write_text("x")
        result = runner.invoke(app, ["new", str(tmp_path)])
        assert result.exit_code == 1


class TestPackCommand:

    def test_pack_directory_with_manifest(self, tmp_path):
        source = tmp_path / "src"
        assert runner.invoke(app, ["new", str(source)]).exit_code == 0
        (source / "textures").mkdir()
        (source / "textures" / "ore.png").write_bytes(b"\x89PNG fake")
        out = tmp_path / "out"

        result = runner.invoke(app, ["pack", str(source), "-o", str(out)])

        assert result.exit_code == 0, result.output
        archive = out / "my_awesome_pack__bp_.mcpack"
        with zipfile.ZipFile(archive) as zf:
            assert set(zf.namelist()) == {"manifest.json", "scripts/main.js", "textures/ore.png"}
            assert zf.read("manifest.json") == (source / "manifest.json").read_bytes()
            assert zf.read("textures/ore.png") == b"\x89PNG fake"

    def test_pack_directory_without_manifest_uses_directory_name(self, tmp_path):
        source = tmp_path / "Loose Files"
        source.mkdir()
        (source / "notes.txt").write_text("hi", encoding="utf-8")
        out = tmp_path / "out"

        result = runner.invoke(app, ["pack", str(source), "-o", str(out)])

        assert result.exit_code == 0, result.output
        with zipfile.ZipFile(out / "loose_files__bp_.mcpack") as zf:
            manifest = json.loads(zf.read("manifest.json"))
        assert manifest["header"]["name"] == "Loose Files [BP]"
        assert manifest["header"]["description"] == "Imported project"

    def test_pack_empty_directory_fails(self, tmp_path):
        (tmp_path / "empty").mkdir()
        result = runner.invoke(app, ["pack", str(tmp_path / "empty")])
        assert result.exit_code == 1


class TestUnpackCommand:

    def test_unpack_writes_entries_and_prints_config(self, tmp_path, make_zip):
        archive = tmp_path / "Cow Pack.mcpack"
        archive.write_bytes(make_zip({"entities/cow.json": "{}", "pack_icon.png": b"\x89PNG"}))
        out = tmp_path / "unpacked"

        result = runner.invoke(app, ["unpack", str(archive), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert (out / "entities" / "cow.json").read_text() == "{}"
        assert (out / "pack_icon.png").read_bytes() == b"\x89PNG"
        assert '"name": "Cow Pack"' in result.output

    def test_unpack_rejects_invalid_archive(self, tmp_path):
        archive = tmp_path / "bad.mcpack"
        archive.write_bytes(b"nope")

        result = runner.invoke(app, ["unpack", str(archive)])
        assert result.exit_code == 1

    def test_unpack_refuses_paths_escaping_the_target(self, tmp_path):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("ok.txt", "fine")
            zf.writestr("../escape.txt", "evil")
        archive = tmp_path / "evil.zip"
        archive.write_bytes(buffer.getvalue())
        out = tmp_path / "out"

        result = runner.invoke(app, ["unpack", str(archive), "-o", str(out)])

        assert result.exit_code == 1
        assert not (tmp_path / "escape.txt").exists()
        assert not (out / "ok.txt").exists()


def test_write_files_rejects_escaping_paths(tmp_path):
    with pytest.raises(ValueError, match="escapes"):
        write_files([ProjectFile.text("../../x.txt", "x")], tmp_path / "out")
