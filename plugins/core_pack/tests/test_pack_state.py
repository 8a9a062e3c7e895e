# plugins/core_pack/tests/test_pack_state.py

import asyncio
import json

import pytest

from plugins.core_pack.contracts import (
    BinaryContent,
    FileNotInProjectError,
    GeneratedTexture,
    ImportedPack,
    PackConfig,
    ProjectFile,
)
from plugins.core_pack.models import DEFAULT_SCRIPT
from plugins.core_pack.reconciler import find_file
from plugins.core_pack.state import (
    ProjectSession,
    apply_generated_files,
    delete_file,
    initial_selection,
    new_project,
    project_from_import,
    save_configuration,
    select_file,
    set_pack_icon,
    update_config,
    write_file,
)


class TestTransitions:

    def test_new_project(self, token_source):
        state = new_project(token_source)

        assert state.config == PackConfig.default()
        assert state.paths == ["manifest.json", "scripts/main.js"]
        assert state.selected_path == "scripts/main.js"
        assert find_file(state.files, "scripts/main.js").content.text == DEFAULT_SCRIPT
        manifest = json.loads(find_file(state.files, "manifest.json").content.text)
        assert manifest["header"]["name"] == "My Awesome Pack [BP]"
        assert manifest["header"]["uuid"] == "token-1"

    def test_transitions_do_not_mutate_the_previous_state(self, token_source):
        before = new_project(token_source)
        after = write_file(before, ProjectFile.text("scripts/extra.js", "//"))

        assert "scripts/extra.js" not in before.paths
        assert "scripts/extra.js" in after.paths

    def test_update_config_does_not_touch_files(self, token_source):
        state = new_project(token_source)
        config = state.config.model_copy(update={"name": "Renamed"})

        updated = update_config(state, config)

        assert updated.config.name == "Renamed"
        assert updated.files == state.files

    def test_save_configuration_folds_manifest_and_icon_into_files(self, token_source, png_bytes):
        state = new_project(token_source)
        state = update_config(state, state.config.model_copy(update={"name": "Saved"}))
        state = set_pack_icon(state, GeneratedTexture(name="pack_icon", data=png_bytes))

        saved = save_configuration(state, token_source)

        assert saved.paths == ["manifest.json", "scripts/main.js", "pack_icon.png"]
        manifest = json.loads(find_file(saved.files, "manifest.json").content.text)
        assert manifest["header"]["name"] == "Saved [BP]"
        # 重新保存会生成新的身份令牌
        assert manifest["header"]["uuid"] == "token-4"
        assert find_file(saved.files, "pack_icon.png").content == BinaryContent(data=png_bytes)

    def test_save_configuration_without_icon(self, token_source):
        saved = save_configuration(new_project(token_source), token_source)
        assert "pack_icon.png" not in saved.paths

    def test_delete_selected_file_clears_selection(self, token_source):
        state = delete_file(new_project(token_source), "scripts/main.js")

        assert state.paths == ["manifest.json"]
        assert state.selected_path is None

    def test_delete_other_file_keeps_selection(self, token_source):
        state = delete_file(new_project(token_source), "manifest.json")
        assert state.selected_path == "scripts/main.js"

    def test_delete_missing_file_raises(self, token_source):
        with pytest.raises(FileNotInProjectError, match="nope.js"):
            delete_file(new_project(token_source), "nope.js")

    def test_select_file(self, token_source):
        state = new_project(token_source)

        assert select_file(state, "manifest.json").selected_path == "manifest.json"
        assert select_file(state, None).selected_path is None
        with pytest.raises(FileNotInProjectError):
            select_file(state, "missing.js")


class TestGeneratedAndImported:

    def test_generated_batch_is_merged_and_main_script_selected(self, token_source):
        state = select_file(new_project(token_source), "manifest.json")
        batch = [
            ProjectFile.text("scripts/db.js", "// db"),
            ProjectFile.text("scripts/main.js", "// new main"),
        ]

        result = apply_generated_files(state, batch)

        assert result.paths == ["manifest.json", "scripts/main.js", "scripts/db.js"]
        assert find_file(result.files, "scripts/main.js").content.text == "// new main"
        assert result.selected_path == "scripts/main.js"

    def test_generated_batch_without_main_selects_first_generated(self, token_source):
        batch = [ProjectFile.text("entities/cow.json", "{}"), ProjectFile.text("scripts/util.js", "//")]
        result = apply_generated_files(new_project(token_source), batch)
        assert result.selected_path == "entities/cow.json"

    def test_empty_batch_changes_nothing(self, token_source):
        state = new_project(token_source)
        assert apply_generated_files(state, []) is state

    def test_initial_selection_prefers_scripts_and_json(self):
        files = [ProjectFile.text("readme.txt", ""), ProjectFile.text("entities/a.json", "{}"), ProjectFile.text("b.js", "")]
        assert initial_selection(files) == "entities/a.json"
        assert initial_selection([ProjectFile.text("readme.txt", "")]) == "readme.txt"
        assert initial_selection([]) is None

    def test_import_replaces_the_whole_project(self, png_bytes):
        icon = GeneratedTexture(name="pack_icon", data=png_bytes)
        imported = ImportedPack(
            files=(ProjectFile.binary("pack_icon.png", png_bytes), ProjectFile.text("notes.txt", "hi")),
            config=PackConfig.default().model_copy(update={"name": "Imported"}),
            pack_icon=icon,
            manifest_found=True,
        )

        state = project_from_import(imported)

        assert state.paths == ["pack_icon.png", "notes.txt"]
        assert state.config.name == "Imported"
        assert state.pack_icon == icon
        assert state.selected_path == "pack_icon.png"


class TestProjectSession:

    async def test_apply_replaces_state(self, token_source):
        session = ProjectSession(new_project(token_source))

        new_state = await session.apply(lambda s: write_file(s, ProjectFile.text("a.js", "//")))

        assert session.state is new_state
        assert "a.js" in session.state.paths

    async def test_failed_transition_leaves_state_untouched(self, token_source):
        session = ProjectSession(new_project(token_source))
        before = session.state

        with pytest.raises(FileNotInProjectError):
            await session.apply(lambda s: delete_file(s, "missing.js"))

        assert session.state is before

    async def test_concurrent_upserts_are_serialized(self, token_source):
        session = ProjectSession(new_project(token_source))

        await asyncio.gather(*(
            session.apply(lambda s, i=i: write_file(s, ProjectFile.text(f"scripts/f{i}.js", str(i))))
            for i in range(20)
        ))

        assert len(session.state.files) == 22
