# plugins/core_pack/tests/test_pack_codec_and_manifest.py

import json

import pytest

from plugins.core_pack.classifier import is_binary_path
from plugins.core_pack.contracts import Dependency, PackConfig
from plugins.core_pack.manifest import (
    config_from_manifest_data,
    derive_config_from_manifest_text,
    generate_manifest,
    strip_addon_suffix,
)
from plugins.core_pack.versioning import format_version, parse_version_string


def _config(**overrides) -> PackConfig:
    data = {
        "name": "Test",
        "description": "A test pack",
        "author": "Steve",
        "version": (1, 0, 0),
        "min_engine_version": (1, 21, 0),
        "dependencies": (),
    }
    data.update(overrides)
    return PackConfig(**data)


class TestVersionCodec:

    @pytest.mark.parametrize("display", ["1.0.0", "0.0.0", "10.20.30", "1.21.100"])
    def test_well_formed_strings_survive_a_round_trip(self, display):
        assert format_version(parse_version_string(display)) == display

    def test_parse_tolerates_whitespace_around_components(self):
        assert parse_version_string(" 2 . 3 . 4 ") == (2, 3, 4)

    @pytest.mark.parametrize("display", ["", "1.2", "1.2.3.4", "a.b.c", "1.x.0", "1..0", "-1.0.0", "1.0.0-beta"])
    def test_malformed_strings_fall_back_to_default(self, display):
        assert parse_version_string(display) == (1, 0, 0)

    def test_format_joins_components(self):
        assert format_version((1, 21, 0)) == "1.21.0"


class TestManifestGenerator:

    def test_scenario_header_name_and_modules(self, token_source):
        manifest = generate_manifest(_config(), token_source)

        assert manifest.header.name == "Test [BP]"
        assert len(manifest.modules) == 2
        data_module, script_module = manifest.modules
        assert data_module.type == "data"
        assert data_module.entry is None
        assert script_module.type == "script"
        assert script_module.entry == "scripts/main.js"

    def test_tokens_are_drawn_in_header_data_script_order(self, token_source):
        manifest = generate_manifest(_config(), token_source)

        assert manifest.header.uuid == "token-1"
        assert [m.uuid for m in manifest.modules] == ["token-2", "token-3"]

    def test_each_generation_uses_fresh_tokens(self):
        config = _config()
        first = generate_manifest(config)
        second = generate_manifest(config)

        first_tokens = {first.header.uuid, *(m.uuid for m in first.modules)}
        second_tokens = {second.header.uuid, *(m.uuid for m in second.modules)}
        assert len(first_tokens) == 3
        assert first_tokens.isdisjoint(second_tokens)
        assert first.to_json() != second.to_json()

    def test_deterministic_tokens_give_equal_manifests(self):
        config = _config()
        tokens = iter(["a", "b", "c", "a", "b", "c"])
        assert generate_manifest(config, lambda: next(tokens)) == generate_manifest(config, lambda: next(tokens))

    def test_dependencies_are_copied_verbatim(self, token_source):
        deps = (
            Dependency(module_name="@minecraft/server", version="2.4.0-beta"),
            Dependency(module_name="@minecraft/server", version="1.0.0"),
            Dependency(module_name="@minecraft/server-ui", version="2.1.0-beta"),
        )
        manifest = generate_manifest(_config(dependencies=deps), token_source)
        assert manifest.dependencies == deps

    def test_suffix_is_not_deduplicated(self, token_source):
        manifest = generate_manifest(_config(name="Already [BP]"), token_source)
        assert manifest.header.name == "Already [BP] [BP]"

    def test_serialized_shape(self, token_source):
        config = _config(version=(2, 1, 3), author="Alex")
        document = json.loads(generate_manifest(config, token_source).to_json())

        assert document["format_version"] == 2
        assert document["header"]["version"] == [2, 1, 3]
        assert document["header"]["min_engine_version"] == [1, 21, 0]
        assert all(m["version"] == [2, 1, 3] for m in document["modules"])
        assert "entry" not in document["modules"][0]
        assert document["metadata"] == {"authors": ["Alex"]}


class TestManifestDerivation:

    def test_suffix_is_stripped_only_when_present(self):
        assert strip_addon_suffix("Foo [BP]") == "Foo"
        assert strip_addon_suffix("Foo") == "Foo"
        assert strip_addon_suffix("Foo [RP]") == "Foo [RP]"

    def test_generated_manifest_derives_back_to_its_config(self, token_source):
        config = _config(dependencies=(Dependency(module_name="@minecraft/server", version="2.4.0-beta"),))
        derived = derive_config_from_manifest_text(generate_manifest(config, token_source).to_json())
        assert derived == config

    def test_pack_dependency_keeps_its_shape_when_regenerated(self, token_source):
        derived = config_from_manifest_data({
            "header": {"name": "Foo", "version": [1, 0, 0], "min_engine_version": [1, 21, 0]},
            "dependencies": [{"uuid": "abc", "version": [1, 2, 0], "note": "resource pack"}],
        })

        document = json.loads(generate_manifest(derived, token_source).to_json())

        assert document["dependencies"] == [{"uuid": "abc", "version": [1, 2, 0], "note": "resource pack"}]

    def test_missing_author_and_dependencies_use_placeholders(self):
        derived = config_from_manifest_data({
            "header": {"name": "Foo", "version": [1, 2, 3], "min_engine_version": [1, 20, 0]},
            "metadata": {"authors": []},
        })
        assert derived.author == "Unknown"
        assert derived.description == ""
        assert derived.dependencies == ()

    def test_empty_author_string_uses_placeholder(self):
        derived = config_from_manifest_data({
            "header": {"name": "Foo", "version": [1, 0, 0], "min_engine_version": [1, 20, 0]},
            "metadata": {"authors": [""]},
        })
        assert derived.author == "Unknown"

    def test_byte_order_mark_is_tolerated(self, token_source):
        text = "\ufeff" + generate_manifest(_config(), token_source).to_json()
        assert derive_config_from_manifest_text(text).name == "Test"

    @pytest.mark.parametrize("text", [
        "not json at all",
        "[]",
        '{"header": {}}',
        '{"header": {"name": "x", "version": [1, 0], "min_engine_version": [1, 0, 0]}}',
        '{"header": {"name": "x", "version": "1.0.0", "min_engine_version": [1, 0, 0]}}',
    ])
    def test_malformed_manifest_yields_none(self, text):
        assert derive_config_from_manifest_text(text) is None


class TestBinaryClassifier:

    @pytest.mark.parametrize("path", ["icon.tga", "textures/a.PNG", "sounds/x.ogg", "data/blob.bin", "a.jpeg"])
    def test_binary_extensions(self, path):
        assert is_binary_path(path)

    @pytest.mark.parametrize("path", ["script.js", "manifest.json", "functions/tick.mcfunction", "README", "png"])
    def test_text_by_default(self, path):
        assert not is_binary_path(path)

    def test_only_the_file_name_extension_counts(self):
        assert not is_binary_path("textures.png/readme.txt")
