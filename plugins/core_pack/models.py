# plugins/core_pack/models.py

# --- 包文件约定 ---

MANIFEST_PATH = "manifest.json"
PACK_ICON_PATH = "pack_icon.png"
PACK_ICON_TEXTURE_NAME = "pack_icon"
TEXTURES_DIR = "textures"
SCRIPT_ENTRY_PATH = "scripts/main.js"

MANIFEST_FORMAT_VERSION = 2
ADDON_NAME_SUFFIX = " [BP]"

ARCHIVE_EXTENSION = ".mcpack"
IMPORTABLE_EXTENSIONS = (".mcpack", ".zip")

# 按扩展名判定为二进制的文件：图片、音频和通用二进制
BINARY_EXTENSIONS = frozenset({
    "png", "jpg", "jpeg", "tga",
    "fsb", "ogg", "wav", "mp3",
    "bin",
})

# --- 导入时的回退值 ---

FALLBACK_DESCRIPTION = "Imported project"
UNKNOWN_AUTHOR = "Unknown"
DEFAULT_VERSION = (1, 0, 0)
DEFAULT_MIN_ENGINE_VERSION = (1, 21, 0)

# --- 新项目模板 ---

DEFAULT_SCRIPT = """// Generated with Bedrock Pack Studio
import { world } from '@minecraft/server';

world.beforeEvents.chatSend.subscribe((eventData) => {
  const player = eventData.sender;
  if (eventData.message.toLowerCase() === 'hello') {
    player.sendMessage('Hello from your new pack!');
    eventData.cancel = true;
  }
});
"""

DEFAULT_CONFIG_DATA = {
    "name": "My Awesome Pack",
    "description": "A new pack created with Bedrock Pack Studio.",
    "author": "Player",
    "version": DEFAULT_VERSION,
    "min_engine_version": DEFAULT_MIN_ENGINE_VERSION,
    "dependencies": [
        {"module_name": "@minecraft/server", "version": "2.4.0-beta"},
        {"module_name": "@minecraft/server-ui", "version": "2.1.0-beta"},
    ],
}
