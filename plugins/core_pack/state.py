# plugins/core_pack/state.py

import asyncio
import logging
from typing import Callable, Optional, Sequence

from .contracts import (
    BinaryContent,
    FileNotInProjectError,
    GeneratedTexture,
    ImportedPack,
    PackConfig,
    ProjectFile,
    ProjectState,
    TokenSource,
    normalize_project_path,
)
from .manifest import generate_manifest, uuid_token_source
from .models import (
    DEFAULT_SCRIPT,
    MANIFEST_PATH,
    PACK_ICON_PATH,
    SCRIPT_ENTRY_PATH,
)
from .reconciler import find_file, merge_files, remove_file, upsert_file

logger = logging.getLogger(__name__)

StateTransition = Callable[[ProjectState], ProjectState]


# --- 纯函数：ProjectState -> ProjectState ---

def new_project(token_source: TokenSource = uuid_token_source) -> ProjectState:
    """默认项目：一份由默认配置生成的 manifest 加一个示例脚本。"""
    config = PackConfig.default()
    manifest = generate_manifest(config, token_source)
    return ProjectState(
        config=config,
        files=(
            ProjectFile.text(MANIFEST_PATH, manifest.to_json()),
            ProjectFile.text(SCRIPT_ENTRY_PATH, DEFAULT_SCRIPT),
        ),
        selected_path=SCRIPT_ENTRY_PATH,
    )


def update_config(state: ProjectState, config: PackConfig) -> ProjectState:
    return state.model_copy(update={"config": config})


def save_configuration(state: ProjectState, token_source: TokenSource = uuid_token_source) -> ProjectState:
    """把当前配置（以及图标，如果有）作为普通文件写回文件集。"""
    manifest = generate_manifest(state.config, token_source)
    files = upsert_file(state.files, MANIFEST_PATH, manifest.to_json())
    if state.pack_icon is not None:
        files = upsert_file(files, PACK_ICON_PATH, BinaryContent(data=state.pack_icon.data))
    return state.model_copy(update={"files": files})


def set_pack_icon(state: ProjectState, texture: Optional[GeneratedTexture]) -> ProjectState:
    return state.model_copy(update={"pack_icon": texture})


def write_file(state: ProjectState, project_file: ProjectFile) -> ProjectState:
    return state.model_copy(update={"files": upsert_file(state.files, project_file.path, project_file.content)})


def delete_file(state: ProjectState, path: str) -> ProjectState:
    path = normalize_project_path(path)
    if find_file(state.files, path) is None:
        raise FileNotInProjectError(path)

    update = {"files": remove_file(state.files, path)}
    if state.selected_path == path:
        update["selected_path"] = None
    return state.model_copy(update=update)


def select_file(state: ProjectState, path: Optional[str]) -> ProjectState:
    if path is not None:
        path = normalize_project_path(path)
        if find_file(state.files, path) is None:
            raise FileNotInProjectError(path)
    return state.model_copy(update={"selected_path": path})


def apply_generated_files(state: ProjectState, batch: Sequence[ProjectFile]) -> ProjectState:
    """
    把生成器返回的一批文件合并进项目。

    合并后编辑器切到路径含 'main.js' 的文件，否则切到批次中的第一个文件。
    """
    if not batch:
        return state

    files = merge_files(state.files, batch)
    main_script = next((f for f in batch if "main.js" in f.path), None)
    selected = (main_script or batch[0]).path
    return state.model_copy(update={"files": files, "selected_path": selected})


def initial_selection(files: Sequence[ProjectFile]) -> Optional[str]:
    preferred = next((f for f in files if f.path.endswith((".js", ".json"))), None)
    if preferred is not None:
        return preferred.path
    return files[0].path if files else None


def project_from_import(imported: ImportedPack) -> ProjectState:
    """导入会整体替换项目，不经过合并。"""
    return ProjectState(
        config=imported.config,
        files=imported.files,
        pack_icon=imported.pack_icon,
        selected_path=initial_selection(imported.files),
    )


# --- 会话：持有唯一打开的项目 ---

class ProjectSession:
    """
    持有当前打开的 ProjectState。

    所有状态转换都在同一把锁内执行：读取旧状态、计算新状态、整体替换。
    转换函数抛出异常时旧状态保持不变。
    """
    def __init__(self, initial_state: Optional[ProjectState] = None):
        self._state = initial_state if initial_state is not None else new_project()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ProjectState:
        return self._state

    async def apply(self, transition: StateTransition) -> ProjectState:
        async with self._lock:
            new_state = transition(self._state)
            self._state = new_state
            return new_state

    async def replace(self, new_state: ProjectState) -> ProjectState:
        return await self.apply(lambda _: new_state)
