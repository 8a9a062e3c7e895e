# plugins/core_pack/api.py

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from pydantic import BaseModel, Field

from backend.core.dependencies import Service
from plugins.core_llm.contracts import (
    GeneratedFile,
    GenerationFailedError,
    GenerationServiceInterface,
)

from .contracts import (
    Dependency,
    FileContent,
    FileNotInProjectError,
    GeneratedTexture,
    InvalidArchiveError,
    PackConfig,
    ProjectFile,
    ProjectState,
    TextContent,
)
from .models import IMPORTABLE_EXTENSIONS, PACK_ICON_TEXTURE_NAME
from .reconciler import find_file
from .service import PackService
from .state import (
    ProjectSession,
    apply_generated_files,
    delete_file,
    new_project,
    project_from_import,
    save_configuration,
    select_file,
    set_pack_icon,
    update_config,
    write_file,
)
from .versioning import format_version, parse_version_string

logger = logging.getLogger(__name__)

pack_router = APIRouter(
    prefix="/api/project",
    tags=["Core-Pack"]
)


# --- 请求 / 响应模型 ---

class PackConfigForm(BaseModel):
    """编辑器表单里的配置：版本号以 "1.2.3" 形式的字符串交换。"""
    name: str
    description: str
    author: str
    version: str
    min_engine_version: str
    dependencies: List[Dependency] = Field(default_factory=list)

    @classmethod
    def from_config(cls, config: PackConfig) -> "PackConfigForm":
        return cls(
            name=config.name,
            description=config.description,
            author=config.author,
            version=format_version(config.version),
            min_engine_version=format_version(config.min_engine_version),
            dependencies=list(config.dependencies),
        )

    def to_config(self) -> PackConfig:
        return PackConfig(
            name=self.name,
            description=self.description,
            author=self.author,
            version=parse_version_string(self.version),
            min_engine_version=parse_version_string(self.min_engine_version),
            dependencies=tuple(self.dependencies),
        )


class FileSummary(BaseModel):
    path: str
    kind: Literal["text", "binary"]
    size: int


class ProjectView(BaseModel):
    config: PackConfigForm
    files: List[FileSummary]
    selected_path: Optional[str] = None
    has_icon: bool = False

    @classmethod
    def from_state(cls, state: ProjectState) -> "ProjectView":
        return cls(
            config=PackConfigForm.from_config(state.config),
            files=[FileSummary(path=f.path, kind=f.content.kind, size=f.size) for f in state.files],
            selected_path=state.selected_path,
            has_icon=state.pack_icon is not None,
        )


class FileBody(BaseModel):
    content: FileContent


class SelectionRequest(BaseModel):
    path: Optional[str] = None


class PromptRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class CheckScriptRequest(BaseModel):
    # 两者都不给时检查当前选中的文件
    path: Optional[str] = None
    content: Optional[str] = None


class CheckScriptResponse(BaseModel):
    result: str


class GenerateFilesResponse(BaseModel):
    explanation: Optional[str] = None
    paths: List[str]
    project: ProjectView


class ImportResponse(BaseModel):
    manifest_found: bool
    project: ProjectView


# --- 错误转换 ---

def _not_found(e: FileNotInProjectError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


def _bad_gateway(e: GenerationFailedError) -> HTTPException:
    logger.error(f"Generation request failed: {e}", exc_info=True)
    return HTTPException(status_code=502, detail=e.message)


# --- 项目 ---

@pack_router.get("", response_model=ProjectView)
async def get_project(session: ProjectSession = Depends(Service("project_session"))):
    return ProjectView.from_state(session.state)


@pack_router.post(":reset", response_model=ProjectView)
async def reset_project(
    session: ProjectSession = Depends(Service("project_session")),
    pack_service: PackService = Depends(Service("pack_service"))
):
    state = await session.replace(new_project(pack_service.token_source))
    logger.info("Project reset to the default template.")
    return ProjectView.from_state(state)


# --- 配置 ---

@pack_router.get("/config", response_model=PackConfigForm)
async def get_config(session: ProjectSession = Depends(Service("project_session"))):
    return PackConfigForm.from_config(session.state.config)


@pack_router.put("/config", response_model=PackConfigForm)
async def put_config(
    form: PackConfigForm,
    session: ProjectSession = Depends(Service("project_session"))
):
    """替换配置。格式错误的版本号会被宽松地解析为 1.0.0，而不是报错。"""
    config = form.to_config()
    state = await session.apply(lambda s: update_config(s, config))
    return PackConfigForm.from_config(state.config)


@pack_router.post("/config:save", response_model=ProjectView)
async def save_config(
    session: ProjectSession = Depends(Service("project_session")),
    pack_service: PackService = Depends(Service("pack_service"))
):
    """把 manifest（以及图标，如果有）作为普通文件写入项目。"""
    state = await session.apply(lambda s: save_configuration(s, pack_service.token_source))
    return ProjectView.from_state(state)


# --- 文件 ---

@pack_router.get("/files/{path:path}", response_model=ProjectFile)
async def get_file(path: str, session: ProjectSession = Depends(Service("project_session"))):
    try:
        project_file = find_file(session.state.files, path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if project_file is None:
        raise _not_found(FileNotInProjectError(path))
    return project_file


@pack_router.put("/files/{path:path}", response_model=ProjectView)
async def put_file(
    path: str,
    body: FileBody,
    session: ProjectSession = Depends(Service("project_session"))
):
    try:
        project_file = ProjectFile(path=path, content=body.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    state = await session.apply(lambda s: write_file(s, project_file))
    return ProjectView.from_state(state)


@pack_router.delete("/files/{path:path}", response_model=ProjectView)
async def remove_project_file(path: str, session: ProjectSession = Depends(Service("project_session"))):
    try:
        state = await session.apply(lambda s: delete_file(s, path))
    except FileNotInProjectError as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ProjectView.from_state(state)


@pack_router.put("/selection", response_model=ProjectView)
async def put_selection(
    request: SelectionRequest,
    session: ProjectSession = Depends(Service("project_session"))
):
    try:
        state = await session.apply(lambda s: select_file(s, request.path))
    except FileNotInProjectError as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ProjectView.from_state(state)


@pack_router.get("/icon")
async def get_icon(session: ProjectSession = Depends(Service("project_session"))):
    icon = session.state.pack_icon
    if icon is None:
        raise HTTPException(status_code=404, detail="The project has no pack icon.")
    return Response(content=icon.data, media_type="image/png")


# --- 导入 / 导出 ---

@pack_router.post(":export")
async def export_project(
    save: bool = False,
    session: ProjectSession = Depends(Service("project_session")),
    pack_service: PackService = Depends(Service("pack_service"))
):
    """
    把当前项目打包为 .mcpack 并作为附件返回。
    save=true 时同时写入服务器的导出目录。
    """
    try:
        exported = await pack_service.export_pack(session.state)
        headers = {"Content-Disposition": f'attachment; filename="{exported.filename}"'}
        if save:
            saved_path = await pack_service.save_export(exported)
            headers["X-Saved-Path"] = str(saved_path)
    except Exception as e:
        logger.error(f"Failed to export project: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while assembling the pack.")

    return Response(content=exported.data, media_type="application/zip", headers=headers)


@pack_router.post(":import", response_model=ImportResponse)
async def import_project(
    file: UploadFile = File(...),
    session: ProjectSession = Depends(Service("project_session")),
    pack_service: PackService = Depends(Service("pack_service"))
):
    """用上传的 .mcpack / .zip 整体替换当前项目。"""
    filename = file.filename or ""
    if not filename.lower().endswith(IMPORTABLE_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Only .zip and .mcpack files are supported.")

    archive_bytes = await file.read()
    try:
        imported = await pack_service.import_pack(archive_bytes, filename)
    except InvalidArchiveError as e:
        logger.warning(f"Rejected upload '{filename}': {e}")
        raise HTTPException(status_code=400, detail=str(e))

    state = await session.replace(project_from_import(imported))
    return ImportResponse(manifest_found=imported.manifest_found, project=ProjectView.from_state(state))


# --- 生成 ---

@pack_router.post("/generate/files", response_model=GenerateFilesResponse)
async def generate_files(
    request: PromptRequest,
    session: ProjectSession = Depends(Service("project_session")),
    generator: GenerationServiceInterface = Depends(Service("generation_service"))
):
    """
    请求生成器新增或修改文件，并把结果合并进项目。
    只有文本文件会作为上下文发送。
    """
    context = [
        GeneratedFile(path=f.path, content=f.content.text)
        for f in session.state.files
        if isinstance(f.content, TextContent)
    ]
    try:
        batch = await generator.generate_project_files(request.prompt, context)
    except GenerationFailedError as e:
        raise _bad_gateway(e)

    try:
        generated = [ProjectFile.text(f.path, f.content) for f in batch.files]
    except ValueError as e:
        logger.error(f"Generation returned an unusable file path: {e}")
        raise HTTPException(status_code=502, detail="AI response contained an invalid file path.")

    state = await session.apply(lambda s: apply_generated_files(s, generated))
    return GenerateFilesResponse(
        explanation=batch.explanation,
        paths=[f.path for f in generated],
        project=ProjectView.from_state(state),
    )


@pack_router.post("/generate/icon", response_model=ProjectView)
async def generate_icon(
    request: PromptRequest,
    session: ProjectSession = Depends(Service("project_session")),
    generator: GenerationServiceInterface = Depends(Service("generation_service"))
):
    try:
        png_bytes = await generator.generate_image(request.prompt)
    except GenerationFailedError as e:
        raise _bad_gateway(e)

    texture = GeneratedTexture(name=PACK_ICON_TEXTURE_NAME, data=png_bytes)
    state = await session.apply(lambda s: set_pack_icon(s, texture))
    return ProjectView.from_state(state)


@pack_router.post("/check-script", response_model=CheckScriptResponse)
async def check_script(
    request: CheckScriptRequest,
    session: ProjectSession = Depends(Service("project_session")),
    generator: GenerationServiceInterface = Depends(Service("generation_service"))
):
    content = request.content
    if content is None:
        path = request.path or session.state.selected_path
        if path is None:
            raise HTTPException(status_code=400, detail="No script selected.")
        try:
            project_file = find_file(session.state.files, path)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if project_file is None:
            raise _not_found(FileNotInProjectError(path))
        if not isinstance(project_file.content, TextContent):
            raise HTTPException(status_code=400, detail=f"File '{project_file.path}' is binary and cannot be checked.")
        content = project_file.content.text

    return CheckScriptResponse(result=await generator.check_script(content))
