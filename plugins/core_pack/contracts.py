# plugins/core_pack/contracts.py

from __future__ import annotations
import base64
import binascii
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Annotated, Callable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .models import (
    DEFAULT_CONFIG_DATA,
    MANIFEST_FORMAT_VERSION,
)

# --- 基础类型 ---

VersionTriple = Tuple[int, int, int]

# 生成 manifest 时使用的身份令牌来源；默认实现见 manifest.uuid_token_source
TokenSource = Callable[[], str]


def normalize_project_path(path: str) -> str:
    """把路径统一成以 '/' 分隔、不带前导 './' 或 '/' 的相对路径。"""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.lstrip("/")
    if not normalized or normalized.endswith("/"):
        raise ValueError(f"Invalid project file path: '{path}'")
    return normalized


def _decode_base64(value):
    # JSON 里的二进制内容是标准字母表的 base64 字符串；Python 调用方直接传 bytes
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Binary data is not valid base64: {e}") from e
    return value


def _encode_base64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


# --- 配置 (用户可编辑) ---

class Dependency(BaseModel):
    """
    一条 manifest 依赖，原样保留。
    脚本模块依赖写作 {module_name, version: "2.4.0-beta"}；
    包依赖写作 {uuid, version: [1, 0, 0]}。其他未知字段也一并保留。
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    module_name: Optional[str] = None
    uuid: Optional[str] = None
    version: Union[VersionTriple, str]


class PackConfig(BaseModel):
    """用户可编辑的包身份信息。manifest 由它派生。"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    author: str
    version: VersionTriple
    min_engine_version: VersionTriple
    dependencies: Tuple[Dependency, ...] = ()

    @classmethod
    def default(cls) -> "PackConfig":
        return cls.model_validate(DEFAULT_CONFIG_DATA)


# --- Manifest (派生、可序列化) ---

class ManifestHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    uuid: str
    version: VersionTriple
    min_engine_version: VersionTriple


class ManifestModule(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["data", "script"]
    uuid: str
    version: VersionTriple
    entry: Optional[str] = None


class ManifestMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    authors: Tuple[str, ...]


class Manifest(BaseModel):
    model_config = ConfigDict(frozen=True)

    format_version: int = MANIFEST_FORMAT_VERSION
    header: ManifestHeader
    modules: Tuple[ManifestModule, ...]
    dependencies: Tuple[Dependency, ...] = ()
    metadata: ManifestMetadata

    def to_json(self) -> str:
        # data 模块没有 entry，序列化时省略而不是写成 null
        return self.model_dump_json(indent=2, exclude_none=True)


# --- 项目文件 ---

class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    def to_bytes(self) -> bytes:
        return self.text.encode("utf-8")


class BinaryContent(BaseModel):
    # JSON 中以 base64 传输
    model_config = ConfigDict(frozen=True)

    kind: Literal["binary"] = "binary"
    data: bytes

    @field_validator("data", mode="before")
    @classmethod
    def _decode_data(cls, v):
        return _decode_base64(v)

    @field_serializer("data", when_used="json")
    def _encode_data(self, v: bytes) -> str:
        return _encode_base64(v)

    def to_bytes(self) -> bytes:
        return self.data


FileContent = Annotated[Union[TextContent, BinaryContent], Field(discriminator="kind")]


class ProjectFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    content: FileContent

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, v: str) -> str:
        return normalize_project_path(v)

    @classmethod
    def text(cls, path: str, text: str) -> "ProjectFile":
        return cls(path=path, content=TextContent(text=text))

    @classmethod
    def binary(cls, path: str, data: bytes) -> "ProjectFile":
        return cls(path=path, content=BinaryContent(data=data))

    @property
    def is_binary(self) -> bool:
        return isinstance(self.content, BinaryContent)

    @property
    def size(self) -> int:
        return len(self.content.to_bytes())


class GeneratedTexture(BaseModel):
    """生成器产出的图片，尚未成为项目文件。"""
    model_config = ConfigDict(frozen=True)

    name: str
    data: bytes

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        # 名称只是 textures/ 下的文件名主干，不能带目录
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"Invalid texture name: '{v}'")
        return v

    @field_validator("data", mode="before")
    @classmethod
    def _decode_data(cls, v):
        return _decode_base64(v)

    @field_serializer("data", when_used="json")
    def _encode_data(self, v: bytes) -> str:
        return _encode_base64(v)


# --- 项目状态与导入/导出结果 ---

class ProjectState(BaseModel):
    """当前打开的项目。每一步操作都返回一个新的 ProjectState，而不是原地修改。"""
    model_config = ConfigDict(frozen=True)

    config: PackConfig
    files: Tuple[ProjectFile, ...] = ()
    pack_icon: Optional[GeneratedTexture] = None
    selected_path: Optional[str] = None

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.files]


class ImportedPack(BaseModel):
    model_config = ConfigDict(frozen=True)

    files: Tuple[ProjectFile, ...]
    config: PackConfig
    pack_icon: Optional[GeneratedTexture] = None
    manifest_found: bool = False


class ExportedPack(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    data: bytes


# --- 异常 ---

class PackError(Exception):
    """core_pack 的异常基类。"""


class InvalidArchiveError(PackError, ValueError):
    """上传的内容不是一个可读的压缩包。"""


class FileNotInProjectError(PackError, KeyError):
    def __init__(self, path: str):
        super().__init__(path)
        self.path = path

    def __str__(self):
        return f"File '{self.path}' is not part of the project."


# --- 服务接口 ---

class PackServiceInterface(ABC):
    @abstractmethod
    async def export_pack(self, state: ProjectState) -> ExportedPack:
        raise NotImplementedError

    @abstractmethod
    async def import_pack(self, archive_bytes: bytes, archive_name: str) -> ImportedPack:
        raise NotImplementedError

    @abstractmethod
    async def save_export(self, exported: ExportedPack, directory: Optional[Path] = None) -> Path:
        raise NotImplementedError
