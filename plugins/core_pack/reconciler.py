# plugins/core_pack/reconciler.py

from typing import Iterable, Optional, Sequence, Tuple, Union

from .contracts import (
    BinaryContent,
    FileContent,
    ProjectFile,
    TextContent,
    normalize_project_path,
)

FileSet = Tuple[ProjectFile, ...]


def find_file(files: Sequence[ProjectFile], path: str) -> Optional[ProjectFile]:
    path = normalize_project_path(path)
    return next((f for f in files if f.path == path), None)


def upsert_file(files: Sequence[ProjectFile], path: str, content: Union[FileContent, str, bytes]) -> FileSet:
    """
    按路径新增或替换一个文件。

    已存在同路径的条目时原位替换其内容（保持位置），否则追加到末尾。
    str 视为文本内容，bytes 视为二进制内容。
    """
    if isinstance(content, str):
        content = TextContent(text=content)
    elif isinstance(content, bytes):
        content = BinaryContent(data=content)

    new_file = ProjectFile(path=path, content=content)
    result = list(files)
    for index, existing in enumerate(result):
        if existing.path == new_file.path:
            result[index] = new_file
            return tuple(result)

    result.append(new_file)
    return tuple(result)


def merge_files(files: Sequence[ProjectFile], batch: Iterable[ProjectFile]) -> FileSet:
    """按批次顺序逐个 upsert；同一批次里后出现的同路径文件覆盖先出现的。"""
    result = tuple(files)
    for incoming in batch:
        result = upsert_file(result, incoming.path, incoming.content)
    return result


def remove_file(files: Sequence[ProjectFile], path: str) -> FileSet:
    path = normalize_project_path(path)
    return tuple(f for f in files if f.path != path)
