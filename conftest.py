# conftest.py

import io
import zipfile
import itertools
from typing import AsyncGenerator, Callable, Dict, Union

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from asgi_lifespan import LifespanManager
from PIL import Image

from backend.app import create_app
from backend.core.contracts import Container


# --- 1. 环境 ---

@pytest.fixture(autouse=True)
def force_llm_debug_mode(monkeypatch, tmp_path):
    """所有测试都使用 MockProvider，导出目录指向临时目录。"""
    monkeypatch.setenv("PACK_STUDIO_LLM_DEBUG_MODE", "true")
    monkeypatch.setenv("PACK_STUDIO_EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


# --- 2. 应用与客户端 ---

@pytest.fixture
def app() -> FastAPI:
    """每个测试一个新的应用实例，这样项目会话不会在测试之间泄漏。"""
    return create_app()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """一个正确处理应用生命周期的 AsyncClient。"""
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
def container(app: FastAPI, client: AsyncClient) -> Container:
    """应用启动后挂在 app.state 上的容器。依赖 client 以确保 lifespan 已运行。"""
    return app.state.container


# --- 3. 测试数据 ---

@pytest.fixture
def token_source() -> Callable[[], str]:
    """确定性的身份令牌来源：token-1, token-2, ..."""
    counter = itertools.count(1)
    return lambda: f"token-{next(counter)}"


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (4, 4), (255, 0, 0, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_zip() -> Callable[[Dict[str, Union[str, bytes]]], bytes]:
    """把 {条目名: 内容} 打成 ZIP 字节，保持字典顺序。"""
    def _make(entries: Dict[str, Union[str, bytes]]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for name, content in entries.items():
                zf.writestr(name, content)
        return buffer.getvalue()
    return _make
