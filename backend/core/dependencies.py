# backend/core/dependencies.py

from typing import Any
from fastapi import Request


class Service:
    """
    FastAPI 依赖：从挂在 app.state 上的容器中解析指定名称的服务。

    用法: service: PackService = Depends(Service("pack_service"))
    """
    def __init__(self, name: str):
        self.name = name

    def __call__(self, request: Request) -> Any:
        return request.app.state.container.resolve(self.name)
