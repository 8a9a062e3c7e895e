# plugins/core_llm/contracts.py

from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Dict, Any, List, Sequence

from pydantic import BaseModel, Field

# --- Enums for Status and Error Types (公共契约) ---

class LLMResponseStatus(str, Enum):
    """定义 LLM 响应的标准化状态。"""
    SUCCESS = "success"
    FILTERED = "filtered"
    ERROR = "error"


class LLMErrorType(str, Enum):
    """定义标准化的 LLM 错误类型，用于驱动重试逻辑。"""
    AUTHENTICATION_ERROR = "authentication_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    PROVIDER_ERROR = "provider_error"
    NETWORK_ERROR = "network_error"
    INVALID_REQUEST_ERROR = "invalid_request_error"
    INVALID_RESPONSE_ERROR = "invalid_response_error"
    UNKNOWN_ERROR = "unknown_error"


# --- Core Data Models (公共契约) ---

class LLMError(BaseModel):
    """一个标准化的错误对象，用于封装来自任何提供商的错误信息。"""
    error_type: LLMErrorType
    message: str
    is_retryable: bool
    provider_details: Optional[Dict[str, Any]] = Field(default_factory=dict)


class LLMResponse(BaseModel):
    """
    一个标准化的响应对象。文本请求填充 content，图片请求填充 images。
    """
    status: LLMResponseStatus
    content: Optional[str] = None
    images: List[bytes] = Field(default_factory=list)
    model_name: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    error_details: Optional[LLMError] = None


class GeneratedFile(BaseModel):
    """生成器返回（或作为上下文发送）的一个文本文件。"""
    path: str
    content: str


class GeneratedFileBatch(BaseModel):
    """生成器对一次请求的完整回答：要新增或覆盖的文件，以及一段说明。"""
    files: List[GeneratedFile]
    explanation: Optional[str] = None


# --- Custom Exception (公共契约) ---

class GenerationFailedError(Exception):
    """重试用尽，或提供商的回答无法使用时，由 GenerationService 抛出。"""
    def __init__(self, message: str, last_error: Optional[LLMError] = None):
        super().__init__(message)
        self.message = message
        self.last_error = last_error

    @property
    def is_retryable(self) -> bool:
        return self.last_error is not None and self.last_error.is_retryable

    def __str__(self):
        if self.last_error:
            return f"{self.message}\nLast known error ({self.last_error.error_type.value}): {self.last_error.message}"
        return self.message


# --- Service Interface (公共契约) ---

class GenerationServiceInterface(ABC):
    """
    其他插件（例如 core_pack 的 API）应该依赖这个接口，而不是具体的 GenerationService。
    """
    @abstractmethod
    async def generate_project_files(self, prompt: str, current_files: Sequence[GeneratedFile]) -> GeneratedFileBatch:
        raise NotImplementedError

    @abstractmethod
    async def check_script(self, script_content: str) -> str:
        """返回提供商的审查意见。失败时返回一段注释文本，而不是抛出异常。"""
        raise NotImplementedError

    @abstractmethod
    async def generate_image(self, prompt: str) -> bytes:
        """返回 PNG 字节。"""
        raise NotImplementedError
