# plugins/core_llm/service.py

from __future__ import annotations
import io
import os
import json
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .contracts import (
    GeneratedFile,
    GeneratedFileBatch,
    GenerationFailedError,
    GenerationServiceInterface,
    LLMError,
    LLMErrorType,
    LLMResponse,
    LLMResponseStatus,
)
from .prompts import (
    SCRIPT_DEBUGGER_SYSTEM_INSTRUCTION,
    SCRIPT_GENERATION_SYSTEM_INSTRUCTION,
    build_check_prompt,
    build_generation_prompt,
    build_icon_prompt,
)
from .providers.base import LLMProvider

logger = logging.getLogger(__name__)

EMPTY_SCRIPT_MESSAGE = "Script is empty. Nothing to check."
CHECK_FAILED_PREFIX = "// An error occurred while checking the script: "
INVALID_JSON_MESSAGE = "AI response was not valid JSON."
NO_IMAGE_MESSAGE = "No image was generated."


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() in ("1", "true", "yes", "on")


class GenerationSettings(BaseModel):
    api_key: Optional[str] = None
    text_model: str = "gemini-2.5-pro"
    image_model: str = "imagen-4.0-generate-001"
    debug_mode: bool = False
    max_attempts: int = 3
    retry_min_wait: float = 2.0
    retry_max_wait: float = 10.0

    @classmethod
    def from_env(cls) -> "GenerationSettings":
        return cls(
            api_key=os.getenv("GEMINI_API_KEY") or None,
            text_model=os.getenv("PACK_STUDIO_TEXT_MODEL", "gemini-2.5-pro"),
            image_model=os.getenv("PACK_STUDIO_IMAGE_MODEL", "imagen-4.0-generate-001"),
            debug_mode=_env_flag("PACK_STUDIO_LLM_DEBUG_MODE"),
        )


def is_retryable_generation_error(exception: BaseException) -> bool:
    """Tenacity 重试条件：只在错误是可重试类型时才重试。"""
    return isinstance(exception, GenerationFailedError) and exception.is_retryable


def normalize_png(image_bytes: bytes) -> bytes:
    """把提供商返回的任意图片格式统一转成 PNG。"""
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.load()
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            return buffer.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise GenerationFailedError(f"Generated image could not be decoded: {e}") from e


class GenerationService(GenerationServiceInterface):
    def __init__(self, provider: LLMProvider, settings: Optional[GenerationSettings] = None):
        self.provider = provider
        self.settings = settings or GenerationSettings()
        self.last_known_error: Optional[LLMError] = None

    # --- 请求与重试 ---

    def _require_api_key(self) -> str:
        if not self.provider.requires_api_key():
            return ""
        if not self.settings.api_key:
            error = LLMError(
                error_type=LLMErrorType.AUTHENTICATION_ERROR,
                message="GEMINI_API_KEY is not configured.",
                is_retryable=False,
            )
            raise GenerationFailedError("Generation provider is not configured.", last_error=error)
        return self.settings.api_key

    async def _attempt(self, operation: str, call: Callable[[], Awaitable[LLMResponse]]) -> LLMResponse:
        """执行一次请求，把所有失败都转成带 LLMError 的 GenerationFailedError。"""
        try:
            response = await call()
        except Exception as e:
            llm_error = self.provider.translate_error(e)
            self.last_known_error = llm_error
            raise GenerationFailedError(f"{operation} failed: {llm_error.message}", last_error=llm_error) from e

        if response.status != LLMResponseStatus.SUCCESS:
            llm_error = response.error_details or LLMError(
                error_type=LLMErrorType.UNKNOWN_ERROR,
                message=f"Provider returned status '{response.status.value}' without details.",
                is_retryable=False,
            )
            self.last_known_error = llm_error
            raise GenerationFailedError(f"{operation} failed: {llm_error.message}", last_error=llm_error)
        return response

    async def _request(self, operation: str, call: Callable[[], Awaitable[LLMResponse]]) -> LLMResponse:
        self.last_known_error = None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_attempts),
            wait=wait_exponential(multiplier=1, min=self.settings.retry_min_wait, max=self.settings.retry_max_wait),
            retry=retry_if_exception(is_retryable_generation_error),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(f"Retrying {operation} (attempt {attempt.retry_state.attempt_number}/{self.settings.max_attempts})...")
                return await self._attempt(operation, call)

    async def _request_text(self, operation: str, prompt: str, system_instruction: str, **kwargs: Any) -> LLMResponse:
        api_key = self._require_api_key()
        return await self._request(operation, lambda: self.provider.generate(
            prompt=prompt,
            model_name=self.settings.text_model,
            api_key=api_key,
            system_instruction=system_instruction,
            **kwargs
        ))

    # --- 公共能力 ---

    async def generate_project_files(self, prompt: str, current_files: Sequence[GeneratedFile]) -> GeneratedFileBatch:
        logger.info(f"Requesting file generation with {len(current_files)} context files.")
        response = await self._request_text(
            "File generation",
            build_generation_prompt(prompt, current_files),
            SCRIPT_GENERATION_SYSTEM_INSTRUCTION,
            response_mime_type="application/json",
        )

        try:
            batch = GeneratedFileBatch.model_validate(json.loads(response.content or ""))
        except ValueError as e:
            # json.JSONDecodeError 和 pydantic.ValidationError 都是 ValueError 的子类
            logger.error(f"Failed to parse generation response: {e}")
            logger.debug(f"Raw generation response: {response.content!r}")
            error = LLMError(error_type=LLMErrorType.INVALID_RESPONSE_ERROR, message=str(e), is_retryable=False)
            raise GenerationFailedError(INVALID_JSON_MESSAGE, last_error=error) from e

        logger.info(f"Generation returned {len(batch.files)} files.")
        return batch

    async def check_script(self, script_content: str) -> str:
        if not script_content.strip():
            return EMPTY_SCRIPT_MESSAGE

        try:
            response = await self._request_text(
                "Script check",
                build_check_prompt(script_content),
                SCRIPT_DEBUGGER_SYSTEM_INSTRUCTION,
                temperature=0.1,
            )
        except GenerationFailedError as e:
            logger.warning(f"Script check failed: {e}")
            return f"{CHECK_FAILED_PREFIX}{e.message}"
        return response.content or ""

    async def generate_image(self, prompt: str) -> bytes:
        api_key = self._require_api_key()
        response = await self._request("Image generation", lambda: self.provider.generate_image(
            prompt=build_icon_prompt(prompt),
            model_name=self.settings.image_model,
            api_key=api_key,
            number_of_images=1,
            aspect_ratio="1:1",
        ))

        if not response.images:
            raise GenerationFailedError(NO_IMAGE_MESSAGE)
        return await asyncio.to_thread(normalize_png, response.images[0])
