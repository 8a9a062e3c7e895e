# plugins/core_llm/providers/mock.py

import io
import json
import asyncio
from typing import Any, Optional

from PIL import Image

from .base import LLMProvider
from ..contracts import (
    LLMResponse,
    LLMError,
    LLMResponseStatus,
    LLMErrorType,
)

MOCK_SCRIPT = """// [MOCK] Generated without contacting a provider
import { world } from '@minecraft/server';

world.afterEvents.playerSpawn.subscribe((event) => {
  event.player.sendMessage('Mock generation is active.');
});
"""

MOCK_REVIEW = "[MOCK] No issues found."


class MockProvider(LLMProvider):
    """
    一个用于测试和调试的模拟提供商。
    返回确定性的结果，不进行任何外部调用。
    """
    @classmethod
    def requires_api_key(cls) -> bool:
        """声明此提供商不需要 API 密钥。"""
        return False

    async def generate(
        self,
        *,
        prompt: str,
        model_name: str,
        api_key: str,
        system_instruction: Optional[str] = None,
        **kwargs: Any
    ) -> LLMResponse:
        await asyncio.sleep(0.01) # 模拟网络延迟

        if kwargs.get("response_mime_type") == "application/json":
            content = json.dumps({
                "files": [{"path": "scripts/main.js", "content": MOCK_SCRIPT}],
                "explanation": f"[MOCK RESPONSE for {model_name}] Rewrote scripts/main.js.",
            })
        else:
            content = MOCK_REVIEW

        prompt_token_count = len(prompt.split())
        return LLMResponse(
            status=LLMResponseStatus.SUCCESS,
            content=content,
            model_name=model_name,
            usage={"prompt_tokens": prompt_token_count, "completion_tokens": 15, "total_tokens": prompt_token_count + 15}
        )

    async def generate_image(
        self,
        *,
        prompt: str,
        model_name: str,
        api_key: str,
        **kwargs: Any
    ) -> LLMResponse:
        buffer = io.BytesIO()
        Image.new("RGBA", (16, 16), (94, 160, 60, 255)).save(buffer, format="PNG")
        return LLMResponse(status=LLMResponseStatus.SUCCESS, images=[buffer.getvalue()], model_name=model_name)

    def translate_error(self, ex: Exception) -> LLMError:
        """对于模拟提供商，此方法不太可能被调用。"""
        return LLMError(
            error_type=LLMErrorType.UNKNOWN_ERROR,
            message=f"An unexpected error occurred in MockProvider: {ex}",
            is_retryable=False
        )
