# plugins/core_llm/providers/base.py

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..contracts import LLMResponse, LLMError


class LLMProvider(ABC):
    """
    一个抽象基类，定义了所有生成提供商适配器的标准接口。
    """
    @classmethod
    def requires_api_key(cls) -> bool:
        """
        声明此提供商是否需要 API 密钥才能工作。
        返回 False 时，GenerationService 不会检查密钥是否已配置。
        """
        return True

    @abstractmethod
    async def generate(
        self,
        *,
        prompt: str,
        model_name: str,
        api_key: str,
        system_instruction: Optional[str] = None,
        **kwargs: Any
    ) -> LLMResponse:
        """
        生成一段文本。

        成功和“软失败”（如内容过滤）都封装在 LLMResponse 中返回；
        硬性错误（网络、认证）直接抛出原始异常，由上层通过 translate_error 处理。

        :param kwargs: 其他生成参数，例如 temperature、response_mime_type。
        """
        pass

    @abstractmethod
    async def generate_image(
        self,
        *,
        prompt: str,
        model_name: str,
        api_key: str,
        **kwargs: Any
    ) -> LLMResponse:
        """生成图片；结果放在 LLMResponse.images 中，可能为空。"""
        pass

    @abstractmethod
    def translate_error(self, ex: Exception) -> LLMError:
        """
        将特定于提供商的原始异常转换为标准化的 LLMError 对象。
        """
        pass
