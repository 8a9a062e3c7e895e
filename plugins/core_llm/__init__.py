# plugins/core_llm/__init__.py

import logging

# 从平台核心导入接口和类型
from backend.core.contracts import Container, HookManager

# 导入本插件内部的组件
from .service import GenerationService, GenerationSettings
from .providers.base import LLMProvider
from .providers.gemini import GeminiProvider
from .providers.mock import MockProvider

logger = logging.getLogger(__name__)

# --- 服务工厂 (Service Factories) ---

def _create_provider(settings: GenerationSettings) -> LLMProvider:
    if settings.debug_mode:
        logger.warning("PACK_STUDIO_LLM_DEBUG_MODE is on: using MockProvider, no external calls will be made.")
        return MockProvider()
    if not settings.api_key:
        logger.warning("GEMINI_API_KEY is not set; generation requests will fail until it is configured.")
    return GeminiProvider()


def _create_generation_service() -> GenerationService:
    settings = GenerationSettings.from_env()
    return GenerationService(provider=_create_provider(settings), settings=settings)


# --- 钩子实现 (Hook Implementations) ---

async def report_generation_provider(container: Container):
    """钩子实现：启动时记录当前使用的生成提供商。"""
    service: GenerationService = container.resolve("generation_service")
    logger.info(
        f"Generation provider: {type(service.provider).__name__} "
        f"(text model '{service.settings.text_model}', image model '{service.settings.image_model}')."
    )


# --- 主注册函数 (Main Registration Function) ---
def register_plugin(container: Container, hook_manager: HookManager):
    logger.info("--> 正在注册 [core_llm] 插件...")

    container.register("generation_service", _create_generation_service, singleton=True)

    hook_manager.add_implementation("services_post_register", report_generation_provider, plugin_name="core_llm")
    logger.info("插件 [core_llm] 注册成功。")
