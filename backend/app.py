# backend/app.py
import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from backend.container import Container
from backend.core.hooks import HookManager
from backend.core.loader import PluginLoader

logger = logging.getLogger(__name__)


def _build_lifespan(enabled_plugins: Optional[Sequence[str]]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- 启动阶段 ---
        container = Container()
        hook_manager = HookManager(container)

        # 1. 注册平台核心服务
        container.register("container", lambda: container)
        container.register("hook_manager", lambda: hook_manager)

        # 2. 加载插件（同步注册）
        loader = PluginLoader(container, hook_manager, enabled=enabled_plugins)
        loaded = loader.load_plugins()

        logger.info("--- FastAPI 应用组装 ---")

        # 3. 将核心服务附加到 app.state
        app.state.container = container
        app.state.loaded_plugins = loaded
        hook_manager.add_shared_context("app", app)

        # 4. 异步服务初始化
        logger.info("正在为异步初始化触发 'services_post_register' 钩子...")
        await hook_manager.trigger('services_post_register')

        # 5. 收集并装配 API 路由
        routers_to_add: list[APIRouter] = await hook_manager.filter("collect_api_routers", [])
        if routers_to_add:
            logger.info(f"已收集到 {len(routers_to_add)} 个路由。正在添加到应用中...")
            for router in routers_to_add:
                app.include_router(router)
                logger.debug(f"已添加路由: prefix='{router.prefix}', tags={router.tags}")
        else:
            logger.warning("未从插件中收集到任何 API 路由。")

        logger.info("--- Pack Studio 后端已就绪 ---")
        yield
        # --- 关闭阶段 ---
        logger.info("--- Pack Studio 后端正在关闭 ---")
        await hook_manager.trigger('app_shutdown')

    return lifespan


def create_app(enabled_plugins: Optional[Sequence[str]] = None) -> FastAPI:
    """应用工厂函数。enabled_plugins 为 None 时加载全部插件。"""
    app = FastAPI(
        title="Bedrock Pack Studio",
        version="0.1.0",
        lifespan=_build_lifespan(enabled_plugins)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app
