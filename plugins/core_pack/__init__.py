# plugins/core_pack/__init__.py
import os
import logging

from backend.core.contracts import Container, HookManager
from .service import PackService
from .state import ProjectSession, new_project
from .api import pack_router

logger = logging.getLogger(__name__)


def _create_pack_service() -> PackService:
    export_dir = os.getenv("PACK_STUDIO_EXPORT_DIR", "exports")
    return PackService(export_dir=export_dir)


def _create_project_session(container: Container) -> ProjectSession:
    pack_service: PackService = container.resolve("pack_service")
    return ProjectSession(new_project(pack_service.token_source))


async def provide_router(routers: list) -> list:
    routers.append(pack_router)
    logger.debug("Provided 'pack_router' to the application.")
    return routers


async def log_open_project(container: Container):
    """钩子实现: 所有服务注册后，创建会话并记录初始项目。"""
    session: ProjectSession = container.resolve("project_session")
    state = session.state
    logger.info(f"Project session ready: '{state.config.name}' with {len(state.files)} files.")


def register_plugin(container: Container, hook_manager: HookManager):
    logger.info("--> 正在注册 [core_pack] 插件...")
    container.register("pack_service", _create_pack_service, singleton=True)
    container.register("project_session", _create_project_session, singleton=True)
    logger.debug("Registered 'pack_service' and 'project_session'.")

    hook_manager.add_implementation(
        "collect_api_routers", provide_router, plugin_name="core_pack"
    )
    hook_manager.add_implementation(
        "services_post_register", log_open_project, priority=90, plugin_name="core_pack"
    )
    logger.info("插件 [core_pack] 注册成功。")
