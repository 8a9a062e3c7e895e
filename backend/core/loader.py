# backend/core/loader.py

import json
import logging
import importlib
import importlib.resources
import traceback
from typing import Dict, List, Optional, Sequence

from backend.core.contracts import Container, HookManager, PluginRegisterFunc

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100


class PluginLoader:
    """发现 'plugins' 包下带有 manifest.json 的子包，按优先级导入并调用其 register_plugin。"""

    def __init__(self, container: Container, hook_manager: HookManager, enabled: Optional[Sequence[str]] = None):
        self._container = container
        self._hook_manager = hook_manager
        # None 表示加载全部发现的插件；测试可以只启用一部分
        self._enabled = set(enabled) if enabled is not None else None

    def load_plugins(self) -> List[str]:
        # 使用 print 是因为此时日志系统可能还未配置（core_logging 本身也是插件）
        print("\n--- Pack Studio 插件系统：开始加载 ---")

        all_plugins = self._discover_plugins()
        if self._enabled is not None:
            all_plugins = [p for p in all_plugins if p['name'] in self._enabled]

        if not all_plugins:
            print("警告：未发现任何插件。")
            print("--- Pack Studio 插件系统：加载完成 ---\n")
            return []

        sorted_plugins = sorted(all_plugins, key=lambda p: (p['manifest'].get('priority', DEFAULT_PRIORITY), p['name']))

        print("插件加载顺序已确定：")
        for i, p_info in enumerate(sorted_plugins):
            print(f"  {i+1}. {p_info['name']} (优先级: {p_info['manifest'].get('priority', DEFAULT_PRIORITY)})")

        self._register_plugins(sorted_plugins)

        logger.info("所有插件均已加载并注册完毕。")
        print("--- Pack Studio 插件系统：加载完成 ---\n")
        return [p['name'] for p in sorted_plugins]

    def _discover_plugins(self) -> List[Dict]:
        discovered = []
        try:
            plugins_package_path = importlib.resources.files('plugins')
        except ModuleNotFoundError:
            return discovered

        for plugin_path in plugins_package_path.iterdir():
            if not plugin_path.is_dir() or plugin_path.name.startswith(('__', '.')):
                continue

            manifest_path = plugin_path / "manifest.json"
            if not manifest_path.is_file():
                continue

            try:
                manifest = json.loads(manifest_path.read_text(encoding='utf-8'))
            except (OSError, json.JSONDecodeError) as e:
                print(f"警告：跳过插件 '{plugin_path.name}'，manifest.json 无法解析：{e}")
                continue

            discovered.append({
                "name": manifest.get('name', plugin_path.name),
                "manifest": manifest,
                "import_path": f"plugins.{plugin_path.name}",
            })
        return discovered

    def _register_plugins(self, plugins: List[Dict]):
        for plugin_info in plugins:
            plugin_name = plugin_info['name']
            import_path = plugin_info['import_path']

            try:
                plugin_module = importlib.import_module(import_path)
                register_func: PluginRegisterFunc = getattr(plugin_module, "register_plugin")
                register_func(self._container, self._hook_manager)
            except Exception as e:
                print("\n" + "=" * 80)
                print(f"!!! 致命错误：加载插件 '{plugin_name}' ({import_path}) 失败 !!!")
                print("=" * 80)
                traceback.print_exc()
                print("=" * 80)
                # 插件之间存在服务依赖，一个失败就停止启动
                raise RuntimeError(f"无法加载插件 {plugin_name}") from e
