# backend/core/hooks.py
import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from backend.core.contracts import HookManager as HookManagerInterface, Container

logger = logging.getLogger(__name__)

T = TypeVar('T')

HookCallable = Callable[..., Awaitable[Any]]


@dataclass(order=True)
class HookImplementation:
    """一个钩子实现及其元数据。按 priority 从小到大执行。"""
    priority: int
    func: HookCallable = field(compare=False)
    plugin_name: str = field(compare=False, default="<unknown>")


class HookManager(HookManagerInterface):
    """
    负责注册和调度所有钩子实现的中心服务。

    钩子函数只会收到它在签名里声明过的共享上下文（例如 container、hook_manager），
    所以插件可以只写自己关心的参数。
    """
    def __init__(self, container: Optional[Container] = None):
        self._hooks: Dict[str, List[HookImplementation]] = defaultdict(list)
        self._shared_context: Dict[str, Any] = {"hook_manager": self}
        if container is not None:
            self._shared_context["container"] = container
        logger.info("HookManager initialized.")

    def add_shared_context(self, name: str, service: Any) -> None:
        if name in self._shared_context:
            logger.warning(f"Overwriting shared context for hooks: '{name}'")
        self._shared_context[name] = service

    @property
    def hook_names(self) -> List[str]:
        return list(self._hooks.keys())

    def _prepare_kwargs(self, func: HookCallable, call_context: Dict[str, Any], skip_first: bool = False) -> Dict[str, Any]:
        params = list(inspect.signature(func).parameters.values())
        if skip_first and params:
            # filter 钩子的第一个参数是被过滤的数据本身
            params = params[1:]

        accepts_var_kw = any(p.kind == p.VAR_KEYWORD for p in params)
        if accepts_var_kw:
            return dict(call_context)
        return {p.name: call_context[p.name] for p in params if p.name in call_context}

    def add_implementation(
        self,
        hook_name: str,
        implementation: HookCallable,
        priority: int = 10,
        plugin_name: str = "<core>"
    ):
        if not inspect.iscoroutinefunction(implementation):
            raise TypeError(f"Hook implementation for '{hook_name}' must be an async function.")

        self._hooks[hook_name].append(HookImplementation(priority=priority, func=implementation, plugin_name=plugin_name))
        self._hooks[hook_name].sort()
        logger.debug(f"Registered hook '{hook_name}' from plugin '{plugin_name}' with priority {priority}.")

    async def trigger(self, hook_name: str, **kwargs: Any) -> None:
        """
        通知型钩子：并发执行所有实现，忽略返回值。
        单个实现的异常只会被记录，不会影响其他实现。
        """
        implementations = self._hooks.get(hook_name)
        if not implementations:
            return

        call_context = {**self._shared_context, **kwargs}
        results = await asyncio.gather(
            *(impl.func(**self._prepare_kwargs(impl.func, call_context)) for impl in implementations),
            return_exceptions=True,
        )

        for impl, result in zip(implementations, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Error in NOTIFICATION hook '{hook_name}' from plugin '{impl.plugin_name}': {result}",
                    exc_info=result
                )

    async def filter(self, hook_name: str, data: T, **kwargs: Any) -> T:
        """
        过滤型钩子：按优先级依次执行，每个实现接收上一个实现的返回值。
        出错的实现会被跳过，数据保持不变地传给下一个。
        """
        implementations = self._hooks.get(hook_name)
        if not implementations:
            return data

        call_context = {**self._shared_context, **kwargs}
        current_data = data

        for impl in implementations:
            try:
                prepared_kwargs = self._prepare_kwargs(impl.func, call_context, skip_first=True)
                current_data = await impl.func(current_data, **prepared_kwargs)
            except Exception as e:
                logger.error(
                    f"Error in FILTER hook '{hook_name}' from plugin '{impl.plugin_name}'. Skipping. Error: {e}",
                    exc_info=e
                )

        return current_data
