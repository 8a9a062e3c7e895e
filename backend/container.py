# backend/container.py

import logging
import threading
from typing import Dict, Any, Callable, Set

from backend.core.contracts import Container as ContainerInterface

logger = logging.getLogger(__name__)


class Container(ContainerInterface):
    """线程安全的依赖注入容器，带循环依赖检测。"""
    def __init__(self):
        self._factories: Dict[str, Callable] = {}
        self._singletons: Dict[str, bool] = {}
        self._instances: Dict[str, Any] = {}
        # 工厂内部可能再次 resolve，所以必须是可重入锁
        self._lock = threading.RLock()
        self._local = threading.local()

    def _resolution_stack(self) -> Set[str]:
        if not hasattr(self._local, 'stack'):
            self._local.stack = set()
        return self._local.stack

    def register(self, name: str, factory: Callable, singleton: bool = True) -> None:
        """注册一个服务工厂。重复注册会覆盖旧的工厂并丢弃已缓存的实例。"""
        with self._lock:
            if name in self._factories:
                logger.warning(f"Overwriting service registration for '{name}'")
                self._instances.pop(name, None)
            self._factories[name] = factory
            self._singletons[name] = singleton

    def is_registered(self, name: str) -> bool:
        return name in self._factories

    def _build(self, name: str) -> Any:
        factory = self._factories[name]
        try:
            return factory(self)
        except TypeError:
            return factory()

    def resolve(self, name: str) -> Any:
        """解析一个服务实例；未注册时抛出 ValueError。"""
        stack = self._resolution_stack()
        if name in stack:
            path = " -> ".join(list(stack) + [name])
            raise RuntimeError(f"Circular dependency detected: {path}")

        stack.add(name)
        try:
            if name not in self._factories:
                raise ValueError(f"Service '{name}' not found in container.")

            if not self._singletons.get(name, True):
                return self._build(name)

            if name in self._instances:
                return self._instances[name]

            with self._lock:
                if name not in self._instances:
                    self._instances[name] = self._build(name)
                    logger.debug(f"Resolved singleton service '{name}'.")
                return self._instances[name]
        finally:
            stack.discard(name)
