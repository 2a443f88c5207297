"""
Модуль кэширования данных приложения.
Обеспечивает хранение результатов вычислений в памяти для ускорения повторного доступа.
"""

import logging
from collections import OrderedDict
from typing import Any, Optional, TypeVar, Generic
from threading import Lock

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CacheStore(Generic[T]):
    """
    Ограниченное по размеру хранилище кэша (LRU).

    Все обращения выполняются под блокировкой, поэтому один экземпляр
    можно использовать из нескольких потоков.

    Attributes:
        name: Имя хранилища (для логов)
        max_size: Максимальное число записей (None = без ограничения)
        hits: Количество попаданий
        misses: Количество промахов
    """

    def __init__(self, name: str, max_size: Optional[int] = None):
        self.name = name
        self.max_size = max_size
        self.hits = 0
        self.misses = 0
        self._cache: "OrderedDict[Any, T]" = OrderedDict()
        self._lock = Lock()

    def get(self, key: Any) -> Optional[T]:
        """Получение элемента по ключу."""
        with self._lock:
            if key not in self._cache:
                self.misses += 1
                return None
            self._cache.move_to_end(key)
            self.hits += 1
            return self._cache[key]

    def set(self, key: Any, value: T):
        """Сохранение элемента с вытеснением самого старого при переполнении."""
        with self._lock:
            self._cache[key] = value
            self._cache.move_to_end(key)
            if self.max_size is not None and len(self._cache) > self.max_size:
                evicted_key, _ = self._cache.popitem(last=False)
                logger.debug(f"Кэш '{self.name}': вытеснена запись {evicted_key!r}")

    def invalidate(self):
        """Полная очистка кэша."""
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0
            logger.debug(f"Кэш '{self.name}' сброшен")

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._cache
