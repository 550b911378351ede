"""
Общая очередь задач и пул исполнителей одной фазы.

Исполнители обмениваются только через очередь идентификаторов регионов.
Все операции с очередью сериализованы одним условием (threading.Condition),
а дорогие вычисления над узлами выполняются вне блокировки.

Завершение фазы определяется счетчиком незавершенной работы: каждый put
увеличивает его, каждый task_done уменьшает; когда счетчик доходит до
нуля, очередь закрывается и все ожидающие исполнители просыпаются.
"""

import logging
import threading
from collections import deque
from typing import Any, Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)


class TaskQueue:
    """
    Очередь идентификаторов с блокирующим get и сигналом завершения.

    Параметры
    ---------
    items : Iterable
        Начальные элементы.
    lifo : bool
        False - FIFO (обход по уровням), True - LIFO (порядок не важен).
    """

    def __init__(self, items: Iterable[Any] = (), lifo: bool = False) -> None:
        self._items = deque(items)
        self._lifo = lifo
        self._cond = threading.Condition()
        self._pending = len(self._items)
        self._closed = self._pending == 0

    @property
    def pending(self) -> int:
        """Число элементов, выданных или ожидающих, но еще не завершенных."""
        with self._cond:
            return self._pending

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def put(self, item: Any) -> None:
        with self._cond:
            if self._closed:
                raise RuntimeError("put() on a closed task queue")
            self._items.append(item)
            self._pending += 1
            self._cond.notify()

    def put_many(self, items: Iterable[Any]) -> None:
        with self._cond:
            if self._closed:
                raise RuntimeError("put() on a closed task queue")
            for item in items:
                self._items.append(item)
                self._pending += 1
            self._cond.notify_all()

    def get(self) -> Optional[Any]:
        """
        Извлечение элемента; блокирует, пока элемент не появится.

        Возвращает None, если очередь закрыта и пуста.
        """
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            if not self._items:
                return None
            return self._items.pop() if self._lifo else self._items.popleft()

    def task_done(self) -> None:
        with self._cond:
            if self._pending <= 0:
                raise ValueError("task_done() called too many times")
            self._pending -= 1
            if self._pending == 0:
                self._closed = True
                self._cond.notify_all()

    def close(self) -> None:
        """Принудительное закрытие: оставшиеся элементы отбрасываются."""
        with self._cond:
            self._closed = True
            self._items.clear()
            self._cond.notify_all()


def run_workers(target: Callable[[], None],
                n_threads: int,
                name: str = 'worker',
                on_error: Optional[Callable[[], None]] = None) -> None:
    """
    Запуск фазы: n_threads - 1 потоков плюс вызывающий поток.

    Все потоки присоединяются до выхода. Первое исключение любого
    исполнителя пробрасывается вызывающему после join; on_error
    вызывается сразу при ошибке, чтобы остальные исполнители остановились.

    Параметры
    ---------
    target : Callable
        Цикл исполнителя.
    n_threads : int
        Общее число исполнителей (>= 1).
    name : str
        Префикс имен потоков.
    on_error : Optional[Callable]
        Действие при ошибке (обычно закрытие очереди).
    """
    if n_threads < 1:
        raise ValueError(f"n_threads должен быть >= 1: {n_threads}")

    errors: List[BaseException] = []
    errors_lock = threading.Lock()

    def guarded() -> None:
        try:
            target()
        except Exception as e:
            logger.error("%s failed: %s", threading.current_thread().name, e)
            with errors_lock:
                errors.append(e)
            if on_error is not None:
                on_error()

    threads = [threading.Thread(target=guarded, name=f"{name}-{i + 1}", daemon=True)
               for i in range(n_threads - 1)]
    for thread in threads:
        thread.start()

    guarded()

    for thread in threads:
        thread.join()

    if errors:
        raise errors[0]
