import threading

import pytest

from depth_deblur.processing.work_queue import TaskQueue, run_workers


def test_fifo_and_lifo_order():
    fifo = TaskQueue([1, 2, 3])
    lifo = TaskQueue([1, 2, 3], lifo=True)
    assert [fifo.get() for _ in range(3)] == [1, 2, 3]
    assert [lifo.get() for _ in range(3)] == [3, 2, 1]


def test_empty_queue_is_closed():
    queue = TaskQueue()
    assert queue.closed
    assert queue.get() is None


def test_queue_closes_when_all_work_is_done():
    queue = TaskQueue([0])
    item = queue.get()
    queue.put(1)
    queue.task_done()
    assert not queue.closed
    assert queue.get() == 1
    queue.task_done()
    assert queue.closed
    assert queue.pending == 0
    assert queue.get() is None
    assert item == 0


def test_put_on_closed_queue_raises():
    queue = TaskQueue()
    with pytest.raises(RuntimeError):
        queue.put(1)


def test_task_done_too_many_times():
    queue = TaskQueue([0])
    queue.get()
    queue.task_done()
    with pytest.raises(ValueError):
        queue.task_done()


def test_close_wakes_blocked_workers():
    queue = TaskQueue([0])
    queue.get()
    results = []

    def waiter():
        results.append(queue.get())

    thread = threading.Thread(target=waiter)
    thread.start()
    queue.close()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert results == [None]


@pytest.mark.parametrize("n_threads", [1, 2, 4, 8])
def test_binary_tree_traversal_visits_every_node_once(n_threads):
    # узлы полного бинарного дерева глубины 6 в нумерации кучи
    last = 2 ** 7 - 1
    queue = TaskQueue([1])
    visited = []
    lock = threading.Lock()

    def worker():
        while True:
            node = queue.get()
            if node is None:
                return
            with lock:
                visited.append(node)
            if 2 * node <= last:
                queue.put_many((2 * node, 2 * node + 1))
            queue.task_done()

    run_workers(worker, n_threads)
    assert sorted(visited) == list(range(1, last + 1))


def test_worker_error_is_reraised_after_join():
    queue = TaskQueue(range(20))

    def worker():
        while True:
            item = queue.get()
            if item is None:
                return
            if item == 5:
                raise KeyError(item)
            queue.task_done()

    with pytest.raises(KeyError):
        run_workers(worker, 3, on_error=queue.close)
    assert queue.closed


def test_run_workers_requires_a_worker():
    with pytest.raises(ValueError):
        run_workers(lambda: None, 0)
