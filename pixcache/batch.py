"""Windowed concurrent batch fetching.

A batch is split into windows of ``window_size`` items. Items inside a
window are fetched in parallel on the shared worker pool; windows run one
after another. Each batch gets its own thread that receives completions
through a queue and calls the user callbacks, so callbacks for one batch
never run concurrently with each other.
"""
import concurrent.futures
import itertools
import logging
import queue
import threading

logger = logging.getLogger("pixcache")

WINDOW_SIZE = 12
MAX_WORKERS = 32


def split_windows(items, size):
    """Split ``items`` into consecutive lists of at most ``size``. No empty tail."""
    if size < 1:
        raise ValueError("window size must be at least 1")
    items = list(items)
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchOrchestrator:
    """Runs batches of :class:`FetchRequest` on a worker pool it owns.

    The pool outlives :meth:`shutdown` until every batch already started
    has reported all of its items and called ``on_done``.
    """

    def __init__(self, fetcher, window_size=WINDOW_SIZE, max_workers=None):
        if window_size < 1:
            raise ValueError("window size must be at least 1")
        self.fetcher = fetcher
        self.window_size = window_size
        self.max_workers = min(max_workers or window_size, MAX_WORKERS)
        self._pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="pixcache-worker")
        self._batch_ids = itertools.count(1)
        self._batches = set()
        self._lock = threading.Lock()
        self._closed = False
        self._on_stopped = []

    def submit(self, fn, *args, **kwargs):
        """Run ``fn`` on the worker pool."""
        with self._lock:
            if self._closed:
                raise RuntimeError("cannot submit work after shutdown")
        return self._pool.submit(fn, *args, **kwargs)

    def fetch_all(self, requests, on_item, on_done, on_window=None):
        """Fetch every request, window by window, without blocking the caller.

        ``on_item(data, index)`` fires once per request with its position in
        ``requests``; ``data`` is ``None`` when nothing could be fetched.
        ``on_done()`` fires once after the last item. Returns a Future that
        resolves to a summary dict after ``on_done`` has returned.
        """
        windows = split_windows(requests, self.window_size)
        batch_id = next(self._batch_ids)
        done = concurrent.futures.Future()

        with self._lock:
            if self._closed:
                raise RuntimeError("cannot start a batch after shutdown")
            self._batches.add(done)
        done.add_done_callback(self._forget)

        thread = threading.Thread(
            target=self._run, name=f"pixcache-batch-{batch_id}", daemon=True,
            args=(batch_id, windows, on_item, on_done, on_window, done))
        thread.start()
        return done

    def _forget(self, future):
        with self._lock:
            self._batches.discard(future)
            idle = self._closed and not self._batches
        if idle:
            self._stop(wait=False)

    def _stop(self, wait):
        with self._lock:
            hooks, self._on_stopped = self._on_stopped, []
        self._pool.shutdown(wait=wait)
        for hook in hooks:
            hook()

    def _run(self, batch_id, windows, on_item, on_done, on_window, done):
        summary = {"items": 0, "fetched": 0, "empty": 0, "windows": 0}
        try:
            completions = queue.Queue()
            for number, window in enumerate(windows):
                base = number * self.window_size
                summary["windows"] += 1
                logger.debug("batch %d: window %d/%d (%d items)",
                             batch_id, number + 1, len(windows), len(window))
                self._notify(on_window, number, len(window))
                self._dispatch(window, base, completions)

                outstanding = len(window)
                while outstanding:
                    index, data = completions.get()
                    outstanding -= 1
                    summary["items"] += 1
                    summary["fetched" if data is not None else "empty"] += 1
                    self._notify(on_item, data, index)

            logger.debug("batch %d: done, %d fetched, %d empty",
                         batch_id, summary["fetched"], summary["empty"])
            self._notify(on_done)
        except Exception as e:
            logger.exception("batch %d aborted", batch_id)
            done.set_exception(e)
            return
        done.set_result(summary)

    def _dispatch(self, window, base, completions):
        for offset, request in enumerate(window):
            index = base + offset
            if not request.identifier:
                completions.put((index, None))
                continue
            future = self._pool.submit(self.fetcher.fetch, request)
            future.add_done_callback(
                lambda f, i=index: completions.put((i, self._result_of(f, i))))

    @staticmethod
    def _result_of(future, index):
        try:
            return future.result()
        except Exception:
            logger.exception("fetch for item %d failed", index)
            return None

    @staticmethod
    def _notify(callback, *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("batch callback %r raised", callback)

    def shutdown(self, wait=True, on_stopped=None):
        """Stop accepting new work.

        Batches already running keep the pool until they finish. With
        ``wait`` this blocks until they have; otherwise the pool is shut
        down by whichever batch finishes last. ``on_stopped`` is called once
        the pool has been shut down.
        """
        with self._lock:
            self._closed = True
            running = list(self._batches)
            if on_stopped is not None:
                self._on_stopped.append(on_stopped)
        if wait:
            concurrent.futures.wait(running)
            self._stop(wait=True)
        elif not running:
            self._stop(wait=False)
