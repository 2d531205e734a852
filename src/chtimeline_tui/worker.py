"""
worker.py - Build flame-graph trees off the UI thread.

The worker runs a loader (any callable returning a finalized FrameTree) on a
daemon thread and hands the finished tree to the UI through a queue as one
ReplaceTree message. The UI drains the queue between input polls, so a tree
becomes visible only once it is complete. Each load gets a generation
number; results older than the newest request are dropped.
"""
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Union

from loguru import logger

from .frames import FrameTree

Loader = Callable[[], FrameTree]


@dataclass
class ReplaceTree:
    tree: FrameTree
    generation: int


@dataclass
class IngestFailed:
    error: Exception
    generation: int


Message = Union[ReplaceTree, IngestFailed]


class IngestWorker:
    """Runs loaders in the background and posts their results."""

    def __init__(self, loader: Loader, on_ready: Optional[Callable[[], None]] = None):
        self.loader = loader
        self.on_ready = on_ready   # host redraw hook, called from the worker thread
        self.messages: "queue.Queue[Message]" = queue.Queue()
        self._generation = 0
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def start(self, loader: Optional[Loader] = None) -> int:
        """Start a new load (with `loader` if given); a load still running is superseded."""
        with self._lock:
            self._generation += 1
            gen = self._generation
        self._thread = threading.Thread(target=self._run, args=(gen, loader or self.loader),
                                        name=f"ingest-{gen}", daemon=True)
        self._thread.start()
        logger.debug(f"Ingestion {gen} started")
        return gen

    def _run(self, gen: int, loader: Loader):
        try:
            tree = loader()
        except Exception as e:
            logger.exception(f"Ingestion {gen} failed")
            self.messages.put(IngestFailed(e, gen))
        else:
            logger.info(f"Ingestion {gen} done: {tree.total_count} samples")
            self.messages.put(ReplaceTree(tree, gen))
        if self.on_ready is not None:
            self.on_ready()

    def poll(self) -> Optional[Message]:
        """
        Newest current-generation message, or None.

        Called on the UI thread. Messages from superseded loads are discarded.
        """
        latest = None
        while True:
            try:
                msg = self.messages.get_nowait()
            except queue.Empty:
                break
            if msg.generation == self._generation:
                latest = msg
            else:
                logger.debug(f"Dropping stale ingestion {msg.generation}")
        return latest

    def wait(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)
