# pipeline/fusion_worker.py

import time
import logging
import threading
from queue import Queue, Empty, Full
from typing import Callable, List, Optional

from obstacle_alert.frames.frame_types import DepthFrame, SegmentationMask, InvalidInput
from obstacle_alert.fusion.fusion_engine import FusionEngine, FusionResult

logger = logging.getLogger(__name__)

ResultCallback = Callable[[int, float, FusionResult], None]


class FusionWorker:
    """
    Thread pool that fuses frame pairs taken from a bounded queue.

    The producer never blocks: when the queue is full the oldest pending pair
    is discarded to make room. Results are passed to ``on_result`` from the
    worker threads; malformed pairs are logged and counted, never reported
    as results.
    """

    def __init__(self,
                 engine: FusionEngine,
                 on_result: ResultCallback,
                 num_workers: int = 2,
                 max_pending: int = 4):
        """
        Initialize the worker pool.

        Args:
            engine: Fusion engine shared by all workers
            on_result: Called with (frame_id, timestamp, result)
            num_workers: Number of worker threads
            max_pending: Queue capacity in frame pairs
        """
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")
        if max_pending < 1:
            raise ValueError(f"max_pending must be >= 1, got {max_pending}")

        self.engine = engine
        self.on_result = on_result
        self.num_workers = num_workers
        self.frame_queue = Queue(maxsize=max_pending)
        self.threads: List[threading.Thread] = []
        self.is_running = False

        self._lock = threading.Lock()
        self.dropped_frames = 0
        self.failed_frames = 0
        self.completed_frames = 0

    def start(self) -> None:
        """Start the worker threads."""
        if self.is_running:
            return
        self.is_running = True
        for i in range(self.num_workers):
            thread = threading.Thread(target=self._work_loop, name=f"fusion-worker-{i}", daemon=True)
            thread.start()
            self.threads.append(thread)
        logger.info(f"Started {self.num_workers} fusion workers")

    def submit(self,
               frame_id: int,
               depth: DepthFrame,
               mask: SegmentationMask,
               timestamp: Optional[float] = None) -> None:
        """
        Queue a frame pair for fusion without blocking.

        The caller must not modify the buffers after submitting them.
        """
        item = (frame_id, time.time() if timestamp is None else timestamp, depth, mask)
        while True:
            try:
                self.frame_queue.put_nowait(item)
                return
            except Full:
                # Remove oldest frame if queue is full
                try:
                    self.frame_queue.get_nowait()
                    self.frame_queue.task_done()
                    with self._lock:
                        self.dropped_frames += 1
                except Empty:
                    pass

    def _work_loop(self) -> None:
        while self.is_running:
            try:
                frame_id, timestamp, depth, mask = self.frame_queue.get(timeout=0.1)
            except Empty:
                continue

            try:
                result = self.engine.fuse(depth, mask)
            except InvalidInput as e:
                logger.warning(f"Skipping frame {frame_id}: {e}")
                with self._lock:
                    self.failed_frames += 1
            except Exception:
                logger.exception(f"Fusion failed for frame {frame_id}")
                with self._lock:
                    self.failed_frames += 1
            else:
                with self._lock:
                    self.completed_frames += 1
                try:
                    self.on_result(frame_id, timestamp, result)
                except Exception:
                    logger.exception(f"Result callback failed for frame {frame_id}")
            finally:
                self.frame_queue.task_done()

    def join(self) -> None:
        """
        Block until every queued pair has been processed.

        When the workers are stopped, pending pairs are dropped instead.
        """
        if not self.is_running:
            self._drain()
        self.frame_queue.join()

    def _drain(self) -> None:
        while True:
            try:
                self.frame_queue.get_nowait()
            except Empty:
                return
            self.frame_queue.task_done()
            with self._lock:
                self.dropped_frames += 1

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the worker threads; pending pairs are dropped."""
        self.is_running = False
        for thread in self.threads:
            thread.join(timeout=timeout)
        self.threads = []
        self._drain()
        logger.info(f"Fusion workers stopped: {self.completed_frames} completed, "
                    f"{self.dropped_frames} dropped, {self.failed_frames} failed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
