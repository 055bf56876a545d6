# tests/test_fusion_worker.py

import threading

import numpy as np
import pytest
from unittest.mock import MagicMock

from obstacle_alert.fusion.fusion_engine import FusionEngine
from pipeline.fusion_worker import FusionWorker

from conftest import make_scene


class TestFusionWorker:
    """Test the bounded-queue worker pool."""

    def setup_method(self):
        self.results = {}
        self.lock = threading.Lock()

    def collect(self, frame_id, timestamp, result):
        with self.lock:
            self.results[frame_id] = result

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            FusionWorker(FusionEngine(), self.collect, num_workers=0)
        with pytest.raises(ValueError):
            FusionWorker(FusionEngine(), self.collect, max_pending=0)

    def test_processes_all_pairs(self):
        worker = FusionWorker(FusionEngine(), self.collect, num_workers=3, max_pending=16)
        pairs = {
            i: make_scene(obstacles=[((150, 150), 0.5 + 0.25 * i)], labels=[((50, 50), 15)])
            for i in range(8)
        }

        with worker:
            for frame_id, (depth, mask) in pairs.items():
                worker.submit(frame_id, depth, mask, float(frame_id))
            worker.join()

        assert sorted(self.results) == list(range(8))
        assert worker.completed_frames == 8
        assert worker.dropped_frames == 0
        for frame_id, result in self.results.items():
            assert result.distance_meters == pytest.approx(0.5 + 0.25 * frame_id)
            assert result.danger == (0.5 + 0.25 * frame_id < 2.0)

    def test_drops_oldest_when_full(self):
        worker = FusionWorker(FusionEngine(), self.collect, max_pending=2)
        depth, mask = make_scene()

        for frame_id in range(1, 4):
            worker.submit(frame_id, depth, mask)

        pending = [item[0] for item in list(worker.frame_queue.queue)]
        assert pending == [2, 3]
        assert worker.dropped_frames == 1

        worker.start()
        worker.join()
        worker.stop()
        assert sorted(self.results) == [2, 3]

    def test_invalid_pair_counted_not_reported(self):
        worker = FusionWorker(FusionEngine(), self.collect)
        _, mask = make_scene()

        with worker:
            worker.submit(1, np.ones((3, 3)), mask)
            worker.join()

        assert self.results == {}
        assert worker.failed_frames == 1

    def test_callback_failure_keeps_worker_alive(self):
        callback = MagicMock(side_effect=[RuntimeError("sink down"), None])
        worker = FusionWorker(FusionEngine(), callback, num_workers=1)
        depth, mask = make_scene()

        with worker:
            worker.submit(1, depth, mask)
            worker.submit(2, depth, mask)
            worker.join()

        assert callback.call_count == 2
        assert worker.completed_frames == 2

    def test_join_after_stop_returns(self):
        worker = FusionWorker(FusionEngine(), self.collect, max_pending=8)
        depth, mask = make_scene()
        for frame_id in range(4):
            worker.submit(frame_id, depth, mask)
        worker.start()
        worker.stop()
        worker.submit(4, depth, mask)

        joiner = threading.Thread(target=worker.join, daemon=True)
        joiner.start()
        joiner.join(timeout=3.0)

        assert not joiner.is_alive()
        assert worker.frame_queue.empty()
        assert worker.completed_frames + worker.dropped_frames == 5

    def test_engine_error_keeps_worker_alive(self):
        engine = MagicMock()
        engine.fuse.side_effect = [RuntimeError("engine bug"), FusionEngine().fuse(*make_scene())]
        worker = FusionWorker(engine, self.collect, num_workers=1)
        depth, mask = make_scene()

        with worker:
            worker.submit(1, depth, mask)
            worker.submit(2, depth, mask)
            worker.join()

        assert sorted(self.results) == [2]
        assert worker.failed_frames == 1
        assert worker.completed_frames == 1

    def test_stop_is_idempotent(self):
        worker = FusionWorker(FusionEngine(), self.collect)
        worker.start()
        worker.start()
        assert len(worker.threads) == worker.num_workers
        worker.stop()
        worker.stop()
        assert not worker.is_running
