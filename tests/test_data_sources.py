# tests/test_data_sources.py

import cv2
import numpy as np
import pytest

from obstacle_alert.fusion.fusion_engine import FusionEngine
from pipeline.data_sources import NpzSequenceSource, DepthImageSequenceSource, SyntheticSource


def write_npz(path, depth, mask, timestamp=None):
    if timestamp is None:
        np.savez(path, depth=depth, mask=mask)
    else:
        np.savez(path, depth=depth, mask=mask, timestamp=timestamp)


class TestNpzSequenceSource:
    """Test loading recorded .npz sequences."""

    def test_directory_sorted(self, tmp_path):
        for i in (2, 0, 1):
            depth = np.full((6, 9), float(i + 1), dtype=np.float32)
            write_npz(tmp_path / f"frame_{i:03d}.npz", depth, np.zeros((3, 3), dtype=np.uint8), 10.0 + i)
        (tmp_path / "notes.txt").write_text("ignored")

        with NpzSequenceSource(str(tmp_path)) as source:
            pairs = list(source)

        assert len(pairs) == 3
        assert [timestamp for _, _, timestamp in pairs] == [10.0, 11.0, 12.0]
        depth, mask, _ = pairs[0]
        assert (depth.width, depth.height) == (9, 6)
        assert (mask.width, mask.height) == (3, 3)

    def test_single_file_without_timestamp(self, tmp_path):
        path = tmp_path / "frame.npz"
        write_npz(path, np.ones((4, 4), dtype=np.float32), np.zeros((2, 2), dtype=np.int32))

        source = NpzSequenceSource(str(path))
        success, depth, mask, timestamp = source.get_pair()

        assert success
        assert timestamp == 0.0
        assert source.get_pair()[0] is False

    def test_skips_broken_files(self, tmp_path):
        np.savez(tmp_path / "a.npz", depth=np.ones((4, 4), dtype=np.float32))
        (tmp_path / "b.npz").write_bytes(b"not a zip file")
        write_npz(tmp_path / "c.npz", np.ones((4, 4), dtype=np.float32), np.zeros((4, 4), dtype=np.int32))

        pairs = list(NpzSequenceSource(str(tmp_path)))
        assert len(pairs) == 1

    def test_skips_empty_file(self, tmp_path):
        write_npz(tmp_path / "a.npz", np.ones((4, 4), dtype=np.float32), np.zeros((4, 4), dtype=np.int32))
        (tmp_path / "b.npz").write_bytes(b"")
        write_npz(tmp_path / "c.npz", np.ones((4, 4), dtype=np.float32), np.zeros((4, 4), dtype=np.int32))

        pairs = list(NpzSequenceSource(str(tmp_path)))
        assert len(pairs) == 2

    def test_skips_truncated_file(self, tmp_path):
        write_npz(tmp_path / "a.npz", np.ones((4, 4), dtype=np.float32), np.zeros((4, 4), dtype=np.int32))
        content = (tmp_path / "a.npz").read_bytes()
        (tmp_path / "b.npz").write_bytes(content[:len(content) // 2])

        pairs = list(NpzSequenceSource(str(tmp_path)))
        assert len(pairs) == 1

    def test_skips_non_scalar_timestamp(self, tmp_path):
        write_npz(tmp_path / "a.npz", np.ones((4, 4), dtype=np.float32), np.zeros((4, 4), dtype=np.int32),
                  np.array([1.0, 2.0]))
        write_npz(tmp_path / "b.npz", np.ones((4, 4), dtype=np.float32), np.zeros((4, 4), dtype=np.int32), 3.0)

        pairs = list(NpzSequenceSource(str(tmp_path)))
        assert [timestamp for _, _, timestamp in pairs] == [3.0]

    def test_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            NpzSequenceSource(str(tmp_path / "missing.npz")).initialize()

    def test_reset(self, tmp_path):
        write_npz(tmp_path / "a.npz", np.ones((4, 4), dtype=np.float32), np.zeros((4, 4), dtype=np.int32))
        source = NpzSequenceSource(str(tmp_path))
        assert len(list(source)) == 1
        source.reset()
        assert len(list(source)) == 1


class TestDepthImageSequenceSource:
    """Test loading PNG depth/mask pairs."""

    def test_loads_pairs_in_meters(self, tmp_path):
        depth_mm = np.full((6, 9), 1500, dtype=np.uint16)
        mask = np.full((3, 3), 15, dtype=np.uint8)
        cv2.imwrite(str(tmp_path / "0001_depth.png"), depth_mm)
        cv2.imwrite(str(tmp_path / "0001_mask.png"), mask)
        cv2.imwrite(str(tmp_path / "0002_depth.png"), depth_mm)  # no mask, ignored

        with DepthImageSequenceSource(str(tmp_path)) as source:
            pairs = list(source)

        assert len(pairs) == 1
        depth, mask_frame, _ = pairs[0]
        assert depth.as_array()[0, 0] == pytest.approx(1.5)
        assert mask_frame.class_at(1, 1) == 15

    def test_custom_depth_scale(self, tmp_path):
        cv2.imwrite(str(tmp_path / "a_depth.png"), np.full((3, 3), 25, dtype=np.uint16))
        cv2.imwrite(str(tmp_path / "a_mask.png"), np.zeros((3, 3), dtype=np.uint8))

        source = DepthImageSequenceSource(str(tmp_path), {'depth_scale': 0.1})
        _, depth, _, _ = source.get_pair()
        assert depth.as_array()[1, 1] == pytest.approx(2.5)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DepthImageSequenceSource(str(tmp_path / "nope")).initialize()


class TestSyntheticSource:
    """Test the generated scene."""

    def test_default_scene_triggers_person_alert(self):
        source = SyntheticSource()
        success, depth, mask, _ = source.get_pair()

        assert success
        result = FusionEngine().fuse(depth, mask)
        assert result.danger
        assert result.class_id == 15
        assert result.distance_meters == pytest.approx(1.2)
        assert source.get_pair()[0] is False

    def test_patch_covers_mask_cells(self):
        source = SyntheticSource({'obstacle_radius': 6})
        depth, mask = source.make_pair(1.0)
        assert mask.class_at(48, 48) == 15
        assert mask.class_at(52, 52) == 15
        assert mask.class_at(10, 10) == 0
        assert depth.as_array()[144, 156] == pytest.approx(1.0)

    def test_approaching_obstacle(self):
        source = SyntheticSource({'obstacle_distance': 3.0, 'approach_speed': 0.75, 'num_frames': 4})
        engine = FusionEngine()
        dangers = [engine.fuse(depth, mask).danger for depth, mask, _ in source]
        assert dangers == [False, False, True, True]
