# tests/test_example_fusion.py

import argparse

import numpy as np

import example_fusion
from obstacle_alert.utils.config import load_config


def test_synthetic_replay_writes_overlays(tmp_path):
    output_dir = tmp_path / "overlays"
    status = example_fusion.main(["--synthetic", "--interval", "5",
                                  "--output-dir", str(output_dir), "--log-level", "WARNING"])

    assert status == 0
    # 80 generated frames, every 5th fused
    assert len(list(output_dir.glob("frame_*.png"))) == 16


def test_npz_sequence_replay(tmp_path):
    for i in range(4):
        depth = np.full((30, 30), 5.0, dtype=np.float32)
        depth[15, 15] = 1.0
        mask = np.zeros((10, 10), dtype=np.int32)
        mask[5, 5] = 15
        np.savez(tmp_path / f"{i:04d}.npz", depth=depth, mask=mask)

    pipeline = example_fusion.create_alert_pipeline(load_config(), interval=2)
    source = example_fusion.create_source(
        argparse.Namespace(synthetic=False, sequence=str(tmp_path)))

    assert example_fusion.run(pipeline, source) == 2


def test_missing_config_fails(tmp_path):
    status = example_fusion.main(["--synthetic", "--config", str(tmp_path / "missing.yaml")])
    assert status == 1


def test_malformed_config_section_fails(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("fusion: 5\n")
    status = example_fusion.main(["--synthetic", "--config", str(path)])
    assert status == 1


def test_missing_sequence_fails(tmp_path):
    status = example_fusion.main(["--sequence", str(tmp_path / "missing.npz")])
    assert status == 1
