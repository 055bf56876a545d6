#!/usr/bin/env python3
# example_fusion.py

import os
import time
import argparse
import logging

from obstacle_alert.fusion.fusion_engine import FusionEngine
from obstacle_alert.utils.config import load_config, setup_logging, fusion_config_from, class_table_from
from pipeline.alert_pipeline import AlertPipeline
from pipeline.alert_sinks import LoggingAlertSink
from pipeline.data_sources import NpzSequenceSource, DepthImageSequenceSource, SyntheticSource

logger = logging.getLogger(__name__)


def create_alert_pipeline(config, interval=None):
    """Create alert pipeline from configuration."""

    fusion_config = fusion_config_from(config)
    class_table = class_table_from(config)
    engine = FusionEngine(fusion_config, class_table)

    pipeline_config = dict(config.get("pipeline", {}))
    if interval is not None:
        pipeline_config["process_interval"] = interval

    sink = LoggingAlertSink(cooldown=float(pipeline_config.get("alert_cooldown", 2.0)))

    return AlertPipeline(engine, sinks=[sink], config=pipeline_config)


def create_source(args):
    """Pick a frame pair source from command line arguments."""
    if args.synthetic:
        return SyntheticSource({
            "obstacle_distance": 4.0,
            "obstacle_radius": 6,
            "approach_speed": 0.05,
            "num_frames": 80,
        })
    if os.path.isdir(args.sequence) and not any(
            f.lower().endswith(".npz") for f in os.listdir(args.sequence)):
        return DepthImageSequenceSource(args.sequence)
    return NpzSequenceSource(args.sequence)


def run(pipeline, source, output_dir=None):
    """Replay a source through the pipeline."""

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    start_time = time.time()
    frames = 0
    alerts = 0

    with source:
        for depth, mask, timestamp in source:
            event = pipeline.process_frame(depth, mask, timestamp)
            frames += 1
            if event is None:
                continue

            if event.danger:
                alerts += 1

            if output_dir:
                vis = pipeline.visualize(depth, mask, event)
                path = os.path.join(output_dir, f"frame_{event.frame_id:06d}.png")
                pipeline.visualizer.save(vis, path)

    pipeline.close()

    elapsed = time.time() - start_time
    logger.info(f"Replayed {frames} frames in {elapsed:.2f} seconds, {alerts} danger alerts")
    logger.info(f"Performance: {pipeline.report_performance()}")
    return alerts


def main(argv=None):
    """Main function."""

    parser = argparse.ArgumentParser(description="Depth and segmentation obstacle alert replay")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to YAML configuration file")
    source_group = parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--sequence", type=str,
                              help="Recorded .npz file or directory of .npz / PNG frames")
    source_group.add_argument("--synthetic", action="store_true",
                              help="Replay a generated approaching-obstacle scene")
    parser.add_argument("--interval", type=int, default=None,
                        help="Fuse every N-th frame (overrides config)")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Directory for debug overlays")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Logging level (overrides config)")

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        setup_logging("INFO")
        logger.error(f"Failed to load configuration: {e}")
        return 1

    setup_logging(args.log_level or config["logging"].get("level", "INFO"))

    try:
        pipeline = create_alert_pipeline(config, args.interval)
        source = create_source(args)
        run(pipeline, source, args.output_dir)
    except (OSError, RuntimeError, ValueError) as e:
        logger.error(f"Replay failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
