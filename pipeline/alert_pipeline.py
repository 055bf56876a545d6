# pipeline/alert_pipeline.py

import time
import logging
import numpy as np
from typing import Dict, List, Optional, Union

from obstacle_alert.frames.frame_types import DepthFrame, SegmentationMask, InvalidInput
from obstacle_alert.classes.class_table import ClassTable
from obstacle_alert.fusion.fusion_engine import FusionEngine
from obstacle_alert.utils.visualization import FusionVisualizer
from pipeline.alert_sinks import AlertEvent, AlertSink, format_alert_message

logger = logging.getLogger(__name__)


class AlertPipeline:
    """
    Feeds captured depth/mask pairs to the fusion engine and publishes alerts.

    Only every ``process_interval``-th submitted frame is fused; the others
    are dropped so fusion cost does not follow the capture rate. Each fused
    frame produces exactly one AlertEvent, delivered to every sink after the
    fusion call has returned.
    """

    def __init__(
        self,
        engine: FusionEngine,
        class_table: Optional[ClassTable] = None,
        sinks: Optional[List[AlertSink]] = None,
        config: Dict = None
    ):
        """
        Initialize the alert pipeline.

        Args:
            engine: Fusion engine
            class_table: Labels for mask class ids (default: the engine's table)
            sinks: Consumers of alert events
            config: Configuration parameters:
                - process_interval: Fuse every N-th frame (default: 10)
        """
        self.engine = engine
        self.class_table = class_table
        self.sinks = list(sinks or [])
        self.config = config or {}

        self.process_interval = int(self.config.get('process_interval', 10))
        if self.process_interval < 1:
            raise ValueError(f"process_interval must be >= 1, got {self.process_interval}")

        # Internal state
        self.frame_count = 0
        self.processed_frames = 0
        self.skipped_frames = 0
        self.visualizer = FusionVisualizer(self.config.get('visualization'))

        # Performance metrics
        self.timing = {
            'fusion': [],
            'dispatch': [],
        }

    def add_sink(self, sink: AlertSink) -> None:
        self.sinks.append(sink)

    def should_process(self) -> bool:
        """Whether the frame just counted falls on the sampling interval."""
        return self.frame_count % self.process_interval == 0

    def process_frame(self,
                      depth: Optional[DepthFrame],
                      mask: SegmentationMask,
                      timestamp: float = None) -> Optional[AlertEvent]:
        """
        Submit one captured frame pair.

        Args:
            depth: Depth map, or None if the sensor produced none
            mask: Segmentation mask of the same frame
            timestamp: Frame timestamp (seconds)

        Returns:
            The published AlertEvent, or None if the frame was sampled out
            or skipped because its buffers were malformed
        """
        self.frame_count += 1
        if not self.should_process():
            return None

        frame_id = self.frame_count
        timestamp = time.time() if timestamp is None else timestamp

        if depth is None:
            event = AlertEvent(frame_id, timestamp, None, format_alert_message(None))
            self._dispatch(event)
            return event

        t0 = time.perf_counter()
        try:
            result = self.engine.fuse(depth, mask, self.class_table)
        except InvalidInput as e:
            self.skipped_frames += 1
            logger.warning(f"Skipping frame {frame_id}: {e}")
            return None
        self.timing['fusion'].append(time.perf_counter() - t0)
        self.processed_frames += 1

        event = AlertEvent(frame_id, timestamp, result, format_alert_message(result))
        self._dispatch(event)
        return event

    def _dispatch(self, event: AlertEvent) -> None:
        t0 = time.perf_counter()
        for sink in self.sinks:
            sink.handle(event)
        self.timing['dispatch'].append(time.perf_counter() - t0)

    def visualize(self,
                  depth: DepthFrame,
                  mask: SegmentationMask,
                  event: Optional[AlertEvent] = None) -> np.ndarray:
        """
        Render a debug image of a frame pair and its alert.

        Args:
            depth: Depth map
            mask: Segmentation mask
            event: Alert event for this pair (optional)

        Returns:
            BGR image
        """
        roi = self.engine.region_of_interest(depth.width, depth.height)
        result = event.result if event is not None else None
        message = event.message if event is not None else None
        return self.visualizer.compose(depth, mask, result, roi, message)

    def report_performance(self) -> Dict[str, Union[int, float]]:
        """
        Report performance metrics for the pipeline.

        Returns:
            Dict with frame counts and average/max timing per stage
        """
        performance = {
            'frames': self.frame_count,
            'processed_frames': self.processed_frames,
            'skipped_frames': self.skipped_frames,
        }
        for key, times in self.timing.items():
            if times:
                performance[f"avg_{key}_time"] = sum(times) / len(times)
                performance[f"max_{key}_time"] = max(times)
        return performance

    def reset(self):
        """Reset the pipeline state."""
        self.frame_count = 0
        self.processed_frames = 0
        self.skipped_frames = 0

        # Clear timing statistics
        for key in self.timing:
            self.timing[key] = []

    def close(self):
        """Close every sink."""
        for sink in self.sinks:
            sink.close()
