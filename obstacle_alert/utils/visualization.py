# obstacle_alert/utils/visualization.py

import numpy as np
import cv2
from typing import Dict, Optional, Tuple
import colorsys
import logging

from obstacle_alert.frames.frame_types import DepthFrame, SegmentationMask
from obstacle_alert.fusion.fusion_engine import FusionResult

logger = logging.getLogger(__name__)


class FusionVisualizer:
    """
    Debug overlays for fusion results on recorded frames.

    Renders the depth map and the segmentation mask as BGR images with the
    region of interest, the nearest obstacle and the alert text drawn on top.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the visualizer.

        Args:
            config: Configuration dictionary with visualization parameters
        """
        self.config = {
            'max_depth': 5.0,  # Meters mapped to the far end of the colormap
            'scale': 2,  # Upscale factor for small sensor maps
            'roi_color': (255, 255, 255),  # BGR white
            'danger_color': (0, 0, 255),  # BGR red
            'clear_color': (0, 255, 0),  # BGR green
            'text_scale': 0.5,
            'text_thickness': 1,
            **(config or {})
        }
        self._palette = self._build_palette(256)

    @staticmethod
    def _build_palette(size: int) -> np.ndarray:
        palette = np.zeros((size, 3), dtype=np.uint8)
        for i in range(1, size):
            # Spread hues with the golden ratio so neighbouring ids differ
            hue = (i * 0.618033988749895) % 1.0
            r, g, b = colorsys.hsv_to_rgb(hue, 0.8, 0.95)
            palette[i] = (int(b * 255), int(g * 255), int(r * 255))
        return palette

    def _upscale(self, image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
        return cv2.resize(image, size, interpolation=cv2.INTER_NEAREST)

    def _marker_color(self, result: Optional[FusionResult]) -> Tuple[int, int, int]:
        if result is not None and result.danger:
            return self.config['danger_color']
        return self.config['clear_color']

    def render_depth(self,
                     depth: DepthFrame,
                     result: Optional[FusionResult] = None,
                     roi: Optional[Tuple[int, int, int, int]] = None) -> np.ndarray:
        """
        Render a depth map with the ROI and nearest obstacle marked.

        Args:
            depth: Depth map
            result: Fusion result for this frame (optional)
            roi: (x0, y0, x1, y1) in depth coordinates (optional)

        Returns:
            BGR image
        """
        scale = self.config['scale']
        depth_map = depth.as_array()

        valid = np.isfinite(depth_map) & (depth_map > 0)
        normalized = np.zeros(depth_map.shape, dtype=np.uint8)
        clipped = np.clip(depth_map[valid] / self.config['max_depth'], 0.0, 1.0)
        # Near is bright
        normalized[valid] = ((1.0 - clipped) * 255).astype(np.uint8)

        vis = cv2.applyColorMap(normalized, cv2.COLORMAP_TURBO)
        vis[~valid] = 0
        vis = self._upscale(vis, (depth.width * scale, depth.height * scale))

        if roi is not None:
            x0, y0, x1, y1 = roi
            cv2.rectangle(vis, (x0 * scale, y0 * scale), (x1 * scale - 1, y1 * scale - 1),
                          self.config['roi_color'], 1)

        if result is not None and result.depth_point is not None:
            x, y = result.depth_point
            center = (x * scale + scale // 2, y * scale + scale // 2)
            cv2.circle(vis, center, max(4, 3 * scale), self._marker_color(result), 2)

        return vis

    def render_mask(self,
                    mask: SegmentationMask,
                    result: Optional[FusionResult] = None) -> np.ndarray:
        """
        Render a segmentation mask with the classified cell marked.

        Args:
            mask: Segmentation mask
            result: Fusion result for this frame (optional)

        Returns:
            BGR image
        """
        scale = self.config['scale']
        ids = np.clip(mask.as_array(), 0, len(self._palette) - 1)
        vis = self._palette[ids]
        vis = self._upscale(vis, (mask.width * scale, mask.height * scale))

        if result is not None and result.mask_point is not None:
            x, y = result.mask_point
            center = (x * scale + scale // 2, y * scale + scale // 2)
            cv2.drawMarker(vis, center, self._marker_color(result),
                           markerType=cv2.MARKER_CROSS, markerSize=max(8, 4 * scale), thickness=2)

        return vis

    def compose(self,
                depth: DepthFrame,
                mask: SegmentationMask,
                result: Optional[FusionResult] = None,
                roi: Optional[Tuple[int, int, int, int]] = None,
                message: Optional[str] = None) -> np.ndarray:
        """
        Place the depth and mask renderings side by side with a caption.

        Returns:
            BGR image
        """
        left = self.render_depth(depth, result, roi)
        right = self.render_mask(mask, result)

        height = max(left.shape[0], right.shape[0])
        left = cv2.copyMakeBorder(left, 0, height - left.shape[0], 0, 0, cv2.BORDER_CONSTANT)
        right = cv2.copyMakeBorder(right, 0, height - right.shape[0], 0, 0, cv2.BORDER_CONSTANT)
        vis = cv2.hconcat([left, right])

        if message:
            caption = np.zeros((28, vis.shape[1], 3), dtype=np.uint8)
            cv2.putText(caption, message, (6, 19), cv2.FONT_HERSHEY_SIMPLEX,
                        self.config['text_scale'], self._marker_color(result),
                        self.config['text_thickness'])
            vis = cv2.vconcat([vis, caption])

        return vis

    def save(self, image: np.ndarray, path: str) -> bool:
        """Write an image to disk, logging failures."""
        success = cv2.imwrite(path, image)
        if not success:
            logger.warning(f"Failed to write visualization to {path}")
        return success
