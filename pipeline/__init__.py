# pipeline/__init__.py
"""
Pipeline integration modules for obstacle alerting.
"""

from pipeline.alert_pipeline import AlertPipeline
from pipeline.alert_sinks import AlertEvent, AlertSink, LoggingAlertSink, CallbackAlertSink, format_alert_message
from pipeline.fusion_worker import FusionWorker
from pipeline.data_sources import FramePairSource, NpzSequenceSource, DepthImageSequenceSource, SyntheticSource

__all__ = [
    'AlertPipeline', 'AlertEvent', 'AlertSink', 'LoggingAlertSink', 'CallbackAlertSink',
    'format_alert_message', 'FusionWorker',
    'FramePairSource', 'NpzSequenceSource', 'DepthImageSequenceSource', 'SyntheticSource',
]
