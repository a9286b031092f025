"""Monitoring, alerting and metrics subsystem."""

from lending_monitor.monitor.channels import AlertSink, WebhookSink
from lending_monitor.monitor.dispatcher import AlertDispatcher, RetryPolicy
from lending_monitor.monitor.factory import create_dispatcher, create_monitor_stack
from lending_monitor.monitor.formatters import (
    health_factor_alert,
    oracle_staleness_alert,
    utilization_alert,
)
from lending_monitor.monitor.metrics import MetricsRegistry
from lending_monitor.monitor.metrics_server import create_metrics_app, start_metrics_server
from lending_monitor.monitor.orchestrator import CycleReport, MonitorState, PositionMonitor
from lending_monitor.monitor.types import Alert, AlertLevel

__all__ = [
    "Alert",
    "AlertDispatcher",
    "AlertLevel",
    "AlertSink",
    "CycleReport",
    "MetricsRegistry",
    "MonitorState",
    "PositionMonitor",
    "RetryPolicy",
    "WebhookSink",
    "create_dispatcher",
    "create_metrics_app",
    "create_monitor_stack",
    "health_factor_alert",
    "oracle_staleness_alert",
    "start_metrics_server",
    "utilization_alert",
]
