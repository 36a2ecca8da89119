"""leakmon package for leak-monitor."""

from .state import ChannelState, MonitorState
from .monitor import LeakMonitor

__all__ = ["ChannelState", "MonitorState", "LeakMonitor"]
