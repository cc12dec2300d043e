from .errors import BwmonError, ConfigurationError, InvalidPatternError, TransportError
from .monitor import BandwidthMonitor, MonitorState
from .rates import RateCalculator, TrafficReading
from .selector import InterfaceHandle, select_interfaces
from .units import scale

__all__ = [
    "BandwidthMonitor",
    "MonitorState",
    "RateCalculator",
    "TrafficReading",
    "InterfaceHandle",
    "select_interfaces",
    "scale",
    "BwmonError",
    "ConfigurationError",
    "InvalidPatternError",
    "TransportError",
]
