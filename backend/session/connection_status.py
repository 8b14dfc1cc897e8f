"""
Connection status tracking for the serial device.

Device link lifecycle is tracked separately from the session state machine:
connection_status: DOWN | CONNECTING | UP | ERROR

This is pure data owned by MonitoringGateway, not by session state.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Serial link status.

    Separate from and independent of the session State enum.
    IDLE can occur with any ConnectionStatus.
    """
    DOWN = "DOWN"              # Port not open
    CONNECTING = "CONNECTING"  # open() in progress
    UP = "UP"                  # Port open, read loop running
    ERROR = "ERROR"            # Open failed or the device went away
