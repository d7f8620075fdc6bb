"""
Core constants for treadmill discovery and control.
"""

# Vendor service advertised by the treadmill, used for device discovery
TREADMILL_SERVICE_UUID = "0000fff0-0000-1000-8000-00805f9b34fb"

# Characteristics inside the vendor service (handles 18 and 15 on BlueZ)
TREADMILL_COMMAND_CHAR_UUID = "0000fff2-0000-1000-8000-00805f9b34fb"
TREADMILL_NOTIFY_CHAR_UUID = "0000fff1-0000-1000-8000-00805f9b34fb"

# Discovery
DEFAULT_SCAN_TIMEOUT = 10.0
SCAN_SECONDS_MAX = 255

# Command sequencing
POWER_ON_DELAY = 8.0
CONNECT_TIMEOUT = 10.0

# Speed argument range (accepted, not yet encoded into the frame)
SPEED_MIN = 0
SPEED_MAX = 255
