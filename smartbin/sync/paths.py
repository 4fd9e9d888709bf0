# smartbin/sync/paths.py
"""Remote store path layout."""

FILL_LEVEL = "sensors/fill_level"
AIR_QUALITY = "sensors/air_quality"
TEMPERATURE = "sensors/temperature"
HUMIDITY = "sensors/humidity"
LID_STATUS = "sensors/lid_status"  # Physical lid sensor, authoritative
LID_OPEN = "actuators/lid_open"  # Manual lid command, read only until the sensor reports
FAN_STATUS = "actuators/fan_status"
EVENTS = "events"
ALERTS = "alerts"
THRESHOLDS = "config/thresholds"

SENSORS = "sensors"
ACTUATORS = "actuators"
