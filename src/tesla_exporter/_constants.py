"""Internal constants shared across the library."""

AUTH_URL = "https://auth.tesla.com/oauth2/v3/token"
API_BASE_URL = "https://owner-api.teslamotors.com"
STREAMING_URL = "wss://streaming.vn.teslamotors.com/streaming/"

CLIENT_ID = "ownerapi"
SCOPE = "openid email offline_access"
USER_AGENT = "tesla-exporter"

#: Value of ``Measurement.source`` and ``Sample.entity_name``.
SOURCE = "tesla-exporter"

#: Location used when a vehicle is outside every configured geofence.
LOCATION_OTHER = "Other"

#: Sample name for vehicles without a display name.
DEFAULT_DISPLAY_NAME = "Unknown"

#: Charge port latch state meaning a cable is plugged in and locked.
CHARGE_PORT_ENGAGED = "Engaged"

# ------------------------------------------------------------------
# Unit conversion
# ------------------------------------------------------------------

METERS_PER_MILE = 1609.344
WATTS_PER_KILOWATT = 1000.0
SECONDS_PER_HOUR = 3600.0

EARTH_RADIUS_METERS = 6371000.0


def miles_to_meters(miles: float) -> float:
    """Convert an odometer reading in miles to meters."""
    return miles * METERS_PER_MILE


def kilowatts_to_watts(kilowatts: float) -> float:
    """Convert a power reading in kW to W."""
    return kilowatts * WATTS_PER_KILOWATT


def kilowatt_hours_to_watt_seconds(kilowatt_hours: float) -> float:
    """Convert an energy amount in kWh to Ws (joules)."""
    return kilowatt_hours * WATTS_PER_KILOWATT * SECONDS_PER_HOUR
