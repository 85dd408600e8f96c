import os


class Settings:
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-image")  # must support IMAGE output
    GOOGLE_MAPS_API_KEY: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    STREET_VIEW_URL: str = "https://maps.googleapis.com/maps/api/streetview"
    STREET_VIEW_SIZE: str = "600x400"
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org"
    NOMINATIM_USER_AGENT: str = "ArrowView/1.0 (arrowview-backend)"  # Required by Nominatim ToS
    GEOCODING_ENABLED: bool = os.getenv("GEOCODING_ENABLED", "true").lower() in ("1", "true", "yes")
    GEOCODING_TIMEOUT: float = 5.0  # seconds
    DEFAULT_CENTER_LAT: float = 37.7749
    DEFAULT_CENTER_LNG: float = -122.4194
    MIN_ARROW_LENGTH: float = 0.0001  # coordinate-degree units, planar
    ARROW_HEAD_LENGTH: float = 0.0005  # coordinate-degree units
    ARROW_HEAD_ANGLE_DEGREES: float = 30.0
    MAX_IMAGE_SIZE: int = 1024  # captured map snapshots are downscaled to this
    BLANK_CAPTURE_STDDEV: float = 2.0  # pixel stddev below which a capture counts as blank
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
