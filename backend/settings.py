import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _as_int(val: str | None, default: int) -> int:
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.STAMP_MEDIA_ROOT: str = os.getenv("STAMP_MEDIA_ROOT", "media")
        # Remote bases; when unset, locators resolve against the media root
        self.TEMPLATE_BASE_URL: str = os.getenv("TEMPLATE_BASE_URL", "")
        self.TEXTURE_BASE_URL: str = os.getenv("TEXTURE_BASE_URL", "")
        self.FONTS_DIR: str = os.getenv("FONTS_DIR", os.path.join(self.STAMP_MEDIA_ROOT, "fonts"))
        self.FETCH_TIMEOUT_SECONDS: float = _as_float(os.getenv("FETCH_TIMEOUT_SECONDS"), 10.0)
        self.MEASURE_TIMEOUT_SECONDS: float = _as_float(os.getenv("MEASURE_TIMEOUT_SECONDS"), 5.0)
        self.DEFAULT_PAGE_SIZE: int = _as_int(os.getenv("DEFAULT_PAGE_SIZE"), 5)
        self.INITIAL_SAMPLE_SIZE: int = _as_int(os.getenv("INITIAL_SAMPLE_SIZE"), 5)
        # Fitted base documents kept per (template, text), least recently used evicted first
        self.BASE_CACHE_SIZE: int = _as_int(os.getenv("BASE_CACHE_SIZE"), 256)
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.STAMP_DATABASE_URL: str = os.getenv("STAMP_DATABASE_URL", "")
        # PNG rasterization needs ImageMagick on the host
        self.PNG_EXPORT_ENABLED: bool = _as_bool(os.getenv("PNG_EXPORT_ENABLED"), True)


settings = Settings()
