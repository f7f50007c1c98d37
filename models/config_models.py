"""Configuration data models for the locale engine.

Each dataclass is one INI section; field names are the INI keys. Defaults make ``Config()`` usable without a
configuration file.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "CacheSettings",
    "Config",
    "DetectionSettings",
    "General",
    "LocaleSettings",
    "StorageSettings",
]


@dataclass
class General:
    DEBUG: bool = False
    LOG_FILE: str = ""
    SCRIPT_NAME: str = ""


@dataclass
class LocaleSettings:
    DEFAULT_LOCALE: str = "en"


@dataclass
class DetectionSettings:
    ENABLE_GEOLOCATION: bool = True
    ENABLE_IP_LOOKUP: bool = True
    IP_ENDPOINTS: list[str] = field(
        default_factory=lambda: [
            "https://ipapi.co/json/",
            "https://ipinfo.io/json",
        ]
    )
    NETWORK_TIMEOUT: float = 3.0
    GEOLOCATION_TIMEOUT: float = 5.0
    DETECTION_TIMEOUT: float = 10.0
    USER_OVERRIDE_WEIGHT: float = 1.0
    STORED_WEIGHT: float = 0.95
    GEO_WEIGHT: float = 0.8
    BROWSER_WEIGHT: float = 0.7
    TIMEZONE_WEIGHT: float = 0.6
    DEFAULT_WEIGHT: float = 0.3
    IP_WEIGHT_FACTOR: float = 0.8
    CONSISTENCY_BONUS: float = 0.15
    MIN_CONSISTENCY_BONUS: float = 0.05
    DISAGREEMENT_PENALTY: float = 0.5


@dataclass
class StorageSettings:
    BACKEND: str = "sqlite"
    DB_PATH: str = "locale_storage.db"
    MAX_HISTORY_ENTRIES: int = 100
    MAX_BACKUPS: int = 5
    DETECTION_RETENTION_DAYS: int = 30


@dataclass
class CacheSettings:
    MAX_SIZE: int = 10
    TTL: float = 300.0
    ENABLE_PERSISTENCE: bool = True
    PERSISTED_TTL: float = 300.0
    LOAD_TIMEOUT: float = 5.0
    MESSAGES_DIR: str = "messages"
    MESSAGES_URL: str = ""
    PRELOAD_LOCALES: list[str] = field(default_factory=lambda: ["en", "zh"])


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    LOCALE: LocaleSettings = field(default_factory=LocaleSettings)
    DETECTION: DetectionSettings = field(default_factory=DetectionSettings)
    STORAGE: StorageSettings = field(default_factory=StorageSettings)
    CACHE: CacheSettings = field(default_factory=CacheSettings)
