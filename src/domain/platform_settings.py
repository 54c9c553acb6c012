"""
Platform settings service - Runtime business configuration.

Administrators tune discount and fee percentages and upload limits
at runtime. Values are stored as text in the settings repository,
bootstrapped once from DEFAULT_SETTINGS, and parsed by readers.

Read rules:
- A missing or unparsable value falls back to the hard-coded default
- A key with no default that cannot be read raises ConfigurationError

Reads go through an in-memory cache that is dropped on every write
made through this service.
"""

import logging
import threading
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .exceptions import ConfigurationError, SettingNotFound, ValidationError
from .models import PlatformSetting
from .ports import SettingsRepository

logger = logging.getLogger(__name__)

PLATFORM_FEE_TYPE = "platform_fee_type"
PLATFORM_FEE_VALUE = "platform_fee_value"
STUDENT_DISCOUNT_PERCENT = "student_discount_percent"
MAX_FILE_SIZE_MB = "max_file_size_mb"
ALLOWED_FILE_FORMATS = "allowed_file_formats"
STUDENT_DOCUMENT_MAX_MB = "student_document_max_mb"
STUDENT_DOCUMENT_TYPES = "student_document_types"

FEE_TYPES = ("percentage", "fixed")

DEFAULT_SETTINGS: tuple[PlatformSetting, ...] = (
    PlatformSetting(
        key=PLATFORM_FEE_TYPE,
        value="percentage",
        setting_type="string",
        category="ebook",
        description="Platform fee calculation method (percentage or fixed)",
    ),
    PlatformSetting(
        key=PLATFORM_FEE_VALUE,
        value="10",
        setting_type="number",
        category="ebook",
        description="Platform fee value (percent of the discounted price, or fixed amount)",
    ),
    PlatformSetting(
        key=STUDENT_DISCOUNT_PERCENT,
        value="15",
        setting_type="number",
        category="student",
        description="Student discount percentage",
    ),
    PlatformSetting(
        key=MAX_FILE_SIZE_MB,
        value="50",
        setting_type="number",
        category="ebook",
        description="Maximum e-book file size in MB",
    ),
    PlatformSetting(
        key=ALLOWED_FILE_FORMATS,
        value="pdf,epub,mobi",
        setting_type="string",
        category="ebook",
        description="Allowed e-book file formats",
    ),
    PlatformSetting(
        key=STUDENT_DOCUMENT_MAX_MB,
        value="10",
        setting_type="number",
        category="student",
        description="Maximum student verification document size in MB",
    ),
    PlatformSetting(
        key=STUDENT_DOCUMENT_TYPES,
        value="application/pdf,image/jpeg,image/jpg,image/png",
        setting_type="string",
        category="student",
        description="Accepted MIME types for student verification documents",
    ),
)

# Keys whose values are percentages and must stay within 0-100
PERCENTAGE_KEYS = frozenset({STUDENT_DISCOUNT_PERCENT})

_DEFAULTS = {setting.key: setting.value for setting in DEFAULT_SETTINGS}


@dataclass
class PlatformSettingsService:
    """
    Injected configuration service backed by the settings repository.

    One instance is shared per process so the cache is effective;
    the lock only guards the cache dictionary.
    """

    repository: SettingsRepository
    defaults: dict[str, str] = field(default_factory=lambda: dict(_DEFAULTS))
    _cache: dict[str, str | None] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _generation: int = field(default=0, init=False, repr=False)

    def bootstrap(self) -> int:
        """Insert every default setting that is not stored yet."""
        inserted = self.repository.insert_missing(list(DEFAULT_SETTINGS))
        self.invalidate()
        logger.info("Platform settings bootstrapped (%d inserted)", inserted)
        return inserted

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()
            self._generation += 1

    def get(self, key: str) -> str | None:
        """Raw stored value, or None if the key is not stored."""
        with self._lock:
            if key in self._cache:
                return self._cache[key]
            generation = self._generation

        setting = self.repository.get_setting(key)
        value = setting.value if setting is not None else None

        # A write landed during the fetch; the value may already be stale
        with self._lock:
            if self._generation == generation:
                self._cache[key] = value
        return value

    def get_decimal(self, key: str) -> Decimal:
        """
        Read a non-negative numeric setting.

        Raises:
            ConfigurationError: If the value is unusable and no default exists
        """
        return self._read(key, _parse_non_negative)

    def get_percentage(self, key: str) -> Decimal:
        """Read a 0-100 percentage setting as a Decimal."""
        return self._read(key, _parse_percentage)

    def get_int(self, key: str) -> int:
        return self._read(key, _parse_int)

    def get_list(self, key: str) -> list[str]:
        """Read a comma-separated setting as a list of trimmed, lowercased items."""
        return self._read(key, _parse_list)

    def get_choice(self, key: str, choices: tuple[str, ...]) -> str:
        return self._read(key, lambda raw: _parse_choice(raw, choices))

    def list_all(self) -> list[PlatformSetting]:
        return self.repository.list_settings()

    def update(self, key: str, value: str, admin_id: str) -> PlatformSetting:
        """
        Overwrite a setting value as an administrator.

        The value is validated with the same parser readers use, so an
        administrator cannot store something every reader would reject.

        Raises:
            SettingNotFound: If the key does not exist
            ValidationError: If the value does not parse for this key
        """
        current = self.repository.get_setting(key)
        if current is None:
            raise SettingNotFound(key)

        value = value.strip()
        parser = self._parser_for(current)
        if parser(value) is None:
            raise ValidationError(f"Invalid value for setting '{key}': {value!r}")
        if key == PLATFORM_FEE_TYPE:
            self._check_fee_value_for_type(value)

        updated = self.repository.update_setting(key, value, admin_id)
        if updated is None:
            raise SettingNotFound(key)

        self.invalidate()
        logger.info(
            "Setting %s updated to %r by %s (version %d)", key, value, admin_id, updated.version
        )
        return updated

    def _parser_for(self, setting: PlatformSetting):
        # A percentage fee above 100 would make author earnings negative
        if setting.key == PLATFORM_FEE_VALUE:
            if self.get_choice(PLATFORM_FEE_TYPE, FEE_TYPES) == "percentage":
                return _parse_percentage
        return _default_parser(setting)

    def _check_fee_value_for_type(self, fee_type: str) -> None:
        """Refuse a fee type the stored fee value is invalid under."""
        stored = self.repository.get_setting(PLATFORM_FEE_VALUE)
        if stored is None:
            return
        parser = _parse_percentage if fee_type.lower() == "percentage" else _parse_non_negative
        if parser(stored.value) is None:
            raise ValidationError(
                f"Current {PLATFORM_FEE_VALUE} {stored.value!r} is invalid for "
                f"fee type '{fee_type}'; update the value first"
            )

    def _read(self, key, parser):
        raw = self.get(key)
        if raw is not None:
            parsed = parser(raw)
            if parsed is not None:
                return parsed
            logger.warning("Setting %s has unusable value %r, using default", key, raw)

        default = self.defaults.get(key)
        parsed = parser(default) if default is not None else None
        if parsed is None:
            raise ConfigurationError(f"Setting '{key}' is missing and has no default")
        return parsed


def _default_parser(setting: PlatformSetting):
    if setting.key in PERCENTAGE_KEYS:
        return _parse_percentage
    if setting.key == PLATFORM_FEE_TYPE:
        return lambda raw: _parse_choice(raw, FEE_TYPES)
    if setting.setting_type == "number":
        return _parse_non_negative
    return lambda raw: raw or None


def _parse_decimal(raw: str) -> Decimal | None:
    try:
        value = Decimal(raw.strip())
    except (InvalidOperation, AttributeError):
        return None
    if not value.is_finite():
        return None
    return value


def _parse_non_negative(raw: str) -> Decimal | None:
    value = _parse_decimal(raw)
    if value is None or value < 0:
        return None
    return value


def _parse_percentage(raw: str) -> Decimal | None:
    value = _parse_non_negative(raw)
    if value is None or value > 100:
        return None
    return value


def _parse_int(raw: str) -> int | None:
    value = _parse_non_negative(raw)
    if value is None or value != value.to_integral_value():
        return None
    return int(value)


def _parse_list(raw: str) -> list[str] | None:
    items = [item.strip().lower() for item in raw.split(",") if item.strip()]
    return items or None


def _parse_choice(raw: str, choices: tuple[str, ...]) -> str | None:
    value = raw.strip().lower()
    return value if value in choices else None
