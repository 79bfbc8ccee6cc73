"""
Configuration settings for the face attendance engine.
Matching thresholds, enrollment quotas, storage backend and logging options.
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Configure logging for config module
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("memory", "json", "sqlite")


@dataclass
class MatchingConfig:
    """Embedding distance thresholds."""
    uniqueness_threshold: float = 0.45  # registration dedup
    match_threshold: float = 0.5        # live recognition
    embedding_dimension: Optional[int] = None  # None = first enrolled identity decides


@dataclass
class EnrollmentConfig:
    """Enrollment session settings."""
    samples_required: int = 5
    capture_interval_seconds: float = 1.0


@dataclass
class RecognitionConfig:
    """Recognition session settings."""
    scan_interval_seconds: float = 0.5


@dataclass
class StorageConfig:
    """Key-value persistence settings."""
    backend: str = "json"  # memory, json or sqlite
    path: str = "attendance_data/store.json"
    identities_key: str = "faceAttendance_users"
    records_key: str = "faceAttendance_records"
    security_key: str = "faceAttendance_security"


@dataclass
class AttendanceConfig:
    """Attendance ledger and reporting configuration."""
    timezone: str = "UTC"
    reports_directory: str = "attendance_reports"
    default_export_format: str = "csv"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    output_dir: str = "attendance_output"
    log_to_file: bool = True
    attendance_log_file: str = "attendance_output/logs/attendance.log"
    max_events: int = 1000


@dataclass
class ApiConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000


class Config:
    """Main configuration class with environment overrides and validation."""

    def __init__(self, load_environment: bool = True):
        self.matching = MatchingConfig()
        self.enrollment = EnrollmentConfig()
        self.recognition = RecognitionConfig()
        self.storage = StorageConfig()
        self.attendance = AttendanceConfig()
        self.logging = LoggingConfig()
        self.api = ApiConfig()

        if load_environment:
            self._load_environment_variables()

        self._validate_configuration()
        self._create_directories()

    def _load_environment_variables(self):
        """Load configuration from environment variables, keeping defaults on bad values."""
        try:
            self.matching.uniqueness_threshold = float(
                os.getenv("UNIQUENESS_THRESHOLD", self.matching.uniqueness_threshold))
        except ValueError as e:
            logger.warning(f"Invalid uniqueness threshold, using default: {e}")

        try:
            self.matching.match_threshold = float(
                os.getenv("MATCH_THRESHOLD", self.matching.match_threshold))
        except ValueError as e:
            logger.warning(f"Invalid match threshold, using default: {e}")

        dimension = os.getenv("EMBEDDING_DIMENSION")
        if dimension:
            try:
                self.matching.embedding_dimension = int(dimension)
                if self.matching.embedding_dimension <= 0:
                    raise ValueError("Embedding dimension must be positive")
            except ValueError as e:
                logger.warning(f"Invalid embedding dimension, ignoring: {e}")
                self.matching.embedding_dimension = None

        try:
            self.enrollment.samples_required = int(
                os.getenv("ENROLLMENT_SAMPLES", self.enrollment.samples_required))
            if self.enrollment.samples_required < 1:
                raise ValueError("Enrollment samples must be at least 1")
        except ValueError as e:
            logger.warning(f"Invalid enrollment sample count, using default: {e}")
            self.enrollment.samples_required = EnrollmentConfig.samples_required

        backend = os.getenv("STORE_BACKEND", self.storage.backend).lower()
        if backend in SUPPORTED_BACKENDS:
            self.storage.backend = backend
        else:
            logger.warning(f"Invalid store backend: {backend}, using default")

        self.storage.path = os.getenv("STORE_PATH", self.storage.path)

        self.attendance.timezone = os.getenv("ATTENDANCE_TIMEZONE", self.attendance.timezone)
        self.attendance.reports_directory = os.getenv("REPORTS_DIR", self.attendance.reports_directory)

        log_level = os.getenv("LOG_LEVEL", self.logging.log_level).upper()
        if log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            self.logging.log_level = log_level
        else:
            logger.warning(f"Invalid log level: {log_level}, using default")

        self.logging.log_to_file = os.getenv("LOG_TO_FILE", "true").lower() == "true"

        self.api.host = os.getenv("API_HOST", self.api.host)
        try:
            self.api.port = int(os.getenv("API_PORT", self.api.port))
        except ValueError as e:
            logger.warning(f"Invalid API port, using default: {e}")

    def _validate_configuration(self):
        """Validate configuration values."""
        errors = []

        if not 0.0 < self.matching.uniqueness_threshold <= 2.0:
            errors.append("Uniqueness threshold must be in (0.0, 2.0]")

        if not 0.0 < self.matching.match_threshold <= 2.0:
            errors.append("Match threshold must be in (0.0, 2.0]")

        if self.enrollment.samples_required < 1:
            errors.append("Enrollment needs at least one sample")

        if self.enrollment.capture_interval_seconds <= 0:
            errors.append("Enrollment capture interval must be positive")

        if self.recognition.scan_interval_seconds <= 0:
            errors.append("Recognition scan interval must be positive")

        if self.storage.backend not in SUPPORTED_BACKENDS:
            errors.append(f"Store backend must be one of {', '.join(SUPPORTED_BACKENDS)}")

        try:
            ZoneInfo(self.attendance.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown attendance timezone: {self.attendance.timezone}")

        if not 0 < self.api.port < 65536:
            errors.append("API port must be between 1 and 65535")

        if errors:
            error_msg = "Configuration validation errors:\n" + "\n".join(f"- {error}" for error in errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        # Recognition is expected to be looser than registration dedup
        if self.matching.uniqueness_threshold > self.matching.match_threshold:
            logger.warning(
                f"Uniqueness threshold {self.matching.uniqueness_threshold} is looser than "
                f"match threshold {self.matching.match_threshold}"
            )

        logger.debug("Configuration validation passed")

    def _create_directories(self):
        """Create the log directory when file logging is enabled."""
        if not self.logging.log_to_file:
            return

        for directory in (Path(self.logging.output_dir) / "logs",
                          Path(self.logging.attendance_log_file).parent):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Could not create directory {directory}: {e}")

    @property
    def tzinfo(self) -> ZoneInfo:
        """Reference timezone used to derive attendance calendar dates."""
        return ZoneInfo(self.attendance.timezone)

    def get_effective_config(self) -> dict:
        """Get complete effective configuration as dictionary."""
        return {
            'matching': {
                'uniqueness_threshold': self.matching.uniqueness_threshold,
                'match_threshold': self.matching.match_threshold,
                'embedding_dimension': self.matching.embedding_dimension
            },
            'enrollment': {
                'samples_required': self.enrollment.samples_required,
                'capture_interval_seconds': self.enrollment.capture_interval_seconds
            },
            'recognition': {
                'scan_interval_seconds': self.recognition.scan_interval_seconds
            },
            'storage': {
                'backend': self.storage.backend,
                'path': self.storage.path
            },
            'attendance': {
                'timezone': self.attendance.timezone,
                'reports_directory': self.attendance.reports_directory
            },
            'logging': {
                'log_level': self.logging.log_level,
                'output_dir': self.logging.output_dir,
                'log_to_file': self.logging.log_to_file
            },
            'api': {
                'host': self.api.host,
                'port': self.api.port
            }
        }


def _fallback_config() -> Config:
    fallback = Config.__new__(Config)
    fallback.matching = MatchingConfig()
    fallback.enrollment = EnrollmentConfig()
    fallback.recognition = RecognitionConfig()
    fallback.storage = StorageConfig()
    fallback.attendance = AttendanceConfig()
    fallback.logging = LoggingConfig()
    fallback.api = ApiConfig()
    return fallback


# Global configuration instance with error handling
try:
    config = Config()
except ValueError as e:
    logger.error(f"Failed to initialize configuration: {e}")
    config = _fallback_config()
    logger.warning("Using fallback configuration")


def validate_config() -> bool:
    """Validate current configuration."""
    try:
        config._validate_configuration()
        return True
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        return False


def get_config_summary() -> dict:
    """Get a summary of current configuration."""
    return {
        'uniqueness_threshold': config.matching.uniqueness_threshold,
        'match_threshold': config.matching.match_threshold,
        'samples_required': config.enrollment.samples_required,
        'store_backend': config.storage.backend,
        'store_path': config.storage.path,
        'timezone': config.attendance.timezone,
        'logging_level': config.logging.log_level
    }
