"""
Logging utilities for the face attendance engine.
Main application log plus a dedicated attendance/security event log.
"""
import logging
import threading
import json
from datetime import datetime, timedelta
from typing import Optional, Dict, List
from pathlib import Path


class AttendanceLogger:
    """Application logger with a separate attendance event channel and an in-memory event buffer."""

    def __init__(self, name: str = "face_attendance", use_config: bool = True):
        self.name = name
        self.use_config = use_config
        self.logger = logging.getLogger(name)
        self._setup_logger()

        # Attendance-specific logging
        self.attendance_logger = self._setup_attendance_logger()
        self.attendance_events: List[Dict] = []
        self.max_attendance_events = self._max_events()
        self._events_lock = threading.Lock()

        self.logger.debug("Attendance logger initialized")

    def _settings(self):
        """Logging settings from the global config, or None to run on defaults."""
        if not self.use_config:
            return None
        try:
            # Import config here to avoid circular imports
            from utils.config import config
        except ImportError:
            return None
        return config.logging

    def _max_events(self) -> int:
        settings = self._settings()
        return settings.max_events if settings is not None else 1000

    def _setup_logger(self):
        """Setup console and file handlers."""
        settings = self._settings()
        if settings is not None:
            log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
            output_dir = settings.output_dir
            log_to_file = settings.log_to_file
        else:
            log_level = logging.INFO
            output_dir = "attendance_output"
            log_to_file = False

        # Clear existing handlers to avoid duplicates
        self.logger.handlers.clear()
        self.logger.setLevel(log_level)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        self.logger.addHandler(console_handler)

        if log_to_file:
            try:
                log_dir = Path(output_dir) / "logs"
                log_dir.mkdir(parents=True, exist_ok=True)

                file_handler = logging.FileHandler(log_dir / "face_attendance.log", encoding='utf-8')
                file_handler.setFormatter(formatter)
                file_handler.setLevel(log_level)
                self.logger.addHandler(file_handler)
            except OSError as e:
                self.logger.warning(f"Could not setup file logging: {e}")

        # Prevent propagation to root logger
        self.logger.propagate = False

    def _setup_attendance_logger(self) -> logging.Logger:
        """Setup separate logger for attendance and security events."""
        settings = self._settings()
        if settings is not None:
            log_file = settings.attendance_log_file
            log_to_file = settings.log_to_file
        else:
            log_file = "attendance_output/logs/attendance.log"
            log_to_file = False

        attendance_logger = logging.getLogger(f"{self.name}.attendance")
        attendance_logger.handlers.clear()
        attendance_logger.setLevel(logging.INFO)
        attendance_logger.propagate = False

        formatter = logging.Formatter(
            '%(asctime)s - ATTENDANCE - %(levelname)s - %(message)s'
        )

        if log_to_file:
            try:
                log_file_path = Path(log_file)
                log_file_path.parent.mkdir(parents=True, exist_ok=True)

                attendance_file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
                attendance_file_handler.setFormatter(formatter)
                attendance_logger.addHandler(attendance_file_handler)
            except OSError as e:
                self.logger.warning(f"Could not setup attendance file logging: {e}")
        else:
            attendance_logger.addHandler(logging.NullHandler())

        return attendance_logger

    def set_level(self, level: str):
        """Change the level of the main logger and its handlers."""
        log_level = getattr(logging, level.upper(), logging.INFO)
        self.logger.setLevel(log_level)
        for handler in self.logger.handlers:
            handler.setLevel(log_level)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs):
        self.logger.critical(message, **kwargs)

    def log_event(self, event_type: str, details: dict):
        """Log an application event with structured details."""
        message = f"EVENT: {event_type} | {json.dumps(details, default=str)}"
        self.info(message)

    def log_attendance_event(self, identity_name: str, event_type: str = "DETECTED",
                             details: Optional[Dict] = None, confidence: float = 0.0):
        """Record an attendance-related event in the buffer and the attendance log."""
        event_details = details or {}
        attendance_event = {
            'timestamp': datetime.now().isoformat(),
            'identity_name': identity_name,
            'event_type': event_type,
            'confidence': confidence,
            'details': event_details
        }

        with self._events_lock:
            self.attendance_events.append(attendance_event)
            if len(self.attendance_events) > self.max_attendance_events:
                self.attendance_events = self.attendance_events[-self.max_attendance_events:]

        message = f"Identity: {identity_name} | Event: {event_type} | Confidence: {confidence:.2f}"
        if event_details:
            message += f" | Details: {json.dumps(event_details, default=str)}"

        self.attendance_logger.info(message)

        # Also log significant events to main log
        if event_type in ("ATTENDANCE_MARKED", "IDENTITY_ENROLLED", "SECURITY_ALERT"):
            self.info(f"ATTENDANCE - {message}")

    def log_security_event(self, attempted_name: str, existing_name: str, similarity_percent: int):
        """Log a registration rejected because the face already belongs to someone."""
        self.log_attendance_event(
            attempted_name,
            "SECURITY_ALERT",
            {'existing_name': existing_name, 'similarity_percent': similarity_percent},
            similarity_percent / 100.0
        )
        self.warning(
            f"Face for '{attempted_name}' is already registered as '{existing_name}' "
            f"({similarity_percent}% match)"
        )

    def get_recent_attendance_events(self, hours: int = 24) -> List[Dict]:
        """Get buffered events within the given number of hours."""
        cutoff_time = datetime.now() - timedelta(hours=hours)

        with self._events_lock:
            return [
                dict(event) for event in self.attendance_events
                if datetime.fromisoformat(event['timestamp']) >= cutoff_time
            ]

    def get_attendance_summary(self, hours: int = 24) -> Dict:
        """Count buffered events per identity and per event type."""
        recent_events = self.get_recent_attendance_events(hours)

        identity_counts: Dict[str, int] = {}
        event_types: Dict[str, int] = {}

        for event in recent_events:
            name = event['identity_name']
            event_type = event['event_type']

            identity_counts.setdefault(name, 0)
            if event_type == "ATTENDANCE_MARKED":
                identity_counts[name] += 1

            event_types[event_type] = event_types.get(event_type, 0) + 1

        return {
            'time_period_hours': hours,
            'total_events': len(recent_events),
            'unique_identities': len(identity_counts),
            'identity_attendance_counts': identity_counts,
            'event_type_counts': event_types,
            'last_updated': datetime.now().isoformat()
        }

    def clear_events(self):
        with self._events_lock:
            self.attendance_events = []

    def get_log_statistics(self) -> Dict:
        """Get logging system statistics."""
        with self._events_lock:
            attendance_events_count = len(self.attendance_events)

        return {
            'attendance_events_count': attendance_events_count,
            'max_attendance_events': self.max_attendance_events,
            'log_level': logging.getLevelName(self.logger.level),
            'handlers': [type(handler).__name__ for handler in self.logger.handlers]
        }

    def shutdown(self):
        """Flush and close every handler."""
        self.info("Shutting down attendance logger")
        for log in (self.logger, self.attendance_logger):
            for handler in list(log.handlers):
                handler.flush()
                handler.close()
                log.removeHandler(handler)


# Global logger instance with error handling
try:
    logger = AttendanceLogger()
except Exception as e:
    # Console only, no config
    logger = AttendanceLogger("face_attendance_fallback", use_config=False)
    logger.error(f"Failed to initialize attendance logger: {e}")
