"""Utility modules for the face attendance engine."""
from .config import config, Config
from .logger import logger, AttendanceLogger
__all__ = ['config', 'Config', 'logger', 'AttendanceLogger']
