"""
Attendance tracking for enrolled face identities.

This module provides:
- Append-only ledger with one event per identity per calendar day
- Per-identity attendance percentage over calendar days
- Frame-by-frame recognition sessions that mark attendance
- CSV and Excel report export
"""

from .attendance_system import AttendanceSystem
from .ledger import AttendanceEvent, AttendanceLedger, calendar_date_of
from .recognition import RecognitionOutcome, RecognitionSession, RecognitionStatus
from .reports import export_attendance, records_dataframe
from .stats import AttendanceStats, AttendanceSummary, compute_percentage

__version__ = "1.0.0"
__author__ = "Face Attendance"

__all__ = [
    'AttendanceSystem',
    'AttendanceEvent',
    'AttendanceLedger',
    'calendar_date_of',
    'RecognitionOutcome',
    'RecognitionSession',
    'RecognitionStatus',
    'export_attendance',
    'records_dataframe',
    'AttendanceStats',
    'AttendanceSummary',
    'compute_percentage'
]
