"""
Attendance report tables and file export.
"""
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from identity.identity_store import Identity
from utils.logger import logger
from .ledger import AttendanceEvent

RECORD_COLUMNS = ['Name', 'Date', 'Time', 'Status', 'Confidence', 'Individual Attendance %']
IDENTITY_COLUMNS = ['Name', 'Samples', 'Enrolled At', 'Total Present Days', 'Attendance %']
EXPORT_FORMATS = ('csv', 'xlsx')


def records_dataframe(records: Iterable[AttendanceEvent], identities: Iterable[Identity]) -> pd.DataFrame:
    """One row per attendance event, newest first, with the identity's cached percentage."""
    percentages = {identity.name: identity.attendance_percentage for identity in identities}
    ordered = sorted(records, key=lambda event: event.timestamp.timestamp(), reverse=True)

    rows = [
        {
            'Name': event.identity_name,
            'Date': event.calendar_date.isoformat(),
            'Time': event.time_of_day,
            'Status': event.status,
            'Confidence': f"{event.confidence_percent}%",
            'Individual Attendance %': f"{percentages.get(event.identity_name, 0)}%"
        }
        for event in ordered
    ]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def identities_dataframe(identities: Iterable[Identity]) -> pd.DataFrame:
    """Roster with cached attendance figures."""
    rows = [
        {
            'Name': identity.name,
            'Samples': len(identity.embeddings),
            'Enrolled At': identity.enrolled_at.isoformat(),
            'Total Present Days': identity.total_present_days,
            'Attendance %': identity.attendance_percentage
        }
        for identity in identities
    ]
    return pd.DataFrame(rows, columns=IDENTITY_COLUMNS)


def filter_by_date(df: pd.DataFrame, start_date: Optional[date] = None,
                   end_date: Optional[date] = None) -> pd.DataFrame:
    """Keep rows whose Date falls inside the inclusive range."""
    if df.empty or (start_date is None and end_date is None):
        return df

    dates = pd.to_datetime(df['Date'])
    mask = pd.Series(True, index=df.index)
    if start_date is not None:
        mask &= dates >= pd.Timestamp(start_date)
    if end_date is not None:
        mask &= dates <= pd.Timestamp(end_date)
    return df[mask]


def default_export_name(today: date, fmt: str = "csv") -> str:
    return f"individual_attendance_{today.isoformat()}.{fmt}"


def export_attendance(records: List[AttendanceEvent], identities: List[Identity], output_path,
                      fmt: Optional[str] = None, start_date: Optional[date] = None,
                      end_date: Optional[date] = None) -> Path:
    """Write the attendance table to CSV or Excel and return the written path."""
    output_path = Path(output_path)
    fmt = (fmt or output_path.suffix.lstrip('.') or 'csv').lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")

    df = filter_by_date(records_dataframe(records, identities), start_date, end_date)
    if df.empty:
        raise ValueError("No attendance records to export")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == 'xlsx':
        df.to_excel(output_path, index=False, engine='openpyxl')
    else:
        df.to_csv(output_path, index=False)

    logger.info(f"Exported {len(df)} attendance records to: {output_path}")
    return output_path
