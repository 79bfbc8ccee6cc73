"""
REST API for the face attendance system.

Enrollment and recognition run as server-side sessions: the client opens a
session, posts the embeddings detected in each captured frame, and closes the
session when done.
"""
import io
import threading
import time
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from attendance.attendance_system import AttendanceSystem
from attendance.recognition import RecognitionOutcome, RecognitionSession
from attendance.reports import default_export_name, filter_by_date, records_dataframe
from identity.distance import DimensionMismatch
from identity.enrollment import EnrollmentSession, EnrollmentStep
from identity.identity_matcher import NoIdentitiesEnrolled
from identity.identity_store import DuplicateName, IdentityNotFound
from identity.uniqueness_guard import AlreadyRegistered
from utils.config import config
from utils.logger import logger


class EmbeddingRequest(BaseModel):
    embedding: List[float] = Field(..., min_length=1, description="Face embedding vector")


class FrameRequest(BaseModel):
    embeddings: List[List[float]] = Field(default_factory=list, description="Embeddings detected in one frame")
    timestamp: Optional[datetime] = Field(None, description="Capture time, defaults to now")


class EnrollmentRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


def enrollment_step_to_dict(session_id: str, step: EnrollmentStep) -> Dict:
    return {
        'session_id': session_id,
        'status': step.status.value,
        'samples_collected': step.samples_collected,
        'samples_required': step.samples_required,
        'existing_name': step.existing_name,
        'similarity_percent': step.similarity_percent,
        'finished': step.finished,
        'message': step.message
    }


def recognition_outcome_to_dict(outcome: RecognitionOutcome) -> Dict:
    return {
        'status': outcome.status.value,
        'name': outcome.name,
        'confidence_percent': outcome.confidence_percent,
        'attendance_percentage': outcome.attendance_percentage,
        'message': outcome.message
    }


class SessionRegistry:
    """In-memory enrollment and recognition sessions keyed by id."""

    def __init__(self):
        self._sessions: Dict[str, object] = {}
        self._lock = threading.Lock()

    def open(self, session) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = session
        return session_id

    def get(self, session_id: str, kind: type):
        with self._lock:
            session = self._sessions.get(session_id)
        if not isinstance(session, kind):
            raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
        return session

    def close(self, session_id: str):
        with self._lock:
            return self._sessions.pop(session_id, None)

    def close_all(self):
        with self._lock:
            closed = list(self._sessions.values())
            self._sessions.clear()
        for session in closed:
            session.cancel()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def create_app(system: AttendanceSystem) -> FastAPI:
    """Build the FastAPI application around an attendance system."""
    app = FastAPI(
        title="Face Attendance API",
        description="REST API for face enrollment, recognition and attendance reporting",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    sessions = SessionRegistry()
    app.state.system = system
    app.state.sessions = sessions

    def error_response(status_code: int, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(DuplicateName)
    async def duplicate_name_handler(request: Request, exc: DuplicateName):
        return error_response(409, exc)

    @app.exception_handler(IdentityNotFound)
    async def not_found_handler(request: Request, exc: IdentityNotFound):
        return error_response(404, exc)

    @app.exception_handler(NoIdentitiesEnrolled)
    async def no_identities_handler(request: Request, exc: NoIdentitiesEnrolled):
        return error_response(409, exc)

    @app.exception_handler(DimensionMismatch)
    async def dimension_handler(request: Request, exc: DimensionMismatch):
        return error_response(422, exc)

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "timestamp": time.time()}

    @app.get("/api/status")
    def get_status():
        status = system.get_system_status()
        status['open_sessions'] = len(sessions)
        return status

    # Identities

    @app.get("/api/identities")
    def list_identities():
        return {
            'identities': [
                {
                    'name': identity.name,
                    'samples': len(identity.embeddings),
                    'enrolled_at': identity.enrolled_at.isoformat(),
                    'total_present_days': identity.total_present_days,
                    'attendance_percentage': identity.attendance_percentage
                }
                for identity in system.list_identities()
            ]
        }

    @app.post("/api/identities/check")
    def check_identity(request: EmbeddingRequest):
        result = system.check_uniqueness(request.embedding)
        if isinstance(result, AlreadyRegistered):
            return {
                'is_already_registered': True,
                'name': result.name,
                'similarity_percent': result.similarity_percent,
                'distance': result.distance
            }
        return {'is_already_registered': False}

    # Enrollment

    @app.post("/api/enrollments", status_code=201)
    def start_enrollment(request: EnrollmentRequest):
        try:
            session = system.begin_enrollment(request.name)
        except DuplicateName:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        session_id = sessions.open(session)
        return {
            'session_id': session_id,
            'name': session.name,
            'samples_required': session.samples_required,
            'capture_interval_seconds': session.capture_interval
        }

    @app.post("/api/enrollments/{session_id}/frames")
    def enrollment_frame(session_id: str, request: FrameRequest):
        session = sessions.get(session_id, EnrollmentSession)
        try:
            step = session.step(request.embeddings)
        except (DuplicateName, DimensionMismatch):
            sessions.close(session_id)
            raise

        if step.finished:
            sessions.close(session_id)
        return enrollment_step_to_dict(session_id, step)

    @app.delete("/api/enrollments/{session_id}")
    def cancel_enrollment(session_id: str):
        session = sessions.get(session_id, EnrollmentSession)
        session.cancel()
        sessions.close(session_id)
        return {'session_id': session_id, 'status': 'cancelled'}

    # Recognition

    @app.post("/api/recognitions", status_code=201)
    def start_recognition():
        session = system.begin_recognition()
        session_id = sessions.open(session)
        return {
            'session_id': session_id,
            'scan_interval_seconds': session.scan_interval
        }

    @app.post("/api/recognitions/{session_id}/frames")
    def recognition_frame(session_id: str, request: FrameRequest):
        session = sessions.get(session_id, RecognitionSession)
        try:
            outcomes = session.step(request.embeddings, now=request.timestamp)
        except NoIdentitiesEnrolled:
            sessions.close(session_id)
            raise

        return {
            'session_id': session_id,
            'frames_processed': session.frames_processed,
            'faces': [recognition_outcome_to_dict(outcome) for outcome in outcomes]
        }

    @app.delete("/api/recognitions/{session_id}")
    def stop_recognition(session_id: str):
        session = sessions.get(session_id, RecognitionSession)
        session.cancel()
        sessions.close(session_id)
        return {
            'session_id': session_id,
            'status': 'stopped',
            'frames_processed': session.frames_processed
        }

    # Attendance

    @app.get("/api/attendance")
    def get_attendance(name: Optional[str] = None):
        if name is None:
            records = system.ledger.all_records(newest_first=True)
        else:
            if system.store.find_by_name(name) is None:
                raise IdentityNotFound(f"No identity named '{name}'")
            records = system.records_for(name)
        return {'records': [record.to_record() for record in records]}

    @app.get("/api/attendance/report")
    def get_report():
        return {'report': system.individual_report()}

    @app.get("/api/attendance/overview")
    def get_overview():
        return system.overview()

    @app.get("/api/attendance/export")
    def export_attendance(format: str = Query("csv", pattern="^(csv|xlsx)$"),
                          start_date: Optional[date] = None,
                          end_date: Optional[date] = None):
        df = filter_by_date(
            records_dataframe(system.ledger.all_records(), system.list_identities()),
            start_date, end_date
        )
        if df.empty:
            raise HTTPException(status_code=404, detail="No attendance records to export")

        filename = default_export_name(system.ledger.today(), format)
        headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

        if format == "xlsx":
            buffer = io.BytesIO()
            df.to_excel(buffer, index=False, engine='openpyxl')
            return Response(
                content=buffer.getvalue(),
                media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                headers=headers
            )

        return Response(content=df.to_csv(index=False), media_type="text/csv", headers=headers)

    # Security and maintenance

    @app.get("/api/security/events")
    def get_security_events():
        return {'events': [event.to_record() for event in system.security_log.events()]}

    @app.get("/api/events/recent")
    def get_recent_events(hours: int = Query(24, ge=1, le=24 * 30)):
        """Enrollment, attendance and security events buffered by the logger."""
        return {
            'hours': hours,
            'events': logger.get_recent_attendance_events(hours)
        }

    @app.delete("/api/data")
    def clear_data():
        sessions.close_all()
        system.clear_all_data()
        logger.warning("All attendance data cleared via API")
        return {'status': 'cleared'}

    return app


def run_server(app: FastAPI, host: Optional[str] = None, port: Optional[int] = None):
    """Serve the API with uvicorn until interrupted."""
    host = host or config.api.host
    port = port or config.api.port
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=config.logging.log_level.lower()
    )
