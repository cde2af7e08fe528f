import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

# Load environment variables from audit_console/.env
package_dir = Path(__file__).parent
load_dotenv(package_dir / ".env")

from .clients.gateway import Gateway
from .clients.logging import get_logger
from .config.config_loader import load_console_settings
from .config.settings import ConsoleSettings
from .services.console_session import ConsoleSession, SessionRegistry
from .utils.errors import ConsoleError, IndexOutOfRange, NotFound, TransportError, ValidationError

logger = get_logger(__name__)

ERROR_STATUS = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (IndexOutOfRange, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
)


class SchemaFieldPatch(BaseModel):
    name: Optional[str] = None
    dtype: Optional[str] = None
    nullable: Optional[bool] = None
    description: Optional[str] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    # A raw comma-separated string is accepted as typed by the operator.
    allowed_values: Union[List[str], str, None] = None
    regex: Optional[str] = None


class RulePatch(BaseModel):
    name: Optional[str] = None
    expression: Optional[str] = None
    severity: Optional[str] = None
    description: Optional[str] = None


class DatasetPatch(BaseModel):
    dataset_name: Optional[str] = None
    primary_key: Union[List[str], str, None] = None


class CompareRequest(BaseModel):
    a: Optional[str] = None
    b: Optional[str] = None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to logs for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def create_app(
    settings: Optional[ConsoleSettings] = None,
    gateway_factory: Optional[Callable[[], Gateway]] = None,
) -> FastAPI:
    settings = settings or load_console_settings()
    gateway_factory = gateway_factory or (lambda: Gateway(settings.gateway))
    registry = SessionRegistry(gateway_factory, settings.session)

    app = FastAPI(title="Audit Console")
    app.state.settings = settings
    app.state.registry = registry

    allowed_origins = settings.server.allowed_origins
    # For wildcard, we can't use credentials, so disable credentials
    use_credentials = "*" not in allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=use_credentials,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Log validation errors for debugging."""
        logger.error(
            "Request validation error",
            extra={"url": str(request.url), "method": request.method, "errors": exc.errors()},
        )
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(ConsoleError)
    async def console_exception_handler(request: Request, exc: ConsoleError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        for error_type, code in ERROR_STATUS:
            if isinstance(exc, error_type):
                status_code = code
                break
        logger.warning(
            "Console request failed",
            extra={"url": str(request.url), "error": exc.message, "status_code": status_code},
        )
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    def get_session(session_id: str) -> ConsoleSession:
        try:
            return registry.get(session_id)
        except KeyError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Session '{session_id}' not found",
            )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "sessions": len(registry),
            "gateway": settings.gateway.base_url,
            "config_version": settings.metadata.get("config_version"),
        }

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    def create_session() -> Dict[str, Any]:
        session = registry.create()
        session.start()
        logger.info("Session created", extra={"session_id": session.session_id})
        return session.view()

    @app.get("/sessions/{session_id}")
    def get_session_view(session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        return session.view()

    @app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def close_session(session_id: str) -> Response:
        if not registry.remove(session_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/sessions/{session_id}/template")
    def load_template(session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.load_template()
        return session.view()

    # Schema fields

    @app.post("/sessions/{session_id}/schema")
    def add_schema_field(session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.add_schema_field()
        return session.view()

    @app.patch("/sessions/{session_id}/schema/{index}")
    def update_schema_field(
        index: int,
        patch: SchemaFieldPatch,
        session: ConsoleSession = Depends(get_session),
    ) -> Dict[str, Any]:
        session.update_schema_field(index, patch.model_dump(exclude_unset=True))
        return session.view()

    @app.delete("/sessions/{session_id}/schema/{index}")
    def remove_schema_field(index: int, session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.remove_schema_field(index)
        return session.view()

    # Rules

    @app.post("/sessions/{session_id}/rules")
    def add_rule(session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.add_rule()
        return session.view()

    @app.patch("/sessions/{session_id}/rules/{index}")
    def update_rule(
        index: int,
        patch: RulePatch,
        session: ConsoleSession = Depends(get_session),
    ) -> Dict[str, Any]:
        session.update_rule(index, patch.model_dump(exclude_unset=True))
        return session.view()

    @app.delete("/sessions/{session_id}/rules/{index}")
    def remove_rule(index: int, session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.remove_rule(index)
        return session.view()

    @app.patch("/sessions/{session_id}/dataset")
    def update_dataset(patch: DatasetPatch, session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.update_dataset(patch.dataset_name, patch.primary_key)
        return session.view()

    # Upload and audit

    @app.post("/sessions/{session_id}/file")
    def select_file(
        file: UploadFile = File(...),
        session: ConsoleSession = Depends(get_session),
    ) -> Dict[str, Any]:
        content = file.file.read()
        session.select_file(file.filename or "dataset.csv", content)
        return session.view()

    @app.post("/sessions/{session_id}/audit")
    def run_audit(session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.run_audit()
        return session.view()

    # Report history

    @app.post("/sessions/{session_id}/reports/refresh")
    def refresh_reports(session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.refresh_reports()
        return session.view()

    @app.post("/sessions/{session_id}/reports/{report_id}/load")
    def load_report(report_id: str, session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.load_report(report_id)
        return session.view()

    @app.delete("/sessions/{session_id}/reports/{report_id}")
    def delete_report(report_id: str, session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.delete_report(report_id)
        return session.view()

    @app.get("/sessions/{session_id}/reports/{report_id}/download")
    def download_report(report_id: str, session: ConsoleSession = Depends(get_session)) -> Response:
        payload = session.download_report(report_id)
        if payload is None:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=session.state.message)
        return Response(
            content=payload,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="report_{report_id}.json"'},
        )

    # Derived views

    @app.get("/sessions/{session_id}/issues")
    def issue_log(session: ConsoleSession = Depends(get_session)) -> List[Dict[str, str]]:
        return [issue.to_dict() for issue in session.issue_log()]

    @app.get("/sessions/{session_id}/indicators")
    def indicators(session: ConsoleSession = Depends(get_session)) -> List[Dict[str, str]]:
        return [indicator.to_dict() for indicator in session.indicators()]

    @app.post("/sessions/{session_id}/compare")
    def compare_reports(request: CompareRequest, session: ConsoleSession = Depends(get_session)) -> Dict[str, Any]:
        session.select_for_comparison(request.a, request.b)
        session.compare_selected()
        return session.view()

    logger.info(
        "Console application ready",
        extra={"gateway": settings.gateway.base_url, "config_version": settings.metadata.get("config_version")},
    )
    return app


app = create_app()
