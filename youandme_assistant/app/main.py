#!/usr/bin/env python3
"""
Main FastAPI application for the You & Me Expenses assistant.
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query as QueryParam, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..data.database import create_tables
from ..data.sources import AuthError, HeaderAuthResolver, SqlFinancialDataSource, SqlTripDataSource
from ..schemas.io_models import Query, QueryResponse, ReportRequest, ReportTypeDescriptor
from ..utils.logger import get_logger
from .config import Config
from .controller import Controller
from .errors import AssistantError

logger = get_logger("api")

# kind -> HTTP status; anything else is a 500
STATUS_BY_KIND = {
    "validation": 400,
    "external_fetch": 503,
}
GENERIC_ERROR = "Something went wrong while processing your request."


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="You & Me Expenses Assistant API",
    description="Finance and travel chatbots with CSV/PDF report export",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_controller: Optional[Controller] = None


def get_controller() -> Controller:
    global _controller
    if _controller is None:
        _controller = Controller(SqlFinancialDataSource(), SqlTripDataSource())
    return _controller


def current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """User id forwarded by the gateway in the X-User-Id header."""
    try:
        return HeaderAuthResolver(x_user_id).current_user()
    except AuthError:
        raise HTTPException(status_code=401, detail="Not authenticated")


@app.exception_handler(AssistantError)
async def assistant_error_handler(request: Request, exc: AssistantError):
    status = STATUS_BY_KIND.get(exc.kind, 500)
    if status >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.detail)
    detail = exc.message if status == 400 else GENERIC_ERROR
    return JSONResponse(status_code=status, content={"detail": detail, "kind": exc.kind})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "kind": "validation"})


# ----------------------------------------------------------------------
# Finance chatbot
# ----------------------------------------------------------------------

@app.post("/api/chatbot/query", response_model=QueryResponse)
def chatbot_query(query: Query, user_id: str = Depends(current_user),
                  controller: Controller = Depends(get_controller)):
    """Answer a finance question."""
    return controller.answer_query(user_id, query, "finance")


@app.get("/api/chatbot/suggestions", response_model=List[str])
def chatbot_suggestions(language: str = QueryParam("en"), user_id: str = Depends(current_user),
                        controller: Controller = Depends(get_controller)):
    return controller.get_suggestions(user_id, language, "finance")


@app.post("/api/chatbot/generate-report")
def generate_report(request: ReportRequest, user_id: str = Depends(current_user),
                    controller: Controller = Depends(get_controller)):
    """Build a report and return it as a file download."""
    rendered = controller.generate_report(user_id, request)
    return Response(
        content=rendered.content,
        media_type=rendered.content_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )


@app.get("/api/chatbot/report-types", response_model=List[ReportTypeDescriptor])
def report_types(language: str = QueryParam("en"), controller: Controller = Depends(get_controller)):
    return controller.list_report_types(language)


# ----------------------------------------------------------------------
# Travel chatbot
# ----------------------------------------------------------------------

@app.post("/api/travel-chatbot/query", response_model=QueryResponse)
def travel_query(query: Query, user_id: str = Depends(current_user),
                 controller: Controller = Depends(get_controller)):
    """Answer a travel question, personalised with the active trip."""
    return controller.answer_query(user_id, query, "travel")


@app.get("/api/travel-chatbot/suggestions", response_model=List[str])
def travel_suggestions(language: str = QueryParam("en"), user_id: str = Depends(current_user),
                       controller: Controller = Depends(get_controller)):
    return controller.get_suggestions(user_id, language, "travel")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
