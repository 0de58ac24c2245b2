from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triview.config import settings
from triview.routers import elements, health, selection, views
from triview.domain.errors import (
    ConflictError,
    NotFoundError,
    QueryCancelledError,
    QueryError,
    ValidationError,
)
from triview.dependencies import build_default_session

app = FastAPI(
    title="Triview API",
    description="Tree, table and graph views over one normalized requirements store",
    version=settings.VERSION,
)

# Build the default session on startup unless one was installed already (tests)
@app.on_event("startup")
async def startup_event():
    if getattr(app.state, "session", None) is None:
        app.state.session = build_default_session()

@app.on_event("shutdown")
async def shutdown_event():
    session = getattr(app.state, "session", None)
    if session is not None:
        session.close()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)


# Domain error handlers
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(QueryCancelledError)
async def cancelled_handler(request: Request, exc: QueryCancelledError):
    return JSONResponse(status_code=409, content={"detail": str(exc), "epoch": exc.epoch})


@app.exception_handler(QueryError)
async def query_error_handler(request: Request, exc: QueryError):
    # No upstream status means the query service was unreachable
    return JSONResponse(
        status_code=exc.status_code or 502,
        content={"detail": exc.message, "category": exc.category.value, "retryable": exc.retryable},
    )

# Include routers
app.include_router(health.router, tags=["Health"])  # Health check endpoints first
app.include_router(views.router, tags=["Views"])
app.include_router(selection.router, tags=["Selection"])
app.include_router(elements.router, tags=["Elements"])

@app.get("/")
async def root():
    return {"message": "Welcome to Triview API. See /docs for API documentation"}
