import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import errors
from app.logging_config import setup_logging
from app.routers import approvals, content, jobs, publisher, schedule, stats

setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app FIRST
app = FastAPI(title="Content Pipeline Engine")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# one response class per error kind
ERROR_STATUS = {
    errors.ValidationError: 400,
    errors.NotFoundError: 404,
    errors.InvalidTransitionError: 409,
    errors.SlotConflictError: 409,
    errors.NoAvailableSlotError: 422,
    errors.JobAlreadyActiveError: 409,
    errors.PublishError: 502,
}


def _handler(status_code: int):
    async def handle(request: Request, exc: errors.PipelineError):
        if status_code >= 500:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=status_code, content={"error": exc.code, "detail": exc.message})

    return handle


for exc_class, status_code in ERROR_STATUS.items():
    app.add_exception_handler(exc_class, _handler(status_code))

# Register routers
app.include_router(content.router)
app.include_router(approvals.router)
app.include_router(schedule.router)
app.include_router(publisher.router)
app.include_router(jobs.router)
app.include_router(stats.router)

# Health check
@app.get("/")
def health_check():
    return {"status": "ok"}
