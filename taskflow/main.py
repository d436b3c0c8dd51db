import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import exc as sa_exc
from taskflow.config import settings
from taskflow.core.exceptions import TaskFlowError
from taskflow.database import Base, engine
from taskflow.models import user, organization, team, project, task, tag, notification  # noqa: F401  register tables
from taskflow.routers import auth, tasks, tags, projects, organizations, teams, notifications, analytics, voice

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="TaskFlow - Project & Task Management", version="1.0")

app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(tags.router)
app.include_router(projects.router)
app.include_router(organizations.router)
app.include_router(teams.router)
app.include_router(notifications.router)
app.include_router(analytics.router)
app.include_router(voice.router)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(TaskFlowError)
async def taskflow_error_handler(request: Request, exc: TaskFlowError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Create DB Tables for local runs; production uses Alembic
@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "already exists" in msg:
                logger.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise


@app.get("/")
def read_root():
    return {"message": "Welcome to TaskFlow"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("taskflow.main:app", host="0.0.0.0", port=8000, reload=True)
