from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.attendance.routes import router as attendance_router
from app.api.attendance.schemas import AttendanceFailure
from app.api.projects.routes import router as projects_router
from app.core.config import Environment, settings
from app.core.database import create_db
from app.core.exceptions.attendance_exceptions import AttendanceError


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT != Environment.TEST:
        create_db()
    yield


app = FastAPI(lifespan=lifespan)

# Include routers
app.include_router(attendance_router, prefix='/attendance', tags=['Attendance'])
app.include_router(projects_router, prefix='/projects', tags=['Projects'])

origins = ['*']
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(AttendanceError)
async def attendance_error_handler(request: Request, exc: AttendanceError):
    body = AttendanceFailure(error_class=exc.error_class, message=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(),
        headers=exc.headers,
    )


@app.get('/', include_in_schema=False)
def ping():
    return Response(status_code=200)
