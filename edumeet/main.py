import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from edumeet.core import config
from edumeet.core.errors import DatabaseUnavailableError
from edumeet.database import ensure_schema
from edumeet.routes import admin_routes, appointment_routes, auth_routes, notification_routes, teacher_routes

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='EduMeet API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


def _field_name(loc: tuple) -> str:
    parts = [str(part) for part in loc if part not in ('body', 'query', 'path')]
    return '.'.join(parts) or 'request'


def _error_message(error: dict) -> str:
    message = error.get('msg', 'Invalid value')
    # Validators raise ValueError; pydantic prefixes the message.
    return message.removeprefix('Value error, ')


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {'field': _field_name(tuple(error.get('loc', ()))), 'message': _error_message(error)}
        for error in exc.errors()
    ]
    logger.info('Validation failed on %s %s: %s', request.method, request.url.path, errors)
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({'detail': 'Validation failed', 'errors': errors}),
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception('Database error on %s %s', request.method, request.url.path)
    error = DatabaseUnavailableError()
    return JSONResponse(status_code=error.status_code, content={'detail': error.detail})


@app.on_event('startup')
def initialize_database() -> None:
    try:
        ensure_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'EduMeet API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(admin_routes.router, prefix='/admin')
app.include_router(teacher_routes.router, prefix='/teachers')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(notification_routes.router, prefix='/notifications')
