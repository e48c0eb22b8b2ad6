from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chiffrage.api.errors import register_exception_handlers
from chiffrage.api.v1 import niveaux, placements, projets, structure
from chiffrage.core.config import settings
from chiffrage.core.logging_config import setup_logging

setup_logging(settings.LOG_LEVEL)

app = FastAPI(title='Chiffrage API')

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(niveaux.router, prefix=settings.API_PREFIX)
app.include_router(projets.router, prefix=settings.API_PREFIX)
app.include_router(placements.router, prefix=settings.API_PREFIX)
app.include_router(structure.router, prefix=settings.API_PREFIX)
