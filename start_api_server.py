#!/usr/bin/env python3
"""
Démarre l'API de chiffrage avec uvicorn.
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from chiffrage.core.config import settings
from chiffrage.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def start_api_server(host: str, port: int, reload: bool = False):
    """Démarre le serveur API FastAPI"""
    uvicorn.run(
        "chiffrage.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


def main():
    parser = argparse.ArgumentParser(description="Serveur API de chiffrage")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Rechargement automatique (développement)")
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)

    # Vérifier que nous sommes dans le bon répertoire
    if not Path("chiffrage/main.py").exists():
        logger.error("Ce script doit être exécuté depuis le répertoire racine du projet")
        sys.exit(1)

    logger.info("Base de données: %s", settings.DATABASE_URL)
    logger.info("Documentation API: http://%s:%s/docs", args.host, args.port)

    try:
        start_api_server(args.host, args.port, args.reload)
    except KeyboardInterrupt:
        logger.info("Arrêt du serveur")


if __name__ == "__main__":
    main()
