"""
Configuration du logging applicatif.

Les modules utilisent ``logging.getLogger(__name__)`` ; cette fonction
installe une seule fois le handler racine au démarrage de l'API.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    global _configured
    if _configured:
        logging.getLogger().setLevel(level.upper())
        return

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # SQLAlchemy a son propre flag echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
