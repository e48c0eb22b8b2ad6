from .niveau import Niveau1, Niveau2, Niveau3, Niveau4, Niveau5, Niveau6, NIVEAU_MODELS
from .projet import Projet
from .projet_lot import ProjetLot
from .ouvrage import Ouvrage
from .bloc import Bloc
from .structure import Structure, StructureKind
from .projet_article import ProjetArticle
from .evenement import Evenement

__all__ = [
    'Niveau1',
    'Niveau2',
    'Niveau3',
    'Niveau4',
    'Niveau5',
    'Niveau6',
    'NIVEAU_MODELS',
    'Projet',
    'ProjetLot',
    'Ouvrage',
    'Bloc',
    'Structure',
    'StructureKind',
    'ProjetArticle',
    'Evenement',
]
