"""
Erreurs métier du chiffrage.

Chaque erreur porte un code stable et un contexte structuré, exploités
par le handler FastAPI pour construire la réponse HTTP.
"""

from collections.abc import Mapping
from enum import StrEnum
from typing import Any


class ErrCode(StrEnum):
    MISSING_HIERARCHY_LEVEL = "MISSING_HIERARCHY_LEVEL"
    ANCESTOR_NOT_FOUND = "ANCESTOR_NOT_FOUND"
    STRUCTURAL_NOT_FOUND = "STRUCTURAL_NOT_FOUND"
    LABEL_CONFLICT = "LABEL_CONFLICT"
    INVALID_NAME = "INVALID_NAME"
    AMBIGUOUS_LABEL = "AMBIGUOUS_LABEL"
    CONCURRENT_CREATE_RACE = "CONCURRENT_CREATE_RACE"
    AGGREGATE_RECOMPUTE_FAILED = "AGGREGATE_RECOMPUTE_FAILED"


class ChiffrageError(Exception):
    """Erreur métier avec code + contexte structuré."""

    def __init__(self, message: str, *, code: ErrCode, ctx: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.ctx: dict[str, Any] = dict(ctx or {})

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class MissingHierarchyLevel(ChiffrageError):
    """Un niveau obligatoire (1, 2, 3 ou 6) n'a pas été fourni."""

    def __init__(self, missing: list[int]) -> None:
        self.missing = list(missing)
        labels = ", ".join(f"niveau_{n}" for n in self.missing)
        super().__init__(
            f"Niveaux obligatoires manquants: {labels}",
            code=ErrCode.MISSING_HIERARCHY_LEVEL,
            ctx={"missing": self.missing},
        )


class AncestorNotFound(ChiffrageError):
    """Le parent référencé a disparu pendant la création (suppression concurrente)."""

    def __init__(self, level: int | None, ctx: Mapping[str, Any] | None = None) -> None:
        self.level = level
        where = f"le niveau {level}" if level is not None else "cette création"
        super().__init__(
            f"Parent introuvable pour {where}",
            code=ErrCode.ANCESTOR_NOT_FOUND,
            ctx={"level": level, **dict(ctx or {})},
        )


class StructuralNotFound(ChiffrageError):
    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            code=ErrCode.STRUCTURAL_NOT_FOUND,
            ctx={"entity": entity, "id": entity_id},
        )


class LabelConflict(ChiffrageError):
    def __init__(self, label: str, scope: str) -> None:
        super().__init__(
            f"Le libellé '{label}' existe déjà dans {scope}",
            code=ErrCode.LABEL_CONFLICT,
            ctx={"label": label, "scope": scope},
        )


class InvalidName(ChiffrageError):
    """Nom d'ouvrage, de bloc ou de lot vide une fois nettoyé."""

    def __init__(self, entity: str, value: Any = None) -> None:
        self.entity = entity
        super().__init__(
            f"Le nom de {entity} ne peut pas être vide",
            code=ErrCode.INVALID_NAME,
            ctx={"entity": entity, "value": value},
        )


class AmbiguousLabel(ChiffrageError):
    def __init__(self, label: str, level: int, candidates: list[int]) -> None:
        self.candidates = list(candidates)
        super().__init__(
            f"Le libellé '{label}' désigne plusieurs nœuds de niveau {level}",
            code=ErrCode.AMBIGUOUS_LABEL,
            ctx={"label": label, "level": level, "candidates": self.candidates},
        )


class ConcurrentCreateRace(ChiffrageError):
    """Signal interne : l'insertion a perdu face à une transaction concurrente."""

    def __init__(self, table: str, ctx: Mapping[str, Any] | None = None) -> None:
        super().__init__(
            f"Insertion concurrente sur {table}",
            code=ErrCode.CONCURRENT_CREATE_RACE,
            ctx={"table": table, **dict(ctx or {})},
        )


class AggregateRecomputeFailed(ChiffrageError):
    def __init__(self, id_projet: int, reason: str) -> None:
        super().__init__(
            f"Recalcul du prix de vente du projet {id_projet} en échec: {reason}",
            code=ErrCode.AGGREGATE_RECOMPUTE_FAILED,
            ctx={"id_projet": id_projet},
        )
