from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class EvenementRead(BaseModel):
    id_evenement: int
    action: str
    id_projet: Optional[int]
    id_projet_article: Optional[int]
    champs: dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
