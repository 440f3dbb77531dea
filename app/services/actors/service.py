"""
ActorService: which side of the marketplace a user id belongs to.
Provider wins when a user has both profiles.
"""
from typing import Literal

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.models.profile import ClientProfile, ProviderProfile

ActorKind = Literal["provider", "client"]


class Actor(BaseModel):
    kind: ActorKind
    id: str
    name: str

    model_config = {"frozen": True}


class ActorService:
    def __init__(self, db: Session):
        self.db = db

    def resolve(self, user_id: str) -> Actor | None:
        return self.resolve_many([user_id]).get(user_id)

    def resolve_many(self, user_ids: list[str]) -> dict[str, Actor]:
        """One query per table; ids without a profile are absent from the result."""
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}

        actors: dict[str, Actor] = {}
        for row in self.db.query(ClientProfile).filter(ClientProfile.user_id.in_(ids)).all():
            actors[row.user_id] = Actor(kind="client", id=row.id, name=row.name)
        for row in self.db.query(ProviderProfile).filter(ProviderProfile.user_id.in_(ids)).all():
            actors[row.user_id] = Actor(kind="provider", id=row.id, name=row.name)
        return actors
