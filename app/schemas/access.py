from pydantic import BaseModel


class ContactAccessOut(BaseModel):
    provider_id: str
    unlocked: bool


class SubscriptionCancelOut(BaseModel):
    cancelled: bool


class UnlockedProvidersOut(BaseModel):
    provider_ids: list[str]
