"""
Minimal projections of the profile tables (owned by the profile CRUD screens).
Only the columns needed to resolve an Actor are mapped.
"""
from sqlalchemy import Column, String

from app.db.base import Base


class ProviderProfile(Base):
    __tablename__ = "provider_profiles"

    id = Column(String, primary_key=True)
    user_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)


class ClientProfile(Base):
    __tablename__ = "client_profiles"

    id = Column(String, primary_key=True)
    user_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
