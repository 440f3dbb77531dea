from app.services.grants.service import GrantApplier

__all__ = ["GrantApplier"]
