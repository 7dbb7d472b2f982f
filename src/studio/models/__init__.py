"""ORM models package -- re-exports all models and the Base class."""

from studio.models.base import Base
from studio.models.account import Account
from studio.models.content import SavedArtifact, SiteConfig, SupportMessage

__all__ = [
    "Base",
    "Account",
    "SavedArtifact",
    "SupportMessage",
    "SiteConfig",
]
