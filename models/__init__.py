"""Data models for the HeysMe backend."""

from models.config_models import Config, CredentialsConfig
from models.data_models import (
    AgentResponse,
    CodingFile,
    CodingSession,
    InviteCode,
    InviteCodePermissions,
    InviteCodeStatus,
    InviteCodeUsage,
    User,
    UserPage,
)

__all__ = [
    "Config",
    "CredentialsConfig",
    "AgentResponse",
    "CodingFile",
    "CodingSession",
    "InviteCode",
    "InviteCodePermissions",
    "InviteCodeStatus",
    "InviteCodeUsage",
    "User",
    "UserPage",
]
