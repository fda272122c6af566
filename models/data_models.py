"""Data models for HeysMe rows and agent responses.

These mirror the Supabase tables. Rows coming back from the store may carry
columns we do not model, so every row model allows extra fields.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_MODEL = "claude-sonnet-4-20250514"


class Row(BaseModel):
    """Base for table rows; unknown columns are kept."""

    model_config = ConfigDict(extra="allow")


class CamelModel(BaseModel):
    """Request body whose fields accept either their camelCase alias or their own name."""

    model_config = ConfigDict(populate_by_name=True)


class InviteCodePermissions(BaseModel):
    """What a user receives when registering with an invite code."""

    plan: Literal["free", "pro", "admin"] = "free"
    features: list[str] = Field(default_factory=lambda: ["chat", "page_creation"])
    projects: list[str] = Field(default_factory=lambda: ["HeysMe"])
    special_access: bool = False
    admin_access: bool = False


class InviteCodeStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    USED_UP = "used_up"
    DISABLED = "disabled"


class InviteCode(Row):
    id: Optional[str] = None
    code: str
    name: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    max_uses: Optional[int] = None  # None means unlimited
    current_uses: int = 0
    expires_at: Optional[datetime] = None
    permissions: InviteCodePermissions = Field(default_factory=InviteCodePermissions)
    is_active: bool = True
    batch_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class InviteCodeUsage(Row):
    id: Optional[str] = None
    invite_code_id: str
    code: Optional[str] = None
    user_id: Optional[str] = None  # filled in once the Clerk user exists
    email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    used_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class User(Row):
    """User row keyed by the Clerk user id."""

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    plan: str = "free"
    projects: list[str] = Field(default_factory=lambda: ["HeysMe"])
    default_model: str = DEFAULT_MODEL
    metadata: dict[str, Any] = Field(default_factory=dict)
    deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserPage(Row):
    id: str
    user_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    industry_tags: list[str] = Field(default_factory=list)
    location: Optional[str] = None
    content: Optional[Any] = None
    is_shared_to_plaza: bool = False
    view_count: int = 0
    favorite_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CodingSession(Row):
    id: Optional[str] = None
    user_id: str
    session_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: Literal["active", "completed", "archived"] = "active"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CodingFile(Row):
    id: Optional[str] = None
    session_id: str
    path: str
    content: str = ""
    language: str = "text"
    size: int = 0
    checksum: Optional[str] = None
    version: int = 1
    status: Literal["created", "modified", "deleted", "synced"] = "created"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ImmediateDisplay(BaseModel):
    reply: str
    agent_name: str
    timestamp: str


class SystemState(BaseModel):
    intent: str
    done: bool = False
    progress: Optional[int] = None
    current_stage: Optional[str] = None
    next_agent: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class AgentResponse(BaseModel):
    """One frame of agent output, streamed to the client as an SSE event."""

    immediate_display: ImmediateDisplay
    system_state: SystemState

    @property
    def done(self) -> bool:
        return self.system_state.done
