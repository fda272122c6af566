"""Configuration models for validation using Pydantic."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


SUPPORTED_LLM_PROVIDERS = ["anthropic", "openai", "groq"]


class CredentialsConfig(BaseModel):
    """API credentials loaded from environment variables."""

    # Supabase (required)
    supabase_url: str = Field(..., min_length=1, description="Supabase project URL")
    supabase_key: str = Field(..., min_length=1, description="Supabase service role key")
    database_url: Optional[str] = Field(None, description="PostgreSQL database URL (optional, for schema setup)")

    # Clerk authentication
    clerk_secret_key: Optional[str] = Field(None, description="Clerk secret key")
    clerk_jwks_url: Optional[str] = Field(None, description="Clerk JWKS endpoint used to verify session tokens")
    clerk_issuer: Optional[str] = Field(None, description="Expected 'iss' claim of Clerk session tokens")
    clerk_webhook_secret: Optional[str] = Field(None, description="Svix signing secret for Clerk webhooks")

    # LLM configuration
    anthropic_api_key: Optional[str] = Field(None, description="Anthropic API key for Claude")
    openai_api_key: Optional[str] = Field(None, description="OpenAI API key")
    groq_api_key: Optional[str] = Field(None, description="Groq API key")
    llm_provider: str = Field(default="anthropic", description="LLM provider: 'anthropic', 'openai' or 'groq'")
    llm_model: str = Field(default="claude-sonnet-4-20250514", description="LLM model name")

    # Third-party services used by the agents
    github_token: Optional[str] = Field(None, description="GitHub token (optional, raises API rate limits)")
    e2b_api_key: Optional[str] = Field(None, description="E2B sandbox API key")
    vercel_token: Optional[str] = Field(None, description="Vercel API token")
    vercel_team_id: Optional[str] = Field(None, description="Vercel team id")
    vercel_team_slug: Optional[str] = Field(None, description="Vercel team slug")
    enable_vercel_preview: bool = Field(default=False, description="Enable Vercel preview deployments")

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate Supabase URL format."""
        if not v or v == "https://your-project.supabase.co":
            raise ValueError("Supabase URL must be set in .env file")
        if not v.startswith("https://"):
            raise ValueError("Supabase URL must start with https://")
        return v

    @field_validator("supabase_key")
    @classmethod
    def validate_supabase_key(cls, v: str) -> str:
        """Validate Supabase key is set."""
        if not v or v == "your_supabase_service_role_key_here":
            raise ValueError("Supabase key must be set in .env file")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in SUPPORTED_LLM_PROVIDERS:
            raise ValueError(f"LLM provider must be one of: {', '.join(SUPPORTED_LLM_PROVIDERS)}")
        return v_lower

    def llm_api_key(self) -> Optional[str]:
        """Return the API key matching the selected LLM provider."""
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "groq": self.groq_api_key,
        }[self.llm_provider]


class Config(BaseModel):
    """Application configuration."""

    credentials: CredentialsConfig
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(default="development", description="'development' or 'production'")
    require_invite_code: bool = Field(default=True, description="Reject sign-ups without an invite code")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("development", "production"):
            raise ValueError("Environment must be 'development' or 'production'")
        return v_lower

    @property
    def is_development(self) -> bool:
        return self.environment == "development"
