"""Configuration loader that reads from .env and validates with Pydantic."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv
from pydantic import ValidationError

from models.config_models import Config, CredentialsConfig


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment ('true'/'1'/'yes' are true)."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Reads from .env file in the project root and validates all required
    credentials and settings using Pydantic models.

    Returns:
        Config: Validated configuration object

    Raises:
        SystemExit: If configuration is invalid or missing required fields
    """
    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    cors_origins = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]

    try:
        config = Config(
            credentials=CredentialsConfig(
                supabase_url=os.getenv("SUPABASE_URL", ""),
                supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY", ""),
                database_url=os.getenv("DATABASE_URL"),
                clerk_secret_key=os.getenv("CLERK_SECRET_KEY"),
                clerk_jwks_url=os.getenv("CLERK_JWKS_URL"),
                clerk_issuer=os.getenv("CLERK_ISSUER"),
                clerk_webhook_secret=os.getenv("CLERK_WEBHOOK_SECRET"),
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
                openai_api_key=os.getenv("OPENAI_API_KEY"),
                groq_api_key=os.getenv("GROQ_API_KEY"),
                llm_provider=os.getenv("LLM_PROVIDER", "anthropic"),
                llm_model=os.getenv("LLM_MODEL", "claude-sonnet-4-20250514"),
                github_token=os.getenv("GITHUB_TOKEN"),
                e2b_api_key=os.getenv("E2B_API_KEY"),
                vercel_token=os.getenv("VERCEL_TOKEN"),
                vercel_team_id=os.getenv("VERCEL_TEAM_ID"),
                vercel_team_slug=os.getenv("VERCEL_TEAM_SLUG"),
                enable_vercel_preview=_env_flag("ENABLE_VERCEL_PREVIEW", False),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            environment=os.getenv("ENVIRONMENT", "development"),
            # Only an explicit 'false' turns the invite gate off
            require_invite_code=os.getenv("REQUIRE_INVITE_CODE", "true").strip().lower() != "false",
            cors_origins=cors_origins,
        )

        return config

    except ValidationError as e:
        print("❌ Configuration validation failed:", file=sys.stderr)
        print("\nPlease check your .env file. Missing or invalid fields:", file=sys.stderr)

        for error in e.errors():
            field_path = " → ".join(str(x) for x in error["loc"])
            message = error["msg"]
            print(f"  • {field_path}: {message}", file=sys.stderr)

        print("\nHint: Copy .env.example to .env and fill in your credentials.", file=sys.stderr)
        sys.exit(1)
