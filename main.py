#!/usr/bin/env python3
"""
HeysMe - Main CLI entrypoint

Runs the API server and a few operational tasks against the configured
Supabase project.

Usage:
    python main.py serve                                   # API on 127.0.0.1:8000 with reload
    python main.py serve --host 0.0.0.0 --port 8080 --no-reload
    python main.py generate-invites --count 10 --prefix BETA --max-uses 5
    python main.py invite-stats
    python main.py analyze-github octocat
"""

import argparse
import json
import sys
from typing import Optional

from utils.config_loader import load_config
from utils.logger import setup_logger
from storage.supabase_client import SupabaseClient

logger = setup_logger(name=__name__)


def generate_invites(
    count: int = 1,
    prefix: str = "",
    max_uses: Optional[int] = 1,
    expires_at: Optional[str] = None,
    name: Optional[str] = None,
    plan: str = "free",
    created_by: str = "cli",
    supabase: SupabaseClient = None,
) -> bool:
    """
    Generate invite codes and print them one per line.

    Args:
        count: Number of codes to create
        prefix: Uppercase prefix for every code (e.g. "BETA")
        max_uses: Uses per code, 0 for unlimited
        expires_at: Optional ISO timestamp
        name: Optional label
        plan: Plan granted by the codes (free, pro, admin)
        created_by: Recorded as the creator
        supabase: SupabaseClient instance (optional, will create if not provided)

    Returns:
        bool: True if successful, False otherwise
    """
    from backend.errors import ApiError
    from services.invite_codes import InviteCodeService

    if supabase is None:
        config = load_config()
        supabase = SupabaseClient(config.credentials.supabase_url, config.credentials.supabase_key)

    logger.info("=" * 80)
    logger.info(f"GENERATING {count} INVITE CODE(S)")
    logger.info("=" * 80)

    try:
        codes = InviteCodeService(supabase).generate(
            created_by=created_by,
            name=name,
            max_uses=max_uses or None,
            expires_at=expires_at,
            permissions={"plan": plan, "admin_access": plan == "admin"},
            count=count,
            code_prefix=prefix.upper(),
        )
    except ApiError as e:
        logger.error(f"Failed to generate invite codes: {e.message}")
        return False
    except Exception as e:
        logger.error(f"Failed to generate invite codes: {e}")
        return False

    for row in codes:
        print(row["code"])
    logger.info(f"Generated {len(codes)} code(s)")
    return True


def show_invite_stats(supabase: SupabaseClient = None) -> bool:
    """Log invite code counts by status."""
    from services.invite_codes import InviteCodeService

    if supabase is None:
        config = load_config()
        supabase = SupabaseClient(config.credentials.supabase_url, config.credentials.supabase_key)

    try:
        stats = InviteCodeService(supabase).stats()
    except Exception as e:
        logger.error(f"Could not fetch invite code stats: {e}")
        return False

    logger.info("Invite code stats:")
    logger.info(f"  Total codes: {stats['total_codes']}")
    logger.info(f"  Active: {stats['active_codes']}")
    logger.info(f"  Expired: {stats['expired_codes']}")
    logger.info(f"  Used up: {stats['used_up_codes']}")
    logger.info(f"  Disabled: {stats['disabled_codes']}")
    logger.info(f"  Total usages: {stats['total_usages']}")
    return True


def analyze_github(username: str, include_repos: bool = True, token: Optional[str] = None) -> bool:
    """Print the GitHub analysis the info collection agent would use."""
    import requests

    from integrations.github import GitHubClient

    try:
        result = GitHubClient(token).analyze_user(username, include_repos=include_repos)
    except ValueError as e:
        logger.error(str(e))
        return False
    except requests.RequestException as e:
        logger.error(f"GitHub request failed: {e}")
        return False

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return True


def main():
    """Main CLI entrypoint with argument parsing."""
    parser = argparse.ArgumentParser(
        description="HeysMe backend - API server and operational tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the API server with auto-reload
  python main.py serve

  # Create 20 single-use beta codes
  python main.py generate-invites --count 20 --prefix BETA

  # Create one unlimited pro code that expires at the end of the year
  python main.py generate-invites --max-uses 0 --plan pro --expires-at 2026-12-31T23:59:59Z

  # Inspect a GitHub profile
  python main.py analyze-github https://github.com/octocat
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the API server on (default: 8000)"
    )
    serve_parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload (use for production)"
    )

    invites_parser = subparsers.add_parser("generate-invites", help="Generate invite codes")
    invites_parser.add_argument("--count", type=int, default=1, help="Number of codes (default: 1)")
    invites_parser.add_argument("--prefix", type=str, default="", help="Code prefix, letters and digits only")
    invites_parser.add_argument(
        "--max-uses",
        type=int,
        default=1,
        help="Uses per code, 0 for unlimited (default: 1)"
    )
    invites_parser.add_argument("--expires-at", type=str, default=None, help="ISO expiry timestamp")
    invites_parser.add_argument("--name", type=str, default=None, help="Label for the codes")
    invites_parser.add_argument(
        "--plan",
        choices=["free", "pro", "admin"],
        default="free",
        help="Plan granted on sign-up (default: free)"
    )
    invites_parser.add_argument("--created-by", type=str, default="cli", help="Creator recorded on the codes")

    subparsers.add_parser("invite-stats", help="Show invite code statistics")

    github_parser = subparsers.add_parser("analyze-github", help="Analyze a GitHub user")
    github_parser.add_argument("username", help="GitHub username or profile URL")
    github_parser.add_argument("--no-repos", action="store_true", help="Skip repository analysis")

    args = parser.parse_args()

    # Show help if no command provided
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        from backend.server import run_server
        run_server(args.host, args.port, reload=not args.no_reload)
        sys.exit(0)

    if args.command == "analyze-github":
        # Works without Supabase; the token only raises rate limits
        import os
        from dotenv import load_dotenv
        load_dotenv()
        success = analyze_github(args.username, include_repos=not args.no_repos, token=os.getenv("GITHUB_TOKEN"))
        sys.exit(0 if success else 1)

    try:
        config = load_config()
        supabase = SupabaseClient(config.credentials.supabase_url, config.credentials.supabase_key)
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        sys.exit(1)

    if args.command == "generate-invites":
        if args.count < 1 or args.count > 100:
            logger.error("--count must be between 1 and 100")
            sys.exit(1)
        if args.prefix and not args.prefix.isalnum():
            logger.error("--prefix may only contain letters and digits")
            sys.exit(1)
        success = generate_invites(
            count=args.count,
            prefix=args.prefix,
            max_uses=args.max_uses,
            expires_at=args.expires_at,
            name=args.name,
            plan=args.plan,
            created_by=args.created_by,
            supabase=supabase,
        )
    else:
        success = show_invite_stats(supabase)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
