#!/usr/bin/env python3
"""
Run the HeysMe API with uvicorn.

    python backend/server.py                      # 127.0.0.1:8000, auto-reload
    python backend/server.py --host 0.0.0.0 --port 8080 --no-reload

The app is built by backend.app:create_app, so the equivalent uvicorn call is

    uvicorn backend.app:create_app --factory --reload

Sessions live in process memory: run a single worker, or every worker will
see its own set of sessions.
"""

import argparse


def run_server(host: str = "127.0.0.1", port: int = 8000, reload: bool = True, log_level: str = "info"):
    """Serve the app factory; blocks until the server stops."""
    base = f"http://{host}:{port}"
    print("=" * 80)
    print(f"HeysMe API on {base}  (docs: {base}/docs, reload: {'on' if reload else 'off'})")
    print("Ctrl+C stops the server")
    print("=" * 80)

    import uvicorn
    uvicorn.run(
        "backend.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


def main():
    parser = argparse.ArgumentParser(description="Run the HeysMe API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload (production)")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="uvicorn log level (default: info)",
    )
    args = parser.parse_args()
    run_server(args.host, args.port, reload=not args.no_reload, log_level=args.log_level)


if __name__ == "__main__":
    main()
