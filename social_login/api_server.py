#!/usr/bin/env python3
"""
API Server entry point for Social Login.

This script starts the FastAPI server using uvicorn.
"""

import argparse

import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def run(host: str = "127.0.0.1", port: int = 8080, reload: bool = False, log_level: str = "info") -> None:
    print(f"Starting Social Login API server on {host}:{port}")
    print(f"Login gateway: http://{host}:{port}/opauth/")

    uvicorn.run("social_login.api.main:create_app", factory=True, host=host, port=port, reload=reload, log_level=log_level)


def main():
    parser = argparse.ArgumentParser(description="Social Login API Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind the server to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8080, help="Port to bind the server to (default: 8080)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level (default: info)",
    )

    args = parser.parse_args()
    run(args.host, args.port, args.reload, args.log_level)


if __name__ == "__main__":
    main()
