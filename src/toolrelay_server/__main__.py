"""CLI entry point for toolrelay-server.

It can be invoked as `toolrelay-server` (via the script entry point) or
`python -m toolrelay_server`.
"""

import argparse
import logging
import sys

import uvicorn

from toolrelay_server import __version__, create_app
from toolrelay_server.config import ToolRelaySettings


def main() -> None:
    """Parse command-line arguments and start uvicorn with the FastAPI app."""
    parser = argparse.ArgumentParser(
        prog="toolrelay-server",
        description="Headless FastAPI server letting local Ollama models call tools",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"toolrelay-server {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via TOOLRELAY_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via TOOLRELAY_PORT)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via TOOLRELAY_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model used by chats without one (can be set via TOOLRELAY_DEFAULT_MODEL)",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for all data (default: ., can be set via TOOLRELAY_DATA_DIR)",
    )

    parser.add_argument(
        "--native-tools",
        action="store_true",
        default=None,
        help="Send tool definitions to Ollama for native tool calling",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via TOOLRELAY_LOG_LEVEL)",
    )

    args = parser.parse_args()

    # CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.model is not None:
        settings_kwargs["default_model"] = args.model
    if args.data_dir is not None:
        settings_kwargs["data_dir"] = args.data_dir
    if args.native_tools is not None:
        settings_kwargs["native_tool_calling"] = args.native_tools
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = ToolRelaySettings(**settings_kwargs)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    sys.exit(main())
