"""
CLI entry point for the Studio Agent web server.

Run:  python -m web [--port 8765] [--data-dir ~/.studio-agent]
"""

import argparse
import logging
import os

import web.state as _state
from config import app_config, get_credentials_info, get_model_name, model_config


def _setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    fmt = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    # Our loggers only; uvicorn's log_level covers its own
    for name in ("agent", "tools", "web", "scene", "conversations", "bedrock_service"):
        log = logging.getLogger(name)
        log.setLevel(level)
        if not log.handlers:
            h = logging.StreamHandler()
            h.setLevel(level)
            h.setFormatter(fmt)
            log.addHandler(h)


def main():
    import uvicorn

    parser = argparse.ArgumentParser(description="Studio Agent web server")
    parser.add_argument("--port", type=int, default=8765, help="Server port (default: 8765)")
    parser.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
    parser.add_argument("--data-dir", default=app_config.data_dir, help="Directory for conversation storage")
    parser.add_argument("--log-level", default=app_config.log_level, help="Log level (default: from LOG_LEVEL)")
    args = parser.parse_args()

    _state._data_dir = os.path.abspath(os.path.expanduser(args.data_dir))
    if not os.path.isdir(_state._data_dir):
        os.makedirs(_state._data_dir, exist_ok=True)

    _setup_logging("DEBUG" if app_config.debug_mode else args.log_level)

    print(f"\n  {app_config.title}")
    print(f"  http://{args.host}:{args.port}")
    print(f"  Data directory: {_state._data_dir}")
    print(f"  Conversation model: {get_model_name(model_config.conversation_model_id)}")
    print(f"  Background model: {get_model_name(model_config.background_model_id)}")
    print(f"  {get_credentials_info()}\n")

    from web import app
    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
