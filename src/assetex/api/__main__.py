# src/assetex/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from assetex.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so ASSETEX_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from assetex.api.app import create_app
    from assetex.api.structured_logging import configure_structured_logging
    from assetex.runtime.market_config import apply_market_config_to_env, load_market_config

    # A config file, when given, is the source of truth for the executor boot.
    if os.getenv("ASSETEX_MARKET_CONFIG_PATH"):
        cfg = load_market_config()
        apply_market_config_to_env(cfg)
        configure_structured_logging(cfg.log_level)
    else:
        configure_structured_logging()

    host = os.getenv("ASSETEX_API_HOST", "127.0.0.1")
    port = int(os.getenv("ASSETEX_API_PORT", "8080"))

    uvicorn.run(create_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
