#!/usr/bin/env python3
"""
Bank Ledger Entry Point

Starts the FastAPI server with a SQLite-backed ledger.
"""

import sys

import uvicorn

from bank_ledger.api import LedgerSystem, create_app
from bank_ledger.config import get_config
from bank_ledger.logging_config import setup_logging


def main() -> int:
    config = get_config()
    logger = setup_logging(config.log_level, log_file=config.log_file)

    system = LedgerSystem(config)
    logger.info(
        "Starting bank ledger API",
        extra={"extra": {"host": config.api_host, "port": config.api_port,
                         "database": config.database_path}}
    )

    try:
        uvicorn.run(create_app(system), host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down bank ledger API")
    finally:
        system.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
