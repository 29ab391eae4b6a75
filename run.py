#!/usr/bin/env python3
"""
Loan Management System Entry Point

Starts the FastAPI server using the LOANS_* environment configuration.
"""

import sys

from loan_management.api import run_server
from loan_management.config import get_config
from loan_management.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    setup_logging(level=config.log_level, log_format=config.log_format)

    print(f"Starting Loan Management System on http://{config.api_host}:{config.api_port}")
    print(f"Documentation at: http://{config.api_host}:{config.api_port}/docs")

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down Loan Management System...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
