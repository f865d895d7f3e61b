"""
Main Entry Module

Runs the application with uvicorn.

Author: Ledger Sync Development Team
"""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "ledgersync.app:app",
        host=os.getenv("LEDGERSYNC_HOST", "0.0.0.0"),
        port=int(os.getenv("LEDGERSYNC_PORT", "8000")),
        log_level="info"
    )
