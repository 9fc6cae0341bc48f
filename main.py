#!/usr/bin/env python3
"""
Entry point for the otpguard service.
"""

import os

import uvicorn

from otpguard.config import LOG_LEVEL

if __name__ == "__main__":
    uvicorn.run(
        "otpguard.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
        log_level=LOG_LEVEL.lower(),
    )
