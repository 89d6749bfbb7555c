"""
Backend settings, read from the environment at import time.
"""

import os

HOST = os.environ.get("DIAGRAMFLOW_HOST", "127.0.0.1")
PORT = int(os.environ.get("DIAGRAMFLOW_PORT", "8765"))
LOG_LEVEL = os.environ.get("DIAGRAMFLOW_LOG_LEVEL", "INFO").upper()
HISTORY_MAX = int(os.environ.get("DIAGRAMFLOW_HISTORY_MAX", "50"))

# CORS for local frontend development (comma-separated)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "DIAGRAMFLOW_CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]
