#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Creates missing tables in the configured database, then serves the API
with auto-reload. For local development only.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn

from bookdesk.init_db import init_db

if __name__ == "__main__":
    init_db()
    print("🌐 Access at: http://localhost:8000")
    print("📚 API Docs: http://localhost:8000/docs")

    uvicorn.run(
        "bookdesk.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        reload_delay=0.5,
        log_level="info",
        timeout_graceful_shutdown=5,
    )
