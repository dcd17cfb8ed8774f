#!/usr/bin/env python
"""Run the listing sync API under uvicorn."""
import os
import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    log_level = os.environ.get("LOG_LEVEL", "info").lower()

    print(f"Starting listing sync engine on port {port}")

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=port,
        log_level=log_level,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
