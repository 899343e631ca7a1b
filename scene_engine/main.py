"""
Scene Engine - Main Entry Point
Serves the HTTP API with uvicorn.
"""

import os

import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main() -> None:
    uvicorn.run(
        "scene_engine.api:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8001")),
        log_level=os.getenv("LOG_LEVEL", "info"),
    )


if __name__ == "__main__":
    main()
