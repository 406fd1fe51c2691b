#!/usr/bin/env python3
"""
deckrefine

A FastAPI application that scores presentation decks and refines them
round by round with a local Ollama model until they reach a target quality.

To start the server:
    python main.py
"""

import sys
from pathlib import Path

# add src to python path so the deckrefine package can be imported
sys.path.insert(0, str(Path(__file__).parent / "src"))

# start the fastapi server when this file is run
if __name__ == "__main__":
    import uvicorn
    # run the api app on port 8000 with auto-reload for development
    uvicorn.run("deckrefine.api:app", host="0.0.0.0", port=8000, reload=True)
