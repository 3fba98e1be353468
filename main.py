#!/usr/bin/env python3
"""
quickcase

A FastAPI application and CLI that research a business topic with grounded
Gemini search and turn the findings into a polished "Quick Case" teaching
case with its teaching guide.

To start the server:
    python main.py serve

To generate a case from the command line:
    python main.py generate "Topic" --file notes.pdf
"""

import sys
from pathlib import Path

# add the project root to python path so we can import src.quickcase modules
sys.path.insert(0, str(Path(__file__).parent))

from src.quickcase.cli import app

# run the cli when this file is run
if __name__ == "__main__":
    app()
