"""
Entry point for the adaptive quiz engine CLI.

Run with:
    python main.py --help
    python main.py take --user 1 --year 4 --subject science --topic Plants
"""
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from src.cli.quiz_cli import main

if __name__ == "__main__":
    main()
