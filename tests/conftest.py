"""Pytest configuration."""
import os
import sys
from pathlib import Path

# Ensure project root is importable regardless of where pytest is invoked
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

# Tests always run against the CSV / in-memory backends
os.environ["DATABASE_URL"] = "none"
os.environ["REDIS_URL"] = "none"
