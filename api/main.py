"""
EcoFlow - Vercel Serverless Entry Point
Exposes the FastAPI app: reports, route planner, collection verification,
hotspots and leaderboards
"""

import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.api.main import app

# Vercel serverless handler
handler = app
