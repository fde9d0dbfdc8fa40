from __future__ import annotations

from trackfinder.factory import create_app

# uvicorn trackfinder.main:app --app-dir backend
app = create_app()
