# backend/main.py
from __future__ import annotations

import uvicorn

from chat_relay.core.config import get_settings
from chat_relay.main import create_app

settings = get_settings()
app = create_app(settings)

if __name__ == "__main__":              # pragma: no cover
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=False)
