from __future__ import annotations

import time

from fastapi import APIRouter

router = APIRouter(tags=["system"])


@router.get("/", summary="Health")
async def health() -> dict:
    return {"status": "ok", "ts": int(time.time() * 1000)}
