"""
Web app manifest.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

router = APIRouter()

MANIFEST: dict[str, Any] = {
    "name": "Supplai - Voice Ordering",
    "short_name": "Supplai",
    "description": "Order from your suppliers by voice",
    "start_url": "/",
    "display": "standalone",
    "background_color": "#ffffff",
    "theme_color": "#8B5CF6",
    "orientation": "portrait-primary",
    "categories": ["business", "productivity"],
    "icons": [
        {
            "src": "/icons/icon-192x192.png",
            "sizes": "192x192",
            "type": "image/png",
            "purpose": "any maskable",
        },
        {
            "src": "/icons/icon-512x512.png",
            "sizes": "512x512",
            "type": "image/png",
            "purpose": "any maskable",
        },
    ],
}


@router.get("/manifest.webmanifest", include_in_schema=False)
async def manifest() -> JSONResponse:
    return JSONResponse(content=MANIFEST, media_type="application/manifest+json")
