"""
Scroll Capture - FastAPI Server

Hosts a headless browser page and captures full-length screenshots of it
by scrolling and stitching viewport snapshots.
"""

import logging
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from playwright.async_api import Browser, Playwright, async_playwright

from adapters.file_sink import FileCaptureSink
from adapters.playwright_page import (
    PlaywrightFrameGrabber,
    PlaywrightStabilizer,
    PlaywrightViewportController,
)
from capture_config import CaptureConfig
from capture_orchestrator import CaptureOrchestrator
from capture_session import CaptureSessionTracker
from routes import RouteDependencies, get_deps, set_deps
from routes import capture as capture_routes
from routes import health as health_routes

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)

# Browser viewport (loaded from environment)
VIEWPORT_WIDTH = int(os.getenv("CAPTURE_VIEWPORT_WIDTH", "1280"))
VIEWPORT_HEIGHT = int(os.getenv("CAPTURE_VIEWPORT_HEIGHT", "800"))

app = FastAPI(title="Scroll Capture", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(capture_routes.router)
app.include_router(health_routes.router)

playwright: Optional[Playwright] = None
browser: Optional[Browser] = None


@app.on_event("startup")
async def startup_event():
    """Launch the browser page and wire the capture pipeline"""
    global playwright, browser

    config = CaptureConfig.from_env()
    logger.info("[Server] Starting Scroll Capture v0.1.0")
    logger.info(f"[Server] Output directory: {config.output_dir}")

    playwright = await async_playwright().start()
    browser = await playwright.chromium.launch(headless=True)
    page = await browser.new_page(viewport={"width": VIEWPORT_WIDTH, "height": VIEWPORT_HEIGHT})
    logger.info(f"[Server] ✅ Browser page ready ({VIEWPORT_WIDTH}x{VIEWPORT_HEIGHT})")

    tracker = CaptureSessionTracker(retention_seconds=config.status_retention)
    orchestrator = CaptureOrchestrator(
        controller=PlaywrightViewportController(page),
        grabber=PlaywrightFrameGrabber(page),
        sink=FileCaptureSink(config.output_dir),
        tracker=tracker,
        config=config,
        stabilizer=PlaywrightStabilizer(page),
    )
    logger.info("[Server] ✅ Capture pipeline initialized")

    set_deps(RouteDependencies(tracker=tracker, orchestrator=orchestrator, page=page))


@app.on_event("shutdown")
async def shutdown_event():
    """Stop any running capture and close the browser"""
    global playwright, browser

    deps = get_deps()
    if deps.orchestrator is not None:
        await deps.orchestrator.cancel()

    if browser is not None:
        await browser.close()
        browser = None
    if playwright is not None:
        await playwright.stop()
        playwright = None
    logger.info("[Server] Browser closed")


if __name__ == "__main__":
    # Default to port 3000, can be overridden by environment variable
    port = int(os.getenv("PORT", 3000))

    logger.info(f"Starting Scroll Capture v0.1.0")
    logger.info(f"API: http://localhost:{port}/api")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
