"""
main.py — exam overlay launcher

Starts the API on a local port and opens it as a small app-mode browser
window. The window runs on a throwaway browser profile so closing it (the
panic shortcut included) ends the whole overlay.
"""

import logging
import os
import shutil
import socket
import subprocess
import sys
import tempfile
import threading
import time
import webbrowser
from typing import List, Optional

# Make BASE_DIR importable so `config`, `api` and `exam_overlay` resolve.
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

import uvicorn

import config as settings
from api.app import create_app
from exam_overlay.services.answer_service import AnswerService
from exam_overlay.services.config_translator import Tier
from exam_overlay.services.identity import FirebaseIdentityProvider

logger = logging.getLogger("overlay")

BROWSER_CANDIDATES = [
    r"C:\Program Files\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files\Microsoft\Edge\Application\msedge.exe",
    r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium",
]


def configure_logging() -> None:
    # Windowed (frozen) builds have no console streams
    if sys.stdout is None:
        sys.stdout = open(os.devnull, "w")
    if sys.stderr is None:
        sys.stderr = open(os.devnull, "w")

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    try:
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))
    except PermissionError:
        pass  # log file held by another instance: console only

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def resolve_port(host: str = settings.DEFAULT_HOST, preferred: int = settings.DEFAULT_PORT) -> int:
    """Configured port, or a free one picked by the OS when 0."""
    if preferred:
        return preferred
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def build_app():
    """Wire the generation and identity backends from config into the API."""
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; every answer will be 'Error.'")
    if not settings.FIREBASE_API_KEY:
        logger.warning("FIREBASE_API_KEY is not set; sign-in will fail.")

    answer_service = AnswerService(
        api_key=settings.OPENAI_API_KEY,
        models={Tier.FAST: settings.FAST_MODEL, Tier.VISION: settings.VISION_MODEL},
    )
    identity_provider = FirebaseIdentityProvider(api_key=settings.FIREBASE_API_KEY)
    return create_app(answer_service=answer_service, identity_provider=identity_provider)


def browser_command(url: str, profile_dir: str, candidates: Optional[List[str]] = None) -> Optional[List[str]]:
    """Command line for the overlay window, or None when no Chromium browser is installed."""
    for path in candidates if candidates is not None else BROWSER_CANDIDATES:
        if os.path.exists(path):
            return [
                path,
                f"--app={url}",
                f"--window-size={settings.WINDOW_SIZE}",
                f"--window-position={settings.WINDOW_POSITION}",
                f"--user-data-dir={profile_dir}",
                "--incognito",
                "--no-first-run",
                "--no-default-browser-check",
            ]
    return None


def start_server(app, port: int) -> uvicorn.Server:
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.DEFAULT_HOST, port=port, log_level="warning")
    )
    threading.Thread(target=server.run, name="uvicorn", daemon=True).start()
    return server


def wait_until_started(server: uvicorn.Server, timeout: float = 15.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if server.started:
            return True
        time.sleep(0.1)
    return False


def run() -> int:
    configure_logging()
    logger.info("=== Exam Overlay started ===")
    os.chdir(settings.BASE_DIR)

    port = resolve_port()
    server = start_server(build_app(), port)
    if not wait_until_started(server):
        logger.error(f"Server did not start on port {port}. Is another overlay still running?")
        return 1

    url = f"http://{settings.DEFAULT_HOST}:{port}"
    profile_dir = tempfile.mkdtemp(prefix="exam-overlay-")
    command = browser_command(url, profile_dir)
    try:
        if command is None:
            # No app-mode browser: the overlay lives until Ctrl+C
            logger.info(f"No Chromium browser found, opening {url} in the default browser.")
            webbrowser.open(url)
            while True:
                time.sleep(10)
        else:
            logger.info(f"Opening overlay window: {command[0]}")
            window = subprocess.Popen(command)
            window.wait()
            logger.info("Overlay window closed.")
    except KeyboardInterrupt:
        logger.info("Stopped by user.")
    finally:
        server.should_exit = True
        shutil.rmtree(profile_dir, ignore_errors=True)
    return 0


if __name__ == "__main__":
    sys.exit(run())
