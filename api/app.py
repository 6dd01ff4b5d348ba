"""
api/app.py — FastAPI app instance + session middleware + static file serving
"""

import logging
import os
import threading
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from config import STATIC_DIR
from api.routes import router
import api.session as session
from exam_overlay.services.answer_service import AnswerService
from exam_overlay.services.identity import FirebaseIdentityProvider

SESSION_COOKIE = "overlay_session"

logger = logging.getLogger(__name__)


def create_app(answer_service=None, identity_provider=None, cleanup: bool = True) -> FastAPI:
    app = FastAPI(title="Exam Overlay", docs_url=None, redoc_url=None)
    app.state.answer_service = answer_service or AnswerService()
    app.state.identity_provider = identity_provider or FirebaseIdentityProvider()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Session middleware: read the session ID from the cookie, issue one if missing
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session(
                request.app.state.answer_service,
                request.app.state.identity_provider,
            )

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session.SESSION_TTL,
        )
        return response

    app.include_router(router)

    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    # Drop expired sessions every 5 minutes
    def _cleanup_loop():
        while True:
            time.sleep(300)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"Removed {removed} expired sessions")

    if cleanup:
        t = threading.Thread(target=_cleanup_loop, daemon=True)
        t.start()

    return app
