import os
import sys

# Base directory
IF_FROZEN = getattr(sys, "frozen", False)
BASE_DIR = sys._MEIPASS if IF_FROZEN else os.path.dirname(os.path.abspath(__file__))

# Paths
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")

# Server
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "0"))      # 0 = pick a free port
WINDOW_SIZE = os.getenv("OVERLAY_WINDOW_SIZE", "420,640")
WINDOW_POSITION = os.getenv("OVERLAY_WINDOW_POSITION", "40,40")
SESSION_TTL = 3600  # 1 hour

# OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
FAST_MODEL = os.getenv("FAST_MODEL", "gpt-4o-mini")      # text-only questions
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o")       # questions with pasted images

# Firebase identity
FIREBASE_API_KEY = os.getenv("FIREBASE_API_KEY", "")
IDENTITY_TIMEOUT = 10.0

# Attachment staging limits
MAX_STAGED_ATTACHMENTS = 8
MAX_STAGED_BYTES = 20 * 1024 * 1024    # decoded total
