# studyquiz/config.py
import os
from dotenv import load_dotenv

# read .env if present, but don't clobber the real environment
load_dotenv(override=False)

GEMINI_API_KEY = (os.getenv("GEMINI_API_KEY") or "").strip() or None
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta").rstrip("/")

RESULTS_PATH = os.getenv("STUDYQUIZ_RESULTS_PATH") or None
LOG_LEVEL = os.getenv("STUDYQUIZ_LOG_LEVEL", "INFO").upper()

# request defaults
DEFAULT_QUIZ_QUESTIONS = 5
DEFAULT_EXAM_QUESTIONS = 20
