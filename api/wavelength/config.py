import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/wavelength")

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Fernet key (urlsafe base64, 32 bytes) used for chat message bodies.
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")

CHAT_PAGE_SIZE = int(os.getenv("CHAT_PAGE_SIZE", "10"))
CHAT_MAX_PAGE_SIZE = int(os.getenv("CHAT_MAX_PAGE_SIZE", "50"))
CHAT_MAX_MESSAGE_LENGTH = int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", "2000"))
CHAT_MAX_ROOM_NAME_LENGTH = int(os.getenv("CHAT_MAX_ROOM_NAME_LENGTH", "80"))

MATCHES_PAGE_SIZE = int(os.getenv("MATCHES_PAGE_SIZE", "20"))
MATCHES_MAX_PAGE_SIZE = int(os.getenv("MATCHES_MAX_PAGE_SIZE", "100"))

QUIZ_MAX_QUESTIONS = int(os.getenv("QUIZ_MAX_QUESTIONS", "20"))
QUIZ_MAX_OPTIONS = int(os.getenv("QUIZ_MAX_OPTIONS", "6"))
QUIZ_MAX_QUESTION_SCORE = int(os.getenv("QUIZ_MAX_QUESTION_SCORE", "10"))
QUIZ_DOCUMENT_VERSION = 1

MAX_USER_TAGS = int(os.getenv("MAX_USER_TAGS", "10"))
MAX_TAG_LENGTH = int(os.getenv("MAX_TAG_LENGTH", "32"))

RL_QUIZ_SUBMIT_LIMIT = int(os.getenv("RL_QUIZ_SUBMIT_LIMIT", "30"))
RL_CHAT_MESSAGE_LIMIT = int(os.getenv("RL_CHAT_MESSAGE_LIMIT", "120"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
