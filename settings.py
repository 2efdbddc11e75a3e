from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables or a `.env`
    file. Defaults are suitable for local development.
    """

    DATABASE_URL: Optional[str] = None
    """MongoDB connection string. When unset the API runs without storage."""

    DATABASE_NAME: str = "proconnect"
    """Name of the MongoDB database."""

    JWT_SECRET: str = "change-me"
    """Secret used to sign session tokens."""

    JWT_ALGORITHM: str = "HS256"
    """Signing algorithm for session tokens."""

    TOKEN_EXPIRE_DAYS: int = 7
    """Lifetime of a session token (and its cookie) in days."""

    FRONTEND_URL: str = "http://localhost:5173"
    """Origin of the single-page app, allowed by CORS."""

    COOKIE_SECURE: bool = False
    """Send the session cookie with `Secure` and `SameSite=None` (production)."""

    LOG_LEVEL: str = "INFO"

    PORT: int = 8000

    FEED_PAGE_SIZE: int = 10
    """Default number of posts per feed page."""

    SEARCH_LIMIT: int = 20

    SUGGESTION_LIMIT: int = 50

    BROADCAST_POST_EVENTS: bool = False
    """Push like/comment updates to every connected client instead of only
    the post author and the acting user."""

    class Config:
        env_file = ".env"


settings = Settings()
