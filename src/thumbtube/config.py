"""Configuration management for thumbtube."""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable overrides.

    All settings can be overridden via environment variables
    prefixed with THUMBTUBE_ (e.g. THUMBTUBE_MAX_ATTEMPTS, THUMBTUBE_WORKERS).
    The default repository also honours DEFAULT_YOUTUBE_THUMBNAIL_REPOSITORY.
    """

    model_config = {"env_prefix": "THUMBTUBE_", "populate_by_name": True}

    # Repository
    default_repository: Path | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "THUMBTUBE_DEFAULT_REPOSITORY",
            "DEFAULT_YOUTUBE_THUMBNAIL_REPOSITORY",
        ),
        description="Repository used when the working directory is not one",
    )
    meta_dir_name: str = ".thumbnails"
    index_name: str = "index.db"

    # Lifecycle
    max_attempts: int = Field(default=1, ge=1)
    workers: int = Field(default=1, ge=1)

    # Network
    request_timeout: float = 10.0
    connectivity_host: str = "img.youtube.com"
    connectivity_timeout: float = 2.0
    image_format: Literal["jpg", "webp"] = "jpg"

    # Interactive tools
    editor: str | None = None
    fzf_command: str = "fzf"
    chafa_command: str = "chafa"
    convert_command: str = "convert"

    def image_url(self, video_id: str, quality: str) -> str:
        """Thumbnail URL for a video at one quality level."""
        if self.image_format == "webp":
            return f"https://i.ytimg.com/vi_webp/{video_id}/{quality}.webp"
        return f"https://img.youtube.com/vi/{video_id}/{quality}.jpg"

    @staticmethod
    def page_url(video_id: str) -> str:
        """Canonical watch page for a video."""
        return f"https://www.youtube.com/watch?v={video_id}"


# Module-level singleton; import this throughout the app
settings = Settings()
