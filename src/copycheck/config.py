"""Configuration management for copycheck."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Runtime configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COPYCHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Storage
    database_url: str = "sqlite+aiosqlite:///copycheck.db"

    # External similarity oracle (unset = local comparison only).
    # The unprefixed names are what the similarity service deployment uses.
    similarity_api_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("COPYCHECK_SIMILARITY_API_URL", "SIMILARITY_API_URL"),
    )
    similarity_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("COPYCHECK_SIMILARITY_API_KEY", "SIMILARITY_API_KEY"),
    )
    oracle_timeout: float = Field(default=30.0, gt=0)

    # Repository checkout
    git_binary: str = "git"
    clone_timeout: float = Field(default=120.0, gt=0)
    workdir_root: str | None = None  # None = system temp dir
    workdir_prefix: str = "copycheck_"

    # Pipeline
    vector_dims: int = Field(default=64, gt=0)
    max_concurrency: int = Field(default=4, gt=0)

    # Debug
    debug: bool = False

    @property
    def oracle_enabled(self) -> bool:
        return bool(self.similarity_api_url)


# Global instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get or create global Config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
