from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from eks_addons.tags import TagPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    aws_region: str = "us-east-1"
    aws_role_arn: Optional[str] = None
    aws_external_id: Optional[str] = None

    # Provider-wide tag policy; complex values are read as JSON from the env.
    default_tags: dict[str, str] = {}
    ignore_tags_keys: list[str] = []
    ignore_tags_key_prefixes: list[str] = []

    database_url: str = "sqlite:///./eks_addons.db"
    wait_for_completion: bool = True
    log_level: str = "INFO"

    def tag_policy(self) -> TagPolicy:
        return TagPolicy(
            default_tags=self.default_tags,
            ignore_keys=self.ignore_tags_keys,
            ignore_key_prefixes=self.ignore_tags_key_prefixes,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
