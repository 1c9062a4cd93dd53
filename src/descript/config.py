from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class PolicyConfig(BaseModel):
    whitelist: list[str] = Field(default_factory=list)

    def default_preference(self) -> str:
        return " ".join(entry.strip() for entry in self.whitelist if entry.strip())


class Settings(BaseModel):
    preference_path: Optional[str] = None
    scripts_enabled: bool = True
    log_level: str = "INFO"

    policy: PolicyConfig = Field(default_factory=PolicyConfig)


def load_config(path: Optional[str] = None) -> Settings:
    if not path:
        return Settings()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return Settings()
    data = yaml.safe_load(cfg_path.read_text()) or {}
    return Settings(**data)
