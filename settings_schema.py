from pydantic import BaseModel, Field, ValidationError

from config import YamlConfig


class SettingsSchema(BaseModel):
    sync_url: str = ""
    sync_token: str = ""
    sync_timeout: float = Field(default=10.0, gt=0)
    sync_interval_seconds: int = Field(default=300, ge=1)
    store_key: str = "warriorProgression"
    default_streak_requirement: int = Field(default=3, ge=1)
    weight_increment_threshold: float = 20.0
    weight_increment_small: float = 1.0
    weight_increment_large: float = 2.5
    log_level: str = "INFO"


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(path: str = "settings.yaml") -> SettingsSchema:
    """Read ``path`` and return validated settings, defaults for missing keys."""
    data = YamlConfig(path).load()
    if data.get("sync_token") is True:
        data.pop("sync_token")
    return validate_settings(data)


def save_settings(path: str, settings: SettingsSchema) -> None:
    YamlConfig(path).save(settings.model_dump())
