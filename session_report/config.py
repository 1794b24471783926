from datetime import datetime, timezone

from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from typing import Optional, Literal

SESSION_CATEGORIES = ("All", "Audio", "Conference", "IM", "Video")


class ReportSettings(BaseSettings):
    """Session report configuration.

    Values come from ``UCREPORT_*`` environment variables and are overridden
    by command line flags. Authentication picks the first available of:
      access_token        – pre-issued bearer token
      username/password   – pre-supplied credential (password grant)
      (neither)           – interactive device-code flow, MFA capable
    """

    api_base_url: str
    token_url: Optional[str] = None
    device_code_url: Optional[str] = None
    client_id: str = "session-report"
    scope: str = "directory.read sessions.read"
    username: Optional[str] = None
    password: Optional[str] = None
    access_token: Optional[str] = None
    request_timeout: float = 120.0

    days_to_search: int
    session_category: Literal["All", "Audio", "Conference", "IM", "Video"]
    output_mode: Literal["file", "viewer"]
    output_path: Optional[str] = None
    full_detail: bool = False
    include_incomplete: bool = False
    subject: Optional[str] = None
    uri_filter: Optional[str] = None
    client_version_filter: Optional[str] = None
    end_instant: Optional[datetime] = None
    subject_list_file: Optional[str] = None

    viewer_host: str = "127.0.0.1"
    viewer_port: int = 8100

    model_config = {"env_prefix": "UCREPORT_", "case_sensitive": False}

    @field_validator("session_category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        if isinstance(v, str):
            for name in SESSION_CATEGORIES:
                if v.strip().lower() == name.lower():
                    return name
        return v

    @field_validator("output_mode", mode="before")
    @classmethod
    def normalize_output_mode(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("days_to_search")
    @classmethod
    def validate_days(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"days_to_search must be at least 1, got {v}")
        return v

    @field_validator("end_instant")
    @classmethod
    def end_instant_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return None
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def check_output_path(self):
        if self.output_mode == "file" and not self.output_path:
            raise ValueError("output_path is required when output_mode is 'file'")
        return self

    @property
    def has_credential(self) -> bool:
        return bool(self.username and self.password)

    def get_token_url(self) -> str:
        return self.token_url or f"{self.api_base_url.rstrip('/')}/oauth2/token"

    def get_device_code_url(self) -> str:
        return self.device_code_url or f"{self.api_base_url.rstrip('/')}/oauth2/devicecode"
