from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cmem.core.memory import DEFAULT_USER_ID


class _UserScoped(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(default=DEFAULT_USER_ID, alias="userId")

    @field_validator("user_id", mode="before")
    @classmethod
    def _default_user(cls, v: Optional[str]) -> str:
        # missing, null and empty all mean the default owner
        if v is None:
            return DEFAULT_USER_ID
        if isinstance(v, str) and not v.strip():
            return DEFAULT_USER_ID
        return v


class AddMemoryArgs(_UserScoped):
    content: str = Field(min_length=1)


class SearchMemoriesArgs(_UserScoped):
    query: str
