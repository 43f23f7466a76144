from typing import Literal

from pydantic import BaseModel


class Notice(BaseModel):
    enabled: bool
    type: str
    icon: str
    title: str
    message: str
    updated_at: str | None = None


class NoticeUpdateRequest(BaseModel):
    enabled: bool
    type: Literal["info", "warning", "error", "success"]
    title: str
    message: str
    icon: str | None = None


class NoticeResponse(BaseModel):
    success: bool = True
    message: str | None = None
    notice: Notice
