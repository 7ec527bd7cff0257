from typing import Optional

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    full_name: str = Field(..., alias="fullName")
    email: str


class UploadCreate(BaseModel):
    file_id: str = Field(..., alias="fileId")
    label: str = ""
    file: Optional[str] = None


class ShareRequest(BaseModel):
    user_id: Optional[int] = Field(None, alias="userId")


class ChatCreate(BaseModel):
    message: str
    date: Optional[str] = None
