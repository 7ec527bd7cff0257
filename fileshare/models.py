from sqlalchemy import JSON, Column, Integer, String, TIMESTAMP, text
from sqlalchemy.ext.mutable import MutableList

from fileshare.database import Base


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(320), unique=True, nullable=False, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def to_dict(self) -> dict:
        return {"id": self.id, "fullName": self.full_name, "email": self.email}


class UploadModel(Base):
    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    file_id = Column(String(255), unique=True, nullable=False)
    label = Column(String(1024), nullable=False, default="")
    file = Column(String(1024), nullable=False)
    # ordered [{"userId": n}, ...]; uniqueness is kept by fileshare.sharing.ShareList
    shared_to = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def to_dict(self, include_id: bool = False) -> dict:
        data = {
            "userId": self.owner_id,
            "fileId": self.file_id,
            "label": self.label,
            "file": self.file,
            "sharedTo": list(self.shared_to or []),
        }
        if include_id:
            data["id"] = self.id
        return data


class ChatModel(Base):
    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    message = Column(String(4096), nullable=False)
    date = Column(String(64), nullable=False)

    def to_dict(self, include_id: bool = False) -> dict:
        data = {"userId": self.user_id, "message": self.message, "date": self.date}
        if include_id:
            data["id"] = self.id
        return data
