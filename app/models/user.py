from pydantic import BaseModel, EmailStr, ConfigDict
from typing import Optional


class UserSyncRequest(BaseModel):
    fullName: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    image_uri: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
