"""
Database Schemas for the professional network API

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name. Example: class User -> "user" collection.
References to other documents are stored as ObjectIds; the request models at
the bottom describe API payloads.
"""

from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

ConnectionState = Literal["pending", "accepted", "rejected"]
NotificationType = Literal["like", "comment", "connectionAccepted"]


class Education(BaseModel):
    college: Optional[str] = None
    degree: Optional[str] = None
    field_of_study: Optional[str] = None


class Experience(BaseModel):
    title: Optional[str] = None
    company: Optional[str] = None
    description: Optional[str] = None


class User(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    username: str = Field(..., description="Unique lowercase handle")
    email: str = Field(..., description="Unique login e-mail")
    password_hash: str = Field(..., description="Salted PBKDF2 digest")
    profile_image: str = Field("", description="Profile image URL")
    cover_image: str = Field("", description="Cover image URL")
    headline: str = Field("", description="Job title or short bio")
    skills: List[str] = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    location: str = Field("India")
    gender: Optional[Literal["male", "female", "other"]] = None
    experience: List[Experience] = Field(default_factory=list)
    connections: List[ObjectId] = Field(default_factory=list, description="Accepted connections only")


class Connection(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    sender: ObjectId = Field(..., description="User who sent the request")
    receiver: ObjectId = Field(..., description="User the request was sent to")
    status: ConnectionState = Field("pending", description="Lifecycle state")


class Notification(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    receiver: ObjectId = Field(..., description="User being notified")
    type: NotificationType
    related_user: ObjectId = Field(..., description="User who acted")
    related_post: Optional[ObjectId] = Field(None, description="Post involved, if any")
    related_connection: Optional[ObjectId] = Field(None, description="Accepted request, if any")


class Post(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    author: ObjectId = Field(..., description="User ID of author")
    description: str = Field("", description="Post text content")
    image: Optional[str] = Field(None, description="Hosted image URL")
    likes: List[ObjectId] = Field(default_factory=list)
    comments: List[dict] = Field(default_factory=list, description="Embedded {content, user, created_at}")


# ----------------- Request payloads -----------------

USERNAME_PATTERN = r"^[a-zA-Z0-9._-]+$"


class SignupRequest(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    headline: Optional[str] = None
    location: Optional[str] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    skills: Optional[List[str]] = None
    education: Optional[List[Education]] = None
    experience: Optional[List[Experience]] = None
    profile_image: Optional[str] = None
    cover_image: Optional[str] = None


class PostCreate(BaseModel):
    description: str = ""
    image: Optional[str] = None


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
