"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.

Wire format is camelCase (fullName, roomId, ...). Models declare
snake_case attributes and accept either spelling.
"""

import re
from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from bson import ObjectId
from enum import Enum

from app.core.config import get_settings


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    faculty = "faculty"
    parent = "parent"


class MessageType(str, Enum):
    text = "text"
    image = "image"
    file = "file"
    system = "system"


class SafetyLevel(str, Enum):
    strict = "strict"
    moderate = "moderate"
    relaxed = "relaxed"


class Grade(str, Enum):
    kindergarten = "kindergarten"
    first = "1st"
    second = "2nd"
    third = "3rd"
    fourth = "4th"
    fifth = "5th"
    sixth = "6th"
    seventh = "7th"
    eighth = "8th"
    ninth = "9th"
    tenth = "10th"
    eleventh = "11th"
    twelfth = "12th"
    college = "college"


class StudyTime(str, Enum):
    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"
    night = "night"


# ============================================================
# BASE
# ============================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_object_id(value: Optional[str], label: str) -> Optional[str]:
    if value is None:
        return None
    if not ObjectId.is_valid(value) or len(value) != 24:
        raise ValueError(f"Invalid {label} ID format")
    return value


FULL_NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-zA-Z])(?=.*\d)")


# ============================================================
# AUTH SCHEMAS
# ============================================================

class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=2, max_length=50)
    role: UserRole = UserRole.student

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Full name must be between 2 and 50 characters")
        if get_settings().is_production and not FULL_NAME_PATTERN.match(v):
            raise ValueError("Full name can only contain letters and spaces")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if get_settings().is_production and not PASSWORD_PATTERN.match(v):
            raise ValueError("Password must contain at least one letter and one number")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class CommunicationPreferences(CamelModel):
    allow_direct_messages: bool = True
    allow_group_chats: bool = True
    allow_file_sharing: bool = False
    allow_video_calls: bool = False


class MonitoringSettings(CamelModel):
    ai_analysis_enabled: bool = True
    real_time_alerts: bool = True
    weekly_reports: bool = True
    content_filtering: bool = True


class EmergencyContact(CamelModel):
    name: str = Field("", max_length=50)
    relationship: str = Field("", max_length=30)
    phone: str = Field("", max_length=20)
    email: Optional[EmailStr] = None


class OnboardingRequest(CamelModel):
    full_name: str = Field(..., min_length=2, max_length=50)
    bio: str = ""
    native_language: str = ""
    learning_language: str = ""
    location: str = ""
    profile_pic: Optional[HttpUrl] = None

    age: Optional[int] = Field(None, ge=5, le=18)
    grade: Optional[Grade] = None
    school: Optional[str] = Field(None, min_length=2, max_length=100)
    interests: List[str] = []
    learning_goals: str = ""

    safety_level: SafetyLevel = SafetyLevel.moderate
    allowed_topics: List[str] = ["education", "sports", "music", "art", "science", "math", "literature"]
    restricted_topics: List[str] = []
    communication_preferences: CommunicationPreferences = CommunicationPreferences()
    monitoring_settings: MonitoringSettings = MonitoringSettings()

    academic_subjects: List[str] = []
    current_courses: List[str] = []
    daily_screen_time_limit: int = Field(120, ge=30, le=480)
    preferred_study_times: List[StudyTime] = [StudyTime.afternoon, StudyTime.evening]

    emergency_contact: EmergencyContact = EmergencyContact()

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: str) -> str:
        v = v.strip()
        if not FULL_NAME_PATTERN.match(v):
            raise ValueError("Full name can only contain letters and spaces")
        return v

    def to_document(self) -> dict:
        """Fields as stored on the user document (camelCase)."""
        doc = self.model_dump(mode="json", by_alias=True)
        if doc.get("emergencyContact", {}).get("email") is None:
            doc["emergencyContact"]["email"] = ""
        if doc.get("profilePic") is None:
            doc.pop("profilePic")
        return doc


# ============================================================
# USER SCHEMAS
# ============================================================

class LinkChildRequest(CamelModel):
    child_email: EmailStr


class UseLinkCodeRequest(CamelModel):
    code: str = Field(..., pattern=r"^[0-9]{6}$")


# ============================================================
# ROOM SCHEMAS
# ============================================================

class CreateRoomRequest(CamelModel):
    room_name: str = Field(..., min_length=3, max_length=100)

    @field_validator("room_name")
    @classmethod
    def check_room_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Room name must be between 3 and 100 characters")
        if not re.match(r"^[a-zA-Z0-9\s\-_()]+$", v):
            raise ValueError(
                "Room name can only contain letters, numbers, spaces, hyphens, underscores, and parentheses"
            )
        return v


class JoinRoomRequest(CamelModel):
    invite_code: str

    @field_validator("invite_code")
    @classmethod
    def check_invite_code(cls, v: str) -> str:
        v = v.strip()
        if not re.match(r"^[A-Z0-9]{6}$", v):
            raise ValueError("Invite code must be exactly 6 uppercase letters or numbers")
        return v


class BulkDeleteRoomsRequest(CamelModel):
    room_ids: List[str] = Field(..., min_length=1)

    @field_validator("room_ids")
    @classmethod
    def check_room_ids(cls, v: List[str]) -> List[str]:
        for room_id in v:
            _check_object_id(room_id, "room")
        return v


# ============================================================
# FACULTY MESSAGING SCHEMAS
# ============================================================

class FacultyRequestBase(CamelModel):
    room_id: str
    target_user_id: Optional[str] = None

    @field_validator("room_id")
    @classmethod
    def check_room_id(cls, v: str) -> str:
        return _check_object_id(v, "room")

    @field_validator("target_user_id", mode="before")
    @classmethod
    def check_target_user_id(cls, v):
        if v in (None, ""):
            return None
        return _check_object_id(v, "target user")


class FacultyMessageRequest(FacultyRequestBase):
    message: str = Field(..., min_length=1, max_length=2000)
    message_type: MessageType = MessageType.text

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message must be between 1 and 2000 characters")
        return v


class VideoCallLinkRequest(FacultyRequestBase):
    call_url: HttpUrl
    call_title: str = Field("Video Call", min_length=1, max_length=100)


class StartVideoCallRequest(FacultyRequestBase):
    call_title: str = Field("Faculty Video Call", min_length=1, max_length=100)


# ============================================================
# AI SCHEMAS
# ============================================================

class AnalyzeChatRequest(CamelModel):
    child_uid: str
    target_uid: str

    @field_validator("child_uid")
    @classmethod
    def check_child_uid(cls, v: str) -> str:
        return _check_object_id(v, "child user")

    @field_validator("target_uid")
    @classmethod
    def check_target_uid(cls, v: str) -> str:
        return _check_object_id(v, "target user")


class AnalysisContext(CamelModel):
    child_name: str
    target_name: str
    target_role: str
    message_count: int
    source: str
    is_friend: bool
    is_classroom_member: bool


class AnalyzeChatResponse(CamelModel):
    success: bool = True
    analysis: str
    context: AnalysisContext


# ============================================================
# COMMON
# ============================================================

class MessageResponse(BaseModel):
    success: bool = True
    message: str
