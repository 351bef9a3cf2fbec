"""
Database Schemas for FitReward

Each Pydantic model describes one entry of a collection inside the single JSON
document. Collection names match the keys of the document: User -> "users",
Challenge -> "challenges", SupportTicket -> "supportTickets" and so on.

Field names are snake_case in Python and camelCase on disk, so documents stay
readable by the mobile app and the admin panel.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class StoredModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Localized(BaseModel):
    """
    A bilingual value: Arabic is the default side, English is optional.
    """
    ar: str = Field(..., description="Arabic text")
    en: Optional[str] = Field(None, description="English text")

    def resolve(self, locale: str) -> Optional[str]:
        return self.en if locale == "en" else self.ar


class Challenge(StoredModel):
    """
    Reference data: a challenge users can join
    Collection: "challenges"
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = Field(default_factory=new_id)
    name: Localized = Field(..., description="Challenge title")
    description: Localized = Field(..., description="What to do")
    reward: int = Field(..., ge=0, description="Points awarded when a submission is approved")


class Reward(StoredModel):
    """
    Reference data: something points can be exchanged for
    Collection: "rewards"
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = Field(default_factory=new_id)
    name: Localized = Field(..., description="Reward title")
    description: Optional[Localized] = Field(None, description="Optional details")
    cost: int = Field(..., ge=0, description="Points debited on redemption")


class FaqItem(StoredModel):
    """
    Collection: "faq"
    """
    id: str = Field(default_factory=new_id)
    question: Localized
    answer: Localized


class Redemption(StoredModel):
    """
    One reward exchanged for points, embedded in User.redeemed_rewards
    """
    id: str = Field(..., description="Reward id")
    date: str = Field(default_factory=now_iso)
    qr_code_data: str = Field(..., description="Opaque verification code shown as a QR code")


class User(StoredModel):
    """
    Users collection schema
    Collection: "users"
    """
    id: str = Field(default_factory=new_id)
    username: str = Field(..., min_length=1, description="Unique handle (case-insensitive)")
    email: EmailStr = Field(..., description="Unique email, stored lowercased")
    password_hash: str = Field(..., alias="password", description="bcrypt hash, never the plaintext")
    points: int = Field(0, ge=0, description="Current balance")
    profile_picture_url: Optional[str] = None
    bio: Optional[str] = None
    active_challenge: Optional[Dict[str, Any]] = Field(
        None, description="Snapshot of the joined challenge plus startedAt"
    )
    completed_challenges: List[str] = Field(default_factory=list)
    redeemed_rewards: List[Redemption] = Field(default_factory=list)


class Submission(StoredModel):
    """
    Proof submissions awaiting admin review
    Collection: "submissions"
    """
    id: str = Field(default_factory=new_id)
    user_id: str = Field(..., description="Owning user id")
    username: str = Field(..., description="Owner's username at submit time")
    challenge_name: Optional[str] = Field(None, description="Arabic challenge name for the admin list")
    challenge: Dict[str, Any] = Field(..., description="Challenge snapshot taken when submitted")
    image_url: str = Field(..., description="Absolute URL of the proof image")
    status: Literal["pending", "approved", "rejected"] = Field("pending", description="Moderation status")
    submitted_at: str = Field(default_factory=now_iso)
    processed_at: Optional[str] = None
    points_awarded: Optional[int] = None
    rejection_reason: Optional[str] = None


class SupportTicket(StoredModel):
    """
    One message of a user's support conversation
    Collection: "supportTickets"
    """
    id: str = Field(default_factory=new_id)
    user_id: str
    username: str
    message: str = Field(..., min_length=1)
    sender: Literal["user", "admin"] = "user"
    status: Literal["unread", "read"] = "unread"
    created_at: str = Field(default_factory=now_iso)


class Document(StoredModel):
    """
    The whole persisted state. Entries are kept as plain dicts so unknown
    fields written by other clients survive a load/save cycle.
    """
    users: List[Dict[str, Any]] = Field(default_factory=list)
    challenges: List[Dict[str, Any]] = Field(default_factory=list)
    rewards: List[Dict[str, Any]] = Field(default_factory=list)
    faq: List[Dict[str, Any]] = Field(default_factory=list)
    submissions: List[Dict[str, Any]] = Field(default_factory=list)
    support_tickets: List[Dict[str, Any]] = Field(default_factory=list)


COLLECTIONS = ("users", "challenges", "rewards", "faq", "submissions", "supportTickets")
