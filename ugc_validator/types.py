"""Type definitions for the review photo validation system."""
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any


class Decision(str, Enum):
    """Per-image decision."""
    ACCEPT = "accept"
    REJECT = "reject"


class OrderStatus(str, Enum):
    """Status of an order record in the external store."""
    NOT_YET_REVIEWED = "not_yet"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SubmissionMode(str, Enum):
    """Normal submissions go through reward logic, fix submissions only re-check rejected photos."""
    NORMAL = "normal"
    FIX = "fix"


class PoolStatus(str, Enum):
    """Reward code pool status."""
    AVAILABLE = "available"
    ASSIGNED = "assigned"


class FailurePolicy(str, Enum):
    """What a classifier failure turns into."""
    REJECT = "reject"
    ACCEPT = "accept"


@dataclass
class ImageCandidate:
    """An uploaded image before any checks ran."""
    filename: str
    byte_size: int
    mime_type: str
    raw_bytes: bytes = field(repr=False)
    width: Optional[int] = None
    height: Optional[int] = None
    decode_error: Optional[str] = None


@dataclass(frozen=True)
class ImageOutcome:
    """Canonical per-image result. Never Accept when people are visible."""
    filename: str
    decision: Decision
    quality_score: int
    contains_people: bool
    feedback_text: str
    stored_url: Optional[str] = None
    storage_backend: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.decision == Decision.ACCEPT

    def with_storage(self, stored_url: Optional[str], storage_backend: Optional[str]) -> "ImageOutcome":
        """Copy with the upload location attached."""
        return replace(self, stored_url=stored_url, storage_backend=storage_backend)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "decision": self.decision.value,
            "score": self.quality_score,
            "people": self.contains_people,
            "feedback": self.feedback_text,
            "storedUrl": self.stored_url,
            "storageBackend": self.storage_backend,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageOutcome":
        """Rebuild an outcome echoed back by a client (fix mode)."""
        people = bool(data.get("people", False))
        try:
            decision = Decision(str(data.get("decision", "")).lower())
        except ValueError:
            decision = Decision.REJECT
        if people:
            decision = Decision.REJECT
        try:
            score = int(float(data.get("score", 0)))
        except (TypeError, ValueError):
            score = 0
        return cls(
            filename=str(data.get("filename", "")),
            decision=decision,
            quality_score=max(0, min(100, score)),
            contains_people=people,
            feedback_text=str(data.get("feedback", "")),
            stored_url=data.get("storedUrl"),
            storage_backend=data.get("storageBackend"),
        )


@dataclass(frozen=True)
class BatchSummary:
    """Summary counts for one submission."""
    total_count: int
    accepted_count: int
    rejected_count: int
    average_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total_count,
            "accepted": self.accepted_count,
            "rejected": self.rejected_count,
            "averageScore": self.average_score,
        }


@dataclass
class FixContext:
    """Results of the previous attempt, echoed back by the client in fix mode."""
    previously_rejected: List[Dict[str, Any]] = field(default_factory=list)
    previously_accepted: List[ImageOutcome] = field(default_factory=list)


@dataclass
class SubmissionRequest:
    """A single review submission."""
    order_id: str
    order_email: str
    review_text: str
    customer_name: str
    star_rating: Optional[int]
    images: List[ImageCandidate] = field(default_factory=list)
    mode: SubmissionMode = SubmissionMode.NORMAL
    fix_context: Optional[FixContext] = None


@dataclass
class OrderRecord:
    """Order row in the external record store."""
    order_id: str
    status: OrderStatus
    record_ref: str
    associated_email: str = ""
    review_text: str = ""
    customer_name: str = ""
    star_rating: int = 0
    image_url: Optional[str] = None
    version: int = 1
    updated_at: Optional[str] = None


@dataclass
class RewardCode:
    """Discount code in the pool."""
    code: str
    pool_status: PoolStatus = PoolStatus.AVAILABLE
    assigned_order_id: Optional[str] = None
    assigned_email: Optional[str] = None


@dataclass
class RewardIssue:
    """What the reward issuer handed out."""
    code: str
    from_pool: bool
    delivery_confirmed: bool


@dataclass
class SubmissionResult:
    """Everything the responder needs to shape the reply."""
    request: SubmissionRequest
    outcomes: List[ImageOutcome]
    summary: BatchSummary
    qualified: bool
    review_id: Optional[str] = None
    reward: Optional[RewardIssue] = None


@dataclass
class ValidationConfig:
    """Configuration for validation rules and collaborators."""
    max_file_size: int = 5 * 1024 * 1024
    min_image_width: int = 400
    min_image_height: int = 400
    allowed_mime_types: List[str] = field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp"]
    )
    required_image_count: int = 3
    min_accepted_for_reward: int = 3
    acceptance_threshold: int = 70
    review_text_min_length: int = 20
    review_text_max_length: int = 500
    classifier_failure_policy: FailurePolicy = FailurePolicy.REJECT
    classifier_timeout_seconds: float = 30.0
    storage_timeout_seconds: float = 15.0
    record_store_timeout_seconds: float = 5.0
    notification_timeout_seconds: float = 10.0
    max_image_workers: int = 3
    discount_code_prefix: str = "UGC"
    database_path: Path = Path("./data/ugc_validation.sqlite")
    local_storage_dir: Optional[Path] = None
    local_storage_base_url: Optional[str] = None
    http_storage_upload_url: Optional[str] = None
    http_storage_public_url: Optional[str] = None
    http_storage_query: Optional[str] = None
    gemini_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_sender: str = "UGC Validation <noreply@ugc-validation.local>"
    smtp_use_tls: bool = True
