"""Enumerated values shared by models, services and API schemas."""

from enum import Enum


class FileType(str, Enum):
    """Role a document plays in a project."""
    RFP = "rfp"
    TEMPLATE = "template"
    PAST_SUBMISSION = "past_submission"
    REFERENCE = "reference"
    ANALYSIS_REPORT = "analysis_report"


KNOWLEDGE_FILE_TYPES = (FileType.PAST_SUBMISSION, FileType.REFERENCE)


class SectionSource(str, Enum):
    TEMPLATE = "template"
    RFP = "rfp"
    AI_SUGGESTED = "ai_suggested"
    MANUAL = "manual"


class ItemKind(str, Enum):
    QUESTION = "question"
    CONDITION = "condition"


class ItemStatus(str, Enum):
    PENDING = "pending"
    DRAFTED = "drafted"
    REVIEWED = "reviewed"
    FINAL = "final"


class DraftStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    DRAFTED = "drafted"
    EDITED = "edited"
    FINAL = "final"


class FeedbackType(str, Enum):
    STRENGTH = "strength"
    WEAKNESS = "weakness"
    RECOMMENDATION = "recommendation"
    COMMENT = "comment"


class FeedbackSeverity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.ERROR)


class JobType(str, Enum):
    """One value per asynchronous operation tracked in job_progress."""
    STRUCTURE = "structure_analysis"
    EXTRACTION = "item_extraction"
    INDEXING = "knowledge_indexing"
    FEEDBACK = "feedback_extraction"
    DRAFT_ALL = "draft_all"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Operation(str, Enum):
    """AI operations that resolve their own model and prompt."""
    ANALYSIS = "analysis"
    STRUCTURE = "structure"
    EXTRACTION = "extraction"
    DRAFTING = "drafting"
    FEEDBACK = "feedback"
    COMPLIANCE = "compliance"
    CHAT = "chat"
    EMBEDDING = "embedding"


class ProviderKind(str, Enum):
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    LOCAL = "local"
