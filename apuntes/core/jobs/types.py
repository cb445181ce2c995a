from enum import Enum

class JobType(str, Enum):
    TRANSCRIPTION = "transcription"

class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
