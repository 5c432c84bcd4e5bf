from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class JobStatus(str, enum.Enum):
    """Import job status as reported to pollers"""
    QUEUED = "queued"
    STARTING = "starting"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


# A job in one of these states may be clearing or writing the FCC tables
ACTIVE_STATUSES = (
    JobStatus.STARTING,
    JobStatus.DOWNLOADING,
    JobStatus.EXTRACTING,
    JobStatus.UPLOADING,
    JobStatus.PROCESSING,
)

TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.ERROR)


class ImportPhase(str, enum.Enum):
    """Which ULS file a stream pass is reading"""
    AMATEUR = "amateur"
    ENTITY = "entity"


class DataType(str, enum.Enum):
    """Record types requested by a job trigger"""
    AM = "AM"
    EN = "EN"
    ALL = "ALL"

    @property
    def phases(self):
        """Phases to run, amateur always first"""
        if self is DataType.AM:
            return [ImportPhase.AMATEUR]
        if self is DataType.EN:
            return [ImportPhase.ENTITY]
        return [ImportPhase.AMATEUR, ImportPhase.ENTITY]


class JobSource(str, enum.Enum):
    """Who started a job"""
    API = "api"
    SCHEDULED = "scheduled"
    MANUAL = "manual"


def enum_values(enum_cls):
    """Persist enum values (lowercase) instead of member names"""
    return [member.value for member in enum_cls]
