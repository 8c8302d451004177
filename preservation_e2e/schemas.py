from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum


# ========== Enums ==========
class ImportJobStatus(str, Enum):
    """Lifecycle states reported for an import job result."""
    WAITING = "waiting"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completedWithErrors"
    ERROR = "error"


class LockOutcome(str, Enum):
    """Result of asking for a deposit lock."""
    LOCKED = "locked"
    CONFLICT = "conflict"


class ResourceType(str, Enum):
    CONTAINER = "Container"
    BINARY = "Binary"
    ARCHIVAL_GROUP = "ArchivalGroup"
    REPOSITORY_ROOT = "RepositoryRoot"


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


# ========== Repository Schemas ==========
class Container(_ApiModel):
    id: str
    type: str
    name: Optional[str] = None
    containers: List[Dict[str, Any]] = []
    binaries: List[Dict[str, Any]] = []
    created: Optional[datetime] = None
    created_by: Optional[str] = Field(None, alias="createdBy")
    last_modified: Optional[datetime] = Field(None, alias="lastModified")
    last_modified_by: Optional[str] = Field(None, alias="lastModifiedBy")


class Binary(_ApiModel):
    id: str
    type: str = "Binary"
    name: Optional[str] = None
    content_type: Optional[str] = Field(None, alias="contentType")
    size: Optional[int] = None
    digest: Optional[str] = None
    origin: Optional[str] = None
    content: Optional[str] = None


class ArchivalGroup(Container):
    version: Optional[Dict[str, Any]] = None
    versions: List[Dict[str, Any]] = []
    storage_map: Optional[Dict[str, Any]] = Field(None, alias="storageMap")

    def binary_named(self, name: str) -> Optional[Dict[str, Any]]:
        return next((b for b in self.binaries if b.get("name") == name), None)


# ========== Deposit Schemas ==========
class Deposit(_ApiModel):
    id: str
    type: str = "Deposit"
    files: Optional[str] = None
    archival_group: Optional[str] = Field(None, alias="archivalGroup")
    archival_group_name: Optional[str] = Field(None, alias="archivalGroupName")
    submission_text: Optional[str] = Field(None, alias="submissionText")
    status: Optional[str] = None
    active: Optional[bool] = None
    locked_by: Optional[str] = Field(None, alias="lockedBy")
    created: Optional[datetime] = None
    created_by: Optional[str] = Field(None, alias="createdBy")

    @property
    def deposit_id(self) -> str:
        """Short identifier: the last path segment of the deposit URI."""
        return self.id.rstrip("/").rsplit("/", 1)[-1]


class DepositCreate(BaseModel):
    type: str = "Deposit"
    template: Optional[str] = None
    archival_group: Optional[str] = Field(None, serialization_alias="archivalGroup")
    archival_group_name: Optional[str] = Field(None, serialization_alias="archivalGroupName")
    submission_text: Optional[str] = Field(None, serialization_alias="submissionText")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DepositHandle(BaseModel):
    """What a scenario keeps about a deposit it created."""
    id: str
    url: str
    files: Optional[str] = None


# ========== Import Job Schemas ==========
class ImportJob(_ApiModel):
    id: Optional[str] = None
    type: str = "ImportJob"
    deposit: Optional[str] = None
    archival_group: Optional[str] = Field(None, alias="archivalGroup")
    containers_to_add: List[Dict[str, Any]] = Field([], alias="containersToAdd")
    binaries_to_add: List[Dict[str, Any]] = Field([], alias="binariesToAdd")
    binaries_to_delete: List[Dict[str, Any]] = Field([], alias="binariesToDelete")
    binaries_to_patch: List[Dict[str, Any]] = Field([], alias="binariesToPatch")


class ImportJobResult(_ApiModel):
    id: str
    type: str = "ImportJobResult"
    original_import_job: Optional[str] = Field(None, alias="originalImportJob")
    import_job: Optional[str] = Field(None, alias="importJob")
    status: str
    archival_group: Optional[str] = Field(None, alias="archivalGroup")
    deposit: Optional[str] = None
    source_version: Optional[str] = Field(None, alias="sourceVersion")
    new_version: Optional[str] = Field(None, alias="newVersion")
    date_begun: Optional[datetime] = Field(None, alias="dateBegun")
    date_finished: Optional[datetime] = Field(None, alias="dateFinished")
    errors: Optional[List[Dict[str, Any]]] = None

    @property
    def is_finished(self) -> bool:
        return self.status.startswith(ImportJobStatus.COMPLETED.value) or self.status == ImportJobStatus.ERROR.value


# ========== Activity Stream Schemas ==========
class ActivityCollection(_ApiModel):
    id: str
    type: str
    total_items: Optional[int] = Field(None, alias="totalItems")
    first: Optional[Dict[str, Any]] = None
    last: Optional[Dict[str, Any]] = None


class ActivityPage(_ApiModel):
    id: str
    type: str = "OrderedCollectionPage"
    ordered_items: List[Dict[str, Any]] = Field([], alias="orderedItems")
    prev: Optional[Dict[str, Any]] = None
