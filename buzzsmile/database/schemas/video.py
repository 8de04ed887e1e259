from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

VideoStatus = Literal["uploading", "queued", "processing", "editing", "ready", "failed", "error"]


class EditingPreferences(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    videoName: Optional[str] = None
    videoDescription: Optional[str] = None
    videoType: Optional[str] = None
    targetAudience: Optional[str] = None
    editingStyle: Optional[str] = None
    duration: Optional[str] = None
    specialRequests: Optional[str] = None


class SourceFile(BaseModel):
    filename: str
    originalName: str
    filePath: str
    fileSize: int
    format: str


class VideoDocument(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    owner: ObjectId
    title: str = Field(..., max_length=100)
    description: str = Field("", max_length=500)
    filename: str
    originalName: str
    filePath: str
    fileSize: int  # bytes
    format: str
    duration: float = 0  # seconds
    status: VideoStatus = "uploading"
    thumbnailPath: Optional[str] = None
    isPublic: bool = False
    shareExpiresAt: Optional[datetime] = None
    downloadExpiresAt: Optional[datetime] = None
    downloadCount: int = 0
    editingPreferences: Optional[Dict[str, Any]] = None
    isMultipleFiles: bool = False
    sourceFiles: List[SourceFile] = Field(default_factory=list)
    sourceFileCount: int = 1

    createdAt: datetime = Field(default_factory=datetime.utcnow)
    updatedAt: datetime = Field(default_factory=datetime.utcnow)

    def to_mongo(self) -> dict:
        return self.model_dump()


class VideoUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    isPublic: Optional[bool] = None
    shareExpiresInDays: Optional[int] = Field(None, ge=1, le=365)


class ProcessRequest(BaseModel):
    editingOptions: Dict[str, Any] = Field(default_factory=dict)


LIST_FIELDS = (
    "title", "description", "filename", "status", "duration", "format",
    "thumbnailPath", "createdAt", "updatedAt", "fileSize", "isPublic",
)


def video_response(video: dict, exclude=("filePath",)) -> dict:
    """JSON-safe copy of a video document."""
    data = {k: v for k, v in video.items() if k not in exclude}
    data["_id"] = str(video["_id"])
    data["id"] = data["_id"]
    if isinstance(video.get("owner"), ObjectId):
        data["owner"] = str(video["owner"])
    return data
