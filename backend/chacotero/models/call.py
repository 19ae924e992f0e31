"""
Call Models

Three stages of a call's life:
- CallCandidate: what the language model proposed (unvalidated)
- ValidatedCall: a candidate whose boundaries were resolved to seconds and
  snapped onto real segment edges, with its transcript re-sliced
- CallRecord: the persisted JSON document for a call, shared by every
  similarity run that discovers a relation to it
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

TEXT_FIELDS = (
    "name", "title", "topic", "description", "summary",
    "thumbnail_scene", "start_text", "end_text",
)


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _coerce_age(value: Any) -> Optional[Union[int, str]]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else str(value)
    return str(value)


def _coerce_tags(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    if isinstance(value, (list, tuple)):
        return [str(tag) for tag in value if tag is not None]
    return [str(value)]


class CallMetadata(BaseModel):
    """AI-derived descriptive fields shared by candidates and validated calls"""
    name: Optional[str] = None
    age: Optional[Union[int, str]] = None
    title: Optional[str] = None
    topic: Optional[str] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    thumbnail_scene: Optional[str] = Field(None, alias="thumbnailScene")
    start_text: Optional[str] = Field(None, alias="startText")
    end_text: Optional[str] = Field(None, alias="endText")

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _coerce_text(value)

    @field_validator("age", mode="before")
    @classmethod
    def coerce_age(cls, value: Any) -> Optional[Union[int, str]]:
        return _coerce_age(value)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> Optional[List[str]]:
        return _coerce_tags(value)

    class Config:
        populate_by_name = True


class CallCandidate(CallMetadata):
    """
    A call proposed by the language model.

    `start`/`end` are left untyped on purpose: the model may answer with
    seconds or with 1-indexed line numbers, and the Timestamp Resolver decides
    which. `start_time`/`end_time` are explicit seconds and win when numeric.
    """
    start: Any = None
    end: Any = None
    start_time: Any = Field(None, alias="startTime")
    end_time: Any = Field(None, alias="endTime")


class ValidatedCall(CallMetadata):
    """A call whose boundaries coincide with segment edges of the timeline"""
    start: float
    end: float
    transcription: str = ""

    def metadata(self) -> Dict[str, Any]:
        """AI metadata in the camelCase shape used by persisted records"""
        return self.model_dump(
            by_alias=True,
            exclude={"start", "end", "transcription"},
            exclude_none=True,
        )


class CallRecord(BaseModel):
    """
    Persisted call document (one JSON file per call).

    Unknown keys are preserved so that reading and re-writing a record never
    drops fields written by other parts of the system. `duplicate_of` and
    `related_calls` are adjacency lists that other calls append to.
    """
    call_id: Optional[str] = Field(None, alias="callId")
    file_name: Optional[str] = Field(None, alias="fileName")
    title: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    name: Optional[str] = None
    age: Optional[Union[int, str]] = None
    date: Optional[str] = None
    youtube_video_id: Optional[str] = Field(None, alias="youtubeVideoId")
    pinecone_id: Optional[str] = Field(None, alias="pineconeId")
    duplicate_of: List[str] = Field(default_factory=list, alias="duplicateOf")
    related_calls: List[str] = Field(default_factory=list, alias="relatedCalls")

    @field_validator("title", "description", "summary", "name", "date", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _coerce_text(value)

    @field_validator("age", mode="before")
    @classmethod
    def coerce_age(cls, value: Any) -> Optional[Union[int, str]]:
        return _coerce_age(value)

    @field_validator("duplicate_of", "related_calls", mode="before")
    @classmethod
    def coerce_list(cls, value: Any) -> List[str]:
        # Older records stored a single fileName instead of a list
        if not value:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value if item]

    @property
    def reference(self) -> Optional[str]:
        """Name other records use to refer to this call"""
        return self.file_name or self.call_id

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used on disk"""
        return self.model_dump(by_alias=True)

    class Config:
        populate_by_name = True
        extra = "allow"
