"""Data models for projects, research documents, and generation payloads."""

from __future__ import annotations

import base64
import binascii
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_TITLE = "Untitled Project"
DEFAULT_MEDIA_TYPE = "text/plain"

BINARY_MEDIA_TYPES = frozenset(
    {
        "application/pdf",
        "application/octet-stream",
        "application/zip",
    }
)
BINARY_MEDIA_PREFIXES = ("image/", "audio/", "video/")


class Stage(str, Enum):
    IDEA = "idea"
    RESEARCH = "research"
    PRD = "prd"
    PLANNING = "planning"
    DESIGN = "design"
    CODE = "code"


class DocumentKind(str, Enum):
    TEXT = "text"
    BINARY = "binary"


class DocumentSource(str, Enum):
    UPLOAD = "upload"
    EXTERNAL = "external"


def normalize_media_type(media_type: Optional[str]) -> str:
    """Lower-case a media type, drop parameters, and default empty values to text."""
    if not media_type:
        return DEFAULT_MEDIA_TYPE
    base = media_type.split(";", 1)[0].strip().lower()
    return base or DEFAULT_MEDIA_TYPE


def classify_media_type(media_type: Optional[str]) -> DocumentKind:
    """Total mapping from any media type string to its content encoding.

    Binary families (PDF, images, audio, video, opaque archives) are carried as
    base64. Everything else, including empty and unrecognised types, is text.
    """
    normalized = normalize_media_type(media_type)
    if normalized in BINARY_MEDIA_TYPES or normalized.startswith(BINARY_MEDIA_PREFIXES):
        return DocumentKind.BINARY
    return DocumentKind.TEXT


class ResearchDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    content: str
    media_type: str = DEFAULT_MEDIA_TYPE
    kind: DocumentKind = DocumentKind.TEXT
    source: DocumentSource = DocumentSource.UPLOAD
    page_count: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_kind(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["media_type"] = normalize_media_type(data.get("media_type"))
            data.setdefault("kind", classify_media_type(data["media_type"]))
        return data

    @model_validator(mode="after")
    def _check_encoding(self) -> "ResearchDocument":
        expected = classify_media_type(self.media_type)
        if self.kind != expected:
            raise ValueError(
                f"media type {self.media_type} implies {expected.value} content, got {self.kind.value}"
            )
        if self.kind == DocumentKind.BINARY:
            try:
                base64.b64decode(self.content, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"binary document {self.name!r} is not valid base64") from exc
        return self


class ProjectState(BaseModel):
    id: str
    title: str = DEFAULT_TITLE
    current_stage: Stage = Stage.IDEA
    research: List[ResearchDocument] = Field(default_factory=list)
    idea_input: str = ""
    synthesized_idea: str = ""
    research_mission: str = ""
    research_report_prompt: str = ""
    prd_output: str = ""
    roadmap_output: str = ""
    design_system_output: str = ""
    code_prompt_output: str = ""
    updated_at: Optional[datetime] = None
    is_generating: bool = Field(default=False, exclude=True)
    reset_count: int = Field(default=0, exclude=True)

    def reset(self) -> None:
        """Clear research, idea input, and every stage output; keep identity and title."""
        self.reset_count += 1
        self.current_stage = Stage.IDEA
        self.research = []
        self.idea_input = ""
        self.synthesized_idea = ""
        self.research_mission = ""
        self.research_report_prompt = ""
        self.prd_output = ""
        self.roadmap_output = ""
        self.design_system_output = ""
        self.code_prompt_output = ""

    def to_record(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict) -> "ProjectState":
        return cls.model_validate(record)


class ProjectMetadata(BaseModel):
    id: str
    title: str = DEFAULT_TITLE
    updated_at: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: ProjectState) -> "ProjectMetadata":
        return cls(id=state.id, title=state.title, updated_at=state.updated_at)


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class BlobPart(BaseModel):
    """Opaque attachment; `data` is the base64 payload exactly as stored."""

    type: Literal["blob"] = "blob"
    media_type: str
    data: str


ContentPart = Annotated[Union[TextPart, BlobPart], Field(discriminator="type")]


class GenerationParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class StagePayload(BaseModel):
    system_instruction: str
    generation: GenerationParameters
    parts: List[ContentPart] = Field(default_factory=list)


class GenerationRequest(BaseModel):
    model: str
    system_instruction: str
    generation: GenerationParameters
    parts: List[ContentPart] = Field(default_factory=list)

    @field_validator("parts")
    @classmethod
    def _require_parts(cls, parts: List[Any]) -> List[Any]:
        if not parts:
            raise ValueError("a generation request needs at least one content part")
        return parts

    @classmethod
    def from_payload(cls, model: str, payload: StagePayload) -> "GenerationRequest":
        return cls(
            model=model,
            system_instruction=payload.system_instruction,
            generation=payload.generation,
            parts=list(payload.parts),
        )
