"""eBook domain models produced and consumed by the eBook actions."""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class Language(str, Enum):
    EN = "en"
    DE = "de"


class InputType(str, Enum):
    TOPIC = "topic"
    LINK = "link"
    INCOMPLETE_BOOK = "incomplete_book"


class Tone(str, Enum):
    ACADEMIC = "academic"
    CASUAL = "casual"
    PROFESSIONAL = "professional"


class EBookInput(BaseModel):
    """What the user asked for."""

    type: InputType = InputType.TOPIC
    content: str = Field(min_length=1)
    language: Language = Language.EN
    target_length: Optional[int] = Field(default=None, gt=0)   # Words
    tone: Optional[Tone] = None
    audience: Optional[str] = None


class EnhancedPrompt(BaseModel):
    original: str
    enhanced: str
    structure: List[str]
    target_audience: str
    estimated_length: int = Field(ge=0)
    language: Language
    complexity: int = Field(ge=1, le=10)


class ChapterPlan(BaseModel):
    title: str
    summary: str


class Outline(BaseModel):
    title: str
    description: str
    chapters: List[ChapterPlan] = Field(min_length=1)


class Chapter(BaseModel):
    id: str = Field(default_factory=lambda: f"ch_{uuid4().hex[:12]}")
    title: str
    content: str
    order: int = Field(ge=1)
    word_count: int = Field(ge=0)
    language: Language


class EBookMetadata(BaseModel):
    author: str = "AI"
    language: Language
    word_count: int
    chapter_count: int
    estimated_reading_time: int             # Minutes
    tags: List[str] = []
    version: str = "1.0.0"


class EBook(BaseModel):
    id: str = Field(default_factory=lambda: f"book_{uuid4().hex[:12]}")
    title: str
    description: str
    chapters: List[Chapter]
    metadata: EBookMetadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
