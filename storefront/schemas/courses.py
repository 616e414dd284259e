"""Course content and admin course pipeline schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.catalog import CourseOut, ProductOut


class CourseDelete(BaseModel):
    course_id: str
    product_id: str


class TemplateSummary(BaseModel):
    key: str
    title: str
    description: str
    price: float
    difficulty_level: str | None = None


class TemplateResult(BaseModel):
    key: str
    success: bool
    skipped: bool = False
    message: str | None = None
    error: str | None = None
    product_id: str | None = None
    course_id: str | None = None
    title: str | None = None


class CourseCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    image_url: str | None = None
    published: bool = False
    difficulty_level: str | None = None
    estimated_duration: str | None = None
    prerequisites: str | None = None


class LessonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str | None = None
    content_type: str
    content: dict | str | None = None
    video_url: str | None = None
    pdf_url: str | None = None
    duration: int | None = None
    order_index: int


class SectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str | None = None
    order_index: int
    lessons: list[LessonOut] = []


class CourseSummary(CourseOut):
    created_at: datetime
    product: ProductOut


class CourseContent(CourseSummary):
    sections: list[SectionOut] = []
