"""Admin course pipeline: template courses in, whole courses out, one transaction each."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from sqlalchemy import delete, select
from sqlalchemy.orm import selectinload
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.constants import PRODUCT_PLACEHOLDER_PDF
from storefront.exceptions import NotFoundError, UpstreamError, ValidationError
from storefront.models.course import Course, Lesson, Section
from storefront.models.product import Product
from storefront.schemas.courses import CourseCreate, TemplateResult, TemplateSummary

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).resolve().parent.parent / "data" / "course_templates.yaml"

_LESSON_FIELDS = ("title", "description", "content_type", "content", "video_url", "pdf_url", "duration")


@lru_cache
def load_templates() -> dict[str, dict]:
    """Course templates keyed by template key, read once from YAML."""
    with TEMPLATES_PATH.open(encoding="utf-8") as f:
        return yaml.safe_load(f)


def list_templates() -> list[TemplateSummary]:
    return [
        TemplateSummary(
            key=key,
            title=t["title"],
            description=t["description"],
            price=t["price"],
            difficulty_level=t.get("difficulty_level"),
        )
        for key, t in load_templates().items()
    ]


def _add_course_rows(db: AsyncSession, template: dict) -> tuple[Product, Course]:
    product = Product(
        title=template["title"],
        description=template["description"],
        price=template["price"],
        image_url=template.get("image_url"),
        pdf_url=PRODUCT_PLACEHOLDER_PDF,
        featured=True,
        published=template.get("published", False),
    )
    course = Course(
        product=product,
        difficulty_level=template.get("difficulty_level"),
        estimated_duration=template.get("estimated_duration"),
        prerequisites=template.get("prerequisites"),
    )
    db.add_all([product, course])

    for i, section_tpl in enumerate(template.get("sections", [])):
        section = Section(
            course=course,
            title=section_tpl["title"],
            description=section_tpl.get("description"),
            order_index=i,
        )
        db.add(section)
        for j, lesson_tpl in enumerate(section_tpl.get("lessons", [])):
            fields = {k: lesson_tpl[k] for k in _LESSON_FIELDS if k in lesson_tpl}
            db.add(Lesson(section=section, order_index=j, **fields))
    return product, course


async def create_course_from_template(db: AsyncSession, key: str) -> TemplateResult:
    """Create product, course, sections and lessons for one template, all or nothing."""
    template = load_templates().get(key)
    if not template:
        raise NotFoundError("Invalid template key")

    try:
        product, course = _add_course_rows(db, template)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Course creation from template {key} failed: {e}")
        raise UpstreamError(f"Failed to create course from template {key}") from e

    logger.info(f"Course {course.id} created from template {key}")
    return TemplateResult(
        key=key,
        success=True,
        product_id=product.id,
        course_id=course.id,
        title=template["title"],
    )


async def _existing_course_keys(db: AsyncSession) -> set[tuple[str, str]]:
    result = await db.execute(
        select(Product.title, Course.difficulty_level).join(Course, Course.product_id == Product.id)
    )
    return {(title, level or "") for title, level in result.all()}


async def create_all_templates(db: AsyncSession) -> list[TemplateResult]:
    """Create every template course, skipping those whose title and difficulty already exist."""
    existing = await _existing_course_keys(db)
    results = []
    for key, template in load_templates().items():
        if (template["title"], template.get("difficulty_level") or "") in existing:
            results.append(
                TemplateResult(
                    key=key,
                    success=True,
                    skipped=True,
                    message=(
                        f'Course "{template["title"]}" with difficulty level '
                        f'"{template.get("difficulty_level")}" already exists, skipping creation.'
                    ),
                )
            )
            continue
        try:
            results.append(await create_course_from_template(db, key))
        except UpstreamError as e:
            results.append(TemplateResult(key=key, success=False, error=e.message))
    return results


async def delete_course(db: AsyncSession, course_id: str, product_id: str) -> None:
    """Delete lessons, sections, the course and its product in one transaction."""
    course = await db.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    if course.product_id != product_id:
        raise ValidationError("Course does not belong to this product")

    section_ids = select(Section.id).where(Section.course_id == course_id)
    try:
        await db.execute(delete(Lesson).where(Lesson.section_id.in_(section_ids)))
        await db.execute(delete(Section).where(Section.course_id == course_id))
        await db.execute(delete(Course).where(Course.id == course_id))
        await db.execute(delete(Product).where(Product.id == product_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Course deletion failed for course {course_id}: {e}")
        raise UpstreamError("Failed to delete course") from e
    logger.info(f"Course {course_id} and product {product_id} deleted")


# --- Browsing and manual creation ---


def _with_content():
    return (
        selectinload(Course.product),
        selectinload(Course.sections).selectinload(Section.lessons),
    )


async def list_courses(db: AsyncSession) -> list[Course]:
    result = await db.execute(
        select(Course).options(selectinload(Course.product)).order_by(Course.created_at.desc())
    )
    return list(result.scalars().all())


async def get_course(db: AsyncSession, course_id: str) -> Course:
    result = await db.execute(
        select(Course)
        .options(*_with_content())
        .where(Course.id == course_id)
        .execution_options(populate_existing=True)
    )
    course = result.scalar_one_or_none()
    if not course:
        raise NotFoundError("Course not found")
    return course


async def get_course_for_product(db: AsyncSession, product_id: str) -> Course:
    """The course sold as this product, with sections and lessons in order."""
    result = await db.execute(
        select(Course).options(*_with_content()).where(Course.product_id == product_id)
    )
    course = result.scalar_one_or_none()
    if not course:
        raise NotFoundError("Course not found")
    return course


async def create_course(db: AsyncSession, data: CourseCreate) -> Course:
    """Create a course and the product it is sold as. Neither is kept if either insert fails."""
    product = Product(
        title=data.title,
        description=data.description,
        price=data.price,
        image_url=data.image_url,
        pdf_url="",
        published=data.published,
    )
    db.add(product)
    try:
        await db.flush()
        course = Course(
            product_id=product.id,
            difficulty_level=data.difficulty_level,
            estimated_duration=data.estimated_duration,
            prerequisites=data.prerequisites,
        )
        db.add(course)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Course creation failed for {data.title!r}: {e}")
        raise UpstreamError("Failed to create course") from e

    logger.info(f"Course {course.id} created with product {product.id}")
    return await get_course(db, course.id)
