"""
Catalog business logic: duplicate check, insert, listings, interactions
"""
import logging
from typing import Iterable, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Course, Interaction, Resource
from ..schemas import InteractionAction, ResourceCreate, ResourceType
from .access import AccessForbidden, Identity, ensure_member, is_moderator

logger = logging.getLogger(__name__)

# Course pages list known types first, in this order
TYPE_ORDER = [t.value for t in ResourceType]
OTHER_TYPE = "Other"
ARCHIVE_EXTENSIONS = {"zip", "rar", "7z", "tar", "gz"}


class ResourceNotFound(Exception):
    """No resource with the given id"""


class NotResourceOwner(AccessForbidden):
    """Caller is not the uploader of the resource"""


def is_archive(filename: str) -> bool:
    if "." not in filename:
        return False
    return filename.rsplit(".", 1)[-1].lower() in ARCHIVE_EXTENSIONS


def _type_sort_key(type_label: str) -> Tuple[int, int, str]:
    if type_label in TYPE_ORDER:
        return (0, TYPE_ORDER.index(type_label), "")
    return (1, 0, type_label)


def group_by_type(resources: Iterable[Resource]) -> list[Tuple[str, list[Resource]]]:
    """
    Group resources by type label.

    Known types come first in TYPE_ORDER, remaining labels alphabetically.
    Empty labels are grouped under "Other". Order inside a group is preserved.
    """
    groups: dict[str, list[Resource]] = {}
    for resource in resources:
        label = resource.type or OTHER_TYPE
        groups.setdefault(label, []).append(resource)
    return [(label, groups[label]) for label in sorted(groups, key=_type_sort_key)]


class CatalogService:
    """Business logic for the resource catalog"""

    @staticmethod
    async def fingerprint_exists(session: AsyncSession, fingerprint: str) -> bool:
        """
        Duplicate check: does any visible resource carry this fingerprint?

        Not linked to the later insert. Two uploads of identical bytes that
        both check before either inserts will both pass.
        """
        result = await session.execute(
            select(Resource.id)
            .where(
                Resource.file_hash == fingerprint.lower(),
                Resource.is_hidden.is_(False)
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def add_resource(
        session: AsyncSession,
        identity: Optional[Identity],
        data: ResourceCreate
    ) -> Resource:
        """Insert one resource; uploader identity comes from the session, never the payload"""
        identity = ensure_member(identity)

        resource = Resource(
            course_id=data.course_id,
            year=data.year.strip(),
            semester=data.semester,
            prof=data.prof,
            type=data.type,
            filename=data.filename,
            storage_path=data.hf_path,
            file_hash=data.file_hash,
            uploader_email=identity.email,
            uploader_name=identity.display_name,
        )
        session.add(resource)
        await session.commit()

        logger.info(f"✅ Cataloged {resource.filename} for {resource.course_id} (hash: {resource.file_hash[:8]}) by {identity.email}")
        return resource

    @staticmethod
    async def get_resource(session: AsyncSession, resource_id: str) -> Optional[Resource]:
        result = await session.execute(
            select(Resource).where(Resource.id == resource_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_course_resources(session: AsyncSession, course_id: str) -> list[Resource]:
        """Visible resources of a course, newest academic year first"""
        result = await session.execute(
            select(Resource)
            .where(
                Resource.course_id == course_id.strip().upper(),
                Resource.is_hidden.is_(False)
            )
            .order_by(Resource.year.desc(), Resource.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_courses(
        session: AsyncSession,
        query: Optional[str] = None
    ) -> list[Tuple[Course, int]]:
        """
        Courses with their visible-resource counts.

        Sorted by count (desc) then course id. `query` matches a
        case-insensitive substring of the id or the name.
        """
        counts = (
            select(Resource.course_id, func.count(Resource.id).label("resource_count"))
            .where(Resource.is_hidden.is_(False))
            .group_by(Resource.course_id)
            .subquery()
        )
        count_col = func.coalesce(counts.c.resource_count, 0)
        stmt = (
            select(Course, count_col)
            .outerjoin(counts, counts.c.course_id == Course.id)
            .order_by(count_col.desc(), Course.id.asc())
        )
        if query and query.strip():
            pattern = f"%{query.strip().lower()}%"
            stmt = stmt.where(or_(
                func.lower(Course.id).like(pattern),
                func.lower(func.coalesce(Course.name, "")).like(pattern)
            ))

        result = await session.execute(stmt)
        return [(course, count) for course, count in result.all()]

    @staticmethod
    async def delete_resource(
        session: AsyncSession,
        identity: Optional[Identity],
        resource_id: str
    ) -> Resource:
        """
        Hard-delete a catalog row (uploader only, exact email match).

        The blob is left in the object store and stays reachable by its path.
        """
        identity = ensure_member(identity)
        resource = await CatalogService.get_resource(session, resource_id)
        if resource is None:
            raise ResourceNotFound(resource_id)
        if resource.uploader_email != identity.email:
            logger.warning(f"⚠️ {identity.email} tried to delete {resource_id} owned by {resource.uploader_email}")
            raise NotResourceOwner("Only the uploader can delete this resource")

        await session.delete(resource)
        await session.commit()

        logger.info(f"🗑️  Deleted resource {resource_id} (blob {resource.storage_path} kept)")
        return resource

    @staticmethod
    async def record_interaction(
        session: AsyncSession,
        identity: Optional[Identity],
        resource_id: str,
        action: InteractionAction
    ) -> Tuple[Resource, bool]:
        """
        Log an upvote or report.

        A voter's repeated action on the same resource is ignored, so each
        voter adds at most one upvote. Returns (resource, recorded).
        """
        identity = ensure_member(identity)
        resource = await CatalogService.get_resource(session, resource_id)
        if resource is None:
            raise ResourceNotFound(resource_id)

        result = await session.execute(
            select(Interaction.id)
            .where(
                Interaction.user_email == identity.email,
                Interaction.resource_id == resource_id,
                Interaction.action_type == action.value
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            logger.info(f"♻️ Repeated {action.value} on {resource_id} by {identity.email} ignored")
            return resource, False

        session.add(Interaction(
            user_email=identity.email,
            resource_id=resource_id,
            action_type=action.value
        ))
        if action is InteractionAction.UPVOTE:
            await session.execute(
                update(Resource)
                .where(Resource.id == resource_id)
                .values(upvotes=Resource.upvotes + 1)
            )
        await session.commit()
        await session.refresh(resource)

        logger.info(f"👍 {action.value} on {resource_id} by {identity.email} (upvotes={resource.upvotes})")
        return resource, True

    @staticmethod
    async def set_visibility(
        session: AsyncSession,
        identity: Optional[Identity],
        resource_id: str,
        is_hidden: bool
    ) -> Resource:
        """Moderation: hide or unhide a resource"""
        identity = ensure_member(identity)
        if not is_moderator(identity):
            raise AccessForbidden("Moderator access required")

        resource = await CatalogService.get_resource(session, resource_id)
        if resource is None:
            raise ResourceNotFound(resource_id)

        resource.is_hidden = is_hidden
        await session.commit()

        logger.info(f"🛡️ {identity.email} set is_hidden={is_hidden} on {resource_id}")
        return resource
