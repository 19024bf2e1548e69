# services/access.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saga.errors import ProjectNotFound
from saga.models import Project, ProjectRole, RoleStatus


async def has_active_role(db: AsyncSession, project_id: int, user_id: int) -> bool:
    q = (
        select(ProjectRole.id)
        .join(Project, Project.id == ProjectRole.project_id)
        .where(ProjectRole.project_id == project_id)
        .where(ProjectRole.user_id == user_id)
        .where(ProjectRole.status == RoleStatus.active)
        .limit(1)
    )
    return bool((await db.execute(q)).scalar_one_or_none())


async def ensure_project_access(db: AsyncSession, project_id: int, caller_id: int) -> None:
    # Unknown project and missing role look the same to the caller
    if not await has_active_role(db, project_id, caller_id):
        raise ProjectNotFound(project_id, caller_id)
