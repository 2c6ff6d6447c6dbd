"""Row-Level Security (RLS) rules for church profiles."""
from sqlalchemy import false
from sqlalchemy.orm import Query
from visita.core.workflow import ActorRole
from visita.models.church import Church
from visita.models.user import User


def can_modify_church(church: Church, user: User) -> bool:
    """
    Whether a user may edit a church's profile fields.

    - Parish Secretary: only their own parish's church
    - Chancery Office: any church in their diocese
    - Museum Researcher: never (reviews only)
    """
    if user.role == ActorRole.PARISH_SECRETARY.value:
        return user.parish_id is not None and user.parish_id == church.parish_id
    if user.role == ActorRole.CHANCERY_OFFICE.value:
        return user.diocese == church.diocese
    return False


def can_view_church(church: Church, user: User) -> bool:
    if user.role == ActorRole.MUSEUM_RESEARCHER.value:
        return True
    return can_modify_church(church, user)


def apply_church_rls(query: Query, user: User) -> Query:
    """
    Restrict a church query to what the user may see.

    Museum researchers serve both dioceses and see everything.
    """
    if user.role == ActorRole.PARISH_SECRETARY.value:
        return query.filter(Church.parish_id == user.parish_id)
    if user.role == ActorRole.CHANCERY_OFFICE.value:
        return query.filter(Church.diocese == user.diocese)
    if user.role == ActorRole.MUSEUM_RESEARCHER.value:
        return query
    return query.filter(false())
