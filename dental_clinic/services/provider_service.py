import logging

from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.errors import ConflictError, NotFoundError, UniqueConstraintError, ValidationError
from dental_clinic.models.provider import Provider, ProviderCreate, ProviderUpdate, Specialty
from dental_clinic.models.user import Role
from dental_clinic.services import store
from dental_clinic.services.audit import log_storage_failure
from dental_clinic.services.policy import Action, Actor, require

logger = logging.getLogger(__name__)


async def create_provider(session: AsyncSession, actor: Actor, data: ProviderCreate) -> Provider:
    require(actor, Action.MANAGE_PROVIDER, message="Only an admin can register a dentist")
    with log_storage_failure(logger, "create_provider", actor, user_id=data.user_id, name=data.name):
        user = await store.find_user(session, data.user_id)
        if user is None:
            raise NotFoundError(f"No user found with the ID {data.user_id}")
        if user.role != Role.DENTIST:
            raise ValidationError(f"User {data.user_id} does not have the dentist role")
        if await store.find_provider_by_user(session, data.user_id) is not None:
            raise ConflictError(f"User {data.user_id} is already registered as a dentist")
        provider = Provider(
            user_id=data.user_id,
            name=data.name,
            years_of_experience=data.years_of_experience,
            area_of_expertise=[s.value for s in data.area_of_expertise],
        )
        try:
            provider = await store.insert_provider(session, provider)
        except UniqueConstraintError as e:
            raise ConflictError(f"A dentist named {data.name!r} already exists") from e
    logger.info("Dentist %s registered for user %s by actor=%s", provider.id, data.user_id, actor.id)
    return provider


async def get_provider(session: AsyncSession, provider_id: int) -> Provider:
    provider = await store.find_provider(session, provider_id)
    if provider is None:
        raise NotFoundError(f"Dentist not found with id of {provider_id}")
    return provider


async def list_providers(session: AsyncSession) -> list[Provider]:
    return await store.find_providers(session)


async def update_provider(session: AsyncSession, actor: Actor, provider_id: int, patch: ProviderUpdate) -> Provider:
    """Change a dentist's name, experience or expertise. The linked account never changes."""
    require(actor, Action.MANAGE_PROVIDER, message="Only an admin can update a dentist")
    with log_storage_failure(logger, "update_provider", actor, provider_id=provider_id):
        provider = await get_provider(session, provider_id)
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "area_of_expertise" in changes:
            changes["area_of_expertise"] = [Specialty(s).value for s in changes["area_of_expertise"]]
        changes = {k: v for k, v in changes.items() if getattr(provider, k) != v}
        if not changes:
            return provider
        try:
            provider = await store.update_provider(session, provider, changes)
        except UniqueConstraintError as e:
            raise ConflictError(f"A dentist named {changes.get('name')!r} already exists") from e
    logger.info("Dentist %s updated by actor=%s: %s", provider_id, actor.id, sorted(changes))
    return provider


async def delete_provider(session: AsyncSession, actor: Actor, provider_id: int) -> int:
    """Delete a dentist and every booking made with them. Returns the number of bookings removed."""
    require(actor, Action.MANAGE_PROVIDER, message="Only an admin can remove a dentist")
    with log_storage_failure(logger, "delete_provider", actor, provider_id=provider_id):
        provider = await get_provider(session, provider_id)
        removed = await store.delete_bookings_for_provider(session, provider.id)
        await store.delete_provider(session, provider)
    logger.info("Dentist %s deleted by actor=%s along with %d booking(s)", provider_id, actor.id, removed)
    return removed
