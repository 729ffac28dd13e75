"""Directory Service - User lookup and next-actor resolution"""
from typing import List, Optional, Sequence, Union

from ..domain.enums import UserRole
from ..domain.models import UserRecord
from ..repositories.user_repo import UserRepository
from ..config.settings import settings
from ..utils.cache import TTLCache
from ..utils.logger import get_logger

logger = get_logger(__name__)

RoleSpec = Union[str, UserRole, Sequence[Union[str, UserRole]]]

# Role groups used for routing
EXECUTIVE_ROLES = (UserRole.EXECUTIVE.value, UserRole.APPROVER.value)
VERIFIER_ROLES = (UserRole.VERIFIER.value,)
DISPATCHER_ROLES = (UserRole.DISPATCHER.value, UserRole.PLEADER.value)
RECEIVER_ROLES = (UserRole.RECEIVER.value,)


def _role_names(roles: RoleSpec) -> List[str]:
    if isinstance(roles, (str, UserRole)):
        roles = [roles]
    return [r.value if isinstance(r, UserRole) else r for r in roles]


def branch_matches(branches: Sequence[str], location: Optional[str]) -> bool:
    """Case-insensitive exact match of a location against a branch list"""
    if not location:
        return False
    target = location.strip().lower()
    return any(b and b.strip().lower() == target for b in branches)


class DirectoryService:
    """
    Identity gateway over the users collection

    Service-number lookups go through an injectable TTL cache; role and
    branch queries always hit the store since they drive routing.
    """

    def __init__(
        self,
        user_repo: Optional[UserRepository] = None,
        cache: Optional[TTLCache] = None
    ):
        self.user_repo = user_repo or UserRepository()
        self.cache = cache or TTLCache(
            ttl_seconds=settings.directory_cache_ttl_seconds,
            max_entries=settings.directory_cache_max_entries
        )

    def find_by_service_no(self, service_no: Optional[str]) -> Optional[UserRecord]:
        """Get a user by service number, or None"""
        if not service_no:
            return None

        key = service_no.strip().lower()
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        user = self.user_repo.get_by_service_no(service_no.strip())
        if user:
            self.cache.set(key, user)
        return user

    def find_by_role(self, roles: RoleSpec) -> List[UserRecord]:
        """Active users holding any of the roles"""
        return self.user_repo.find_by_roles(_role_names(roles))

    def find_by_role_and_branch(self, roles: RoleSpec, branch: Optional[str]) -> List[UserRecord]:
        """Active users holding any of the roles whose branches include branch"""
        if not branch:
            return []
        return [
            user for user in self.find_by_role(roles)
            if branch_matches(user.branches, branch)
        ]

    def find_first_by_role_and_branch(self, roles: RoleSpec, branch: Optional[str]) -> Optional[UserRecord]:
        users = self.find_by_role_and_branch(roles, branch)
        return users[0] if users else None

    def primary_branch(self, service_no: Optional[str]) -> Optional[str]:
        """First branch listed for a user"""
        user = self.find_by_service_no(service_no)
        if user and user.branches:
            return user.branches[0]
        return None

    def save_user(self, user: UserRecord) -> UserRecord:
        """Create or update a user and drop its cache entry"""
        saved = self.user_repo.upsert_user(user)
        self.cache.invalidate(user.service_no.strip().lower())
        return saved

    def deactivate_user(self, service_no: str) -> UserRecord:
        user = self.user_repo.set_active(service_no, False)
        self.cache.invalidate(service_no.strip().lower())
        logger.info(f"Deactivated user {service_no}", extra={"service_no": service_no})
        return user


# Process-wide directory so the lookup cache outlives a single request
_directory: Optional[DirectoryService] = None


def get_directory() -> DirectoryService:
    """Get global directory instance"""
    global _directory
    if _directory is None:
        _directory = DirectoryService()
    return _directory
