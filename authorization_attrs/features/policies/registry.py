"""
Registry of host-defined authorization policies.

A policy describes, for one record type:
- record_attrs(record): facts about the record, as a list of clauses
- a user policy constructed with the user, with one method per permission
  returning the user's grant (see grants.py)

Usage:
    registry = PolicyRegistry()

    @registry.policy_for(Article)
    class ArticlePolicy:
        @staticmethod
        def record_attrs(article):
            return [{"group_id": article.group_id}, {"owner_id": article.owner_id}]

        def __init__(self, user):
            self.user = user

        def view(self):
            return [{"owner_id": self.user.id}]
"""
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from authorization_attrs.core.exceptions import PermissionNotDefinedError, PolicyNotFoundError
from authorization_attrs.features.attributes.models import type_tag
from authorization_attrs.utils import get_logger


log = get_logger(__name__)

RecordAttrsFn = Callable[[Any], Any]
UserPolicyFactory = Callable[[Any], Any]


@dataclass(frozen=True)
class PolicyEntry:
    record_type: str
    record_attrs: RecordAttrsFn
    user_policy: UserPolicyFactory


class PolicyRegistry:
    """
    Maps record type tags to their policies.

    Args:
        user_policy_attr: Name of a nested class on each policy that holds the
            permission methods (e.g. "UserPolicy"). When None the policy class
            itself is instantiated with the user.
    """

    def __init__(self, user_policy_attr: Optional[str] = None) -> None:
        self.user_policy_attr = user_policy_attr
        self._entries: Dict[str, PolicyEntry] = {}

    def register(
        self,
        record_type: Any,
        policy: Any = None,
        *,
        record_attrs: Optional[RecordAttrsFn] = None,
        user_policy: Optional[UserPolicyFactory] = None,
    ) -> PolicyEntry:
        """
        Register the policy for a record type.

        Explicit record_attrs / user_policy arguments win over the policy
        class's own record_attrs and user policy.
        """
        tag = type_tag(record_type)

        if record_attrs is None and policy is not None:
            record_attrs = getattr(policy, "record_attrs", None)
        if not callable(record_attrs):
            raise TypeError(f"Policy for {tag} must provide a callable record_attrs(record)")

        if user_policy is None and policy is not None:
            user_policy = getattr(policy, self.user_policy_attr, None) if self.user_policy_attr else policy
        if not callable(user_policy):
            raise TypeError(f"Policy for {tag} must provide a user policy class")

        if tag in self._entries:
            log.warning(f"Replacing authorization policy for {tag}")

        entry = PolicyEntry(record_type=tag, record_attrs=record_attrs, user_policy=user_policy)
        self._entries[tag] = entry
        return entry

    def policy_for(self, record_type: Any, *, user_policy: Optional[UserPolicyFactory] = None):
        """Class decorator form of register()."""
        def decorator(policy):
            self.register(record_type, policy, user_policy=user_policy)
            return policy
        return decorator

    def registered_types(self) -> List[str]:
        return sorted(self._entries)

    def record_policy(self, record_type: Any) -> PolicyEntry:
        """
        Look up the policy for a record type, a record or a tag.

        Raises:
            PolicyNotFoundError: if nothing is registered for the type
        """
        tag = type_tag(record_type)
        try:
            return self._entries[tag]
        except KeyError:
            raise PolicyNotFoundError(
                f"No authorization policy registered for {tag}; "
                f"register one with registry.register({tag}, {tag}Policy)"
            ) from None

    def record_attrs(self, record: Any) -> Any:
        """Clauses describing the record, as returned by its policy."""
        return self.record_policy(record).record_attrs(record)

    def user_policy(self, record_type: Any, user: Any) -> Any:
        return self.record_policy(record_type).user_policy(user)

    async def grant(self, permission: str, record_type: Any, user: Any) -> Any:
        """
        The user's raw grant for a permission on a record type.

        Permission methods may be coroutines, e.g. when they load the user's
        groups through an async session.

        Raises:
            PolicyNotFoundError: if nothing is registered for the type
            PermissionNotDefinedError: if the user policy has no such permission
        """
        policy = self.user_policy(record_type, user)
        method = None if permission.startswith("_") else getattr(policy, permission, None)
        if not callable(method):
            raise PermissionNotDefinedError(
                f"{type(policy).__name__} does not define the {permission!r} permission "
                f"for {type_tag(record_type)}"
            )

        grant = method()
        if inspect.isawaitable(grant):
            grant = await grant
        return grant
