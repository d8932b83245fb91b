"""
Authorization collaborator: a single owner identity.
"""
import logging

from ...protocol.types.common import Unauthorized, InvalidOwner
from ...protocol.config.params import ZERO_ADDRESS

logger = logging.getLogger(__name__)


class OwnerAuthority:
    def __init__(self, owner: str, null_identity: str = ZERO_ADDRESS):
        self.null_identity = null_identity
        if self._is_null(owner):
            raise InvalidOwner("Owner cannot be the null identity")
        self.owner = owner

    def _is_null(self, identity: str) -> bool:
        return not identity or identity.lower() == self.null_identity.lower()

    def is_owner(self, caller: str) -> bool:
        return caller == self.owner

    def require_owner(self, caller: str):
        if not self.is_owner(caller):
            raise Unauthorized(f"Caller {caller} is not the owner")

    def transfer(self, caller: str, new_owner: str) -> str:
        """Hands the capability to `new_owner`. Returns the previous owner."""
        self.require_owner(caller)
        if self._is_null(new_owner):
            raise InvalidOwner("New owner cannot be the null identity")
        previous, self.owner = self.owner, new_owner
        logger.info(f"Ownership transferred: {previous} -> {new_owner}")
        return previous
