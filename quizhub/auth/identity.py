"""
Identity collaborator consulted by the access gate.

Credential checks for anonymous (access-key) students are delegated here
so the gate never touches password hashes directly.
"""
from typing import Optional

from quizhub import db
from quizhub.auth.models import User
from quizhub.auth.utils import verify_password


class IdentityStore:
    """Interface: verify external credentials and look users up."""

    def verify_credentials(self, external_id: str, secret: str) -> bool:
        raise NotImplementedError

    def find_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError


class SqlIdentityStore(IdentityStore):
    """IdentityStore backed by the ``users`` table (``usn`` is the external id)."""

    def verify_credentials(self, external_id: str, secret: str) -> bool:
        if not external_id or not secret:
            return False
        user = User.query.filter_by(usn=external_id.strip()).first()
        if user is None:
            return False
        return verify_password(secret, user.password_hash)

    def find_by_id(self, user_id: int) -> Optional[User]:
        try:
            return db.session.get(User, int(user_id))
        except (ValueError, TypeError):
            return None
