from fastapi import Depends

from content_hub.core.deps import get_current_identity
from content_hub.core.errors import Forbidden
from content_hub.core.identity import Identity

ROLE_RANK = {"user": 1, "admin": 2}

def require_role(min_role: str):
    def _dep(identity: Identity = Depends(get_current_identity)) -> Identity:
        if ROLE_RANK.get(identity.role, 0) < ROLE_RANK[min_role]:
            raise Forbidden("Admin required" if min_role == "admin" else "Not enough rights")
        return identity
    return _dep

require_admin = require_role("admin")
