"""Storage key namespacing.

Document keys are namespaced by entity kind and owning ids so that they are
unique across collections and usable as the join key for idempotent
retries. Blob keys follow the same scheme with ``/`` separators.
"""

from __future__ import annotations

import secrets
import string

HEALTH_CHECK_KEY = "health"

_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
_ID_LENGTH = 10


def generate_id(length: int = _ID_LENGTH) -> str:
    """Generate a short URL-safe id for a new entity."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def account_key(account_id: str) -> str:
    return f"account:{account_id}"


def app_key(app_id: str) -> str:
    return f"app:{app_id}"


def deployment_key(app_id: str, deployment_id: str) -> str:
    """Storage key of a deployment.

    Scoped by app id, so it is distinct from the deployment's public ``key``
    field, which is the only token that is unique across apps.
    """
    return f"deployment:{app_id}:{deployment_id}"


def access_key_key(account_id: str, access_key_id: str) -> str:
    return f"accessKey:{account_id}:{access_key_id}"


def access_key_pointer_key(access_key_name: str) -> str:
    """Storage key of the pointer used to look up an account by bearer name."""
    return f"accessKeyPointer:{access_key_name}"


def package_history_blob_key(deployment_id: str) -> str:
    return f"packageHistory/{deployment_id}"
