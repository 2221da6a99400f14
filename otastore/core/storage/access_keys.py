"""Access keys and the name -> account pointer used to authenticate them.

A key is stored under its owning account; a separate pointer document keyed
by the key's name carries the account id and expiry so that a bearer token
resolves to an account in one lookup. The two writes are not atomic: a
failure between them leaves a key without a pointer (unusable) or, on
removal, a pointer without a key.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from otastore.core.utils.clock import now_ms

from . import keys
from .documents import ACCESS_KEY_POINTERS, ACCESS_KEYS, STORAGE_ID_FIELD, DocumentStore
from .errors import ExpiredError, NotFoundError
from .models import AccessKey, AccessKeyPointer, AccessKeyUpdate

logger = logging.getLogger(__name__)


def _public(document: dict) -> AccessKey:
    document.pop("createdBy", None)
    return AccessKey.from_document(document)


class AccessKeyStore:
    """Access-key records and pointer maintenance over the document store."""

    def __init__(self, documents: DocumentStore):
        self._documents = documents

    async def add(self, account_id: str, access_key: AccessKey) -> str:
        """Store an access key, then its pointer.

        Returns:
            The access key id (generated when not supplied)

        Raises:
            AlreadyExistsError: If the id or the key name is already taken
        """
        access_key = replace(
            access_key,
            id=access_key.id or keys.generate_id(),
            created_time=access_key.created_time or now_ms(),
            created_by=account_id,
        )
        await self._documents.insert(
            ACCESS_KEYS,
            {
                STORAGE_ID_FIELD: keys.access_key_key(account_id, access_key.id),
                **access_key.to_document(),
            },
        )
        pointer = AccessKeyPointer(
            name=access_key.name, account_id=account_id, expires=access_key.expires
        )
        await self._documents.insert(
            ACCESS_KEY_POINTERS,
            {STORAGE_ID_FIELD: keys.access_key_pointer_key(access_key.name), **pointer.to_document()},
        )
        logger.debug(f"Added access key {access_key.id} for account {account_id}")
        return access_key.id

    async def get(self, account_id: str, access_key_id: str) -> AccessKey:
        document = await self._documents.find_one(
            ACCESS_KEYS, {STORAGE_ID_FIELD: keys.access_key_key(account_id, access_key_id)}
        )
        if document is None:
            raise NotFoundError(f"Access key {access_key_id} not found")
        return _public(document)

    async def list(self, account_id: str) -> list[AccessKey]:
        documents = await self._documents.find(ACCESS_KEYS, {"createdBy": account_id})
        return [_public(document) for document in documents]

    async def resolve_account_id(self, name: str) -> str:
        """Resolve a bearer-token name to the owning account id.

        Expiry is checked against the wall clock on every call.

        Raises:
            NotFoundError: If no key has this name
            ExpiredError: If the key's expiry time has passed
        """
        document = await self._documents.find_one(
            ACCESS_KEY_POINTERS, {STORAGE_ID_FIELD: keys.access_key_pointer_key(name)}
        )
        if document is None:
            raise NotFoundError("The access key is not recognized")
        pointer = AccessKeyPointer.from_document(document)
        if now_ms() >= pointer.expires:
            raise ExpiredError("The access key has expired")
        return pointer.account_id

    async def update(self, account_id: str, access_key_id: str, updates: AccessKeyUpdate) -> None:
        """Merge ``updates`` into the key; a new expiry is copied to its pointer."""
        fields = updates.to_set()
        key_filter = {STORAGE_ID_FIELD: keys.access_key_key(account_id, access_key_id)}
        if await self._documents.update(ACCESS_KEYS, key_filter, fields) == 0:
            raise NotFoundError(f"Access key {access_key_id} not found")

        if "expires" in fields:
            access_key = await self.get(account_id, access_key_id)
            matched = await self._documents.update(
                ACCESS_KEY_POINTERS,
                {STORAGE_ID_FIELD: keys.access_key_pointer_key(access_key.name)},
                {"expires": fields["expires"]},
            )
            if matched == 0:
                logger.warning(f"Access key {access_key_id} has no pointer to update")

    async def remove(self, account_id: str, access_key_id: str) -> None:
        """Delete the key, then its pointer."""
        access_key = await self.get(account_id, access_key_id)
        await self._documents.delete(
            ACCESS_KEYS, {STORAGE_ID_FIELD: keys.access_key_key(account_id, access_key_id)}
        )
        await self._documents.delete(
            ACCESS_KEY_POINTERS, {STORAGE_ID_FIELD: keys.access_key_pointer_key(access_key.name)}
        )
        logger.debug(f"Removed access key {access_key_id} for account {account_id}")
