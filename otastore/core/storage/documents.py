"""Document store adapter for accounts, apps, deployments and access keys.

Every public operation awaits the adapter's one-time setup (connection check
and index creation) and then runs the blocking backend call in a worker
thread. Entities are stored under namespaced keys in ``_id``; that field is
stripped before anything is returned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any, TypeVar

from otastore.core.utils.clock import now_ms
from otastore.core.utils.setup import OneTimeSetup

from . import keys
from .errors import ConnectionFailedError, NotFoundError, StorageError, map_error
from .models import (
    Account,
    AccountUpdate,
    App,
    AppUpdate,
    Deployment,
    DeploymentInfo,
    DeploymentUpdate,
)
from .object import IndexDefinition, ObjectStorageBackend, SortOrder

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACCOUNTS = "accounts"
APPS = "apps"
DEPLOYMENTS = "deployments"
ACCESS_KEYS = "accessKeys"
ACCESS_KEY_POINTERS = "accessKeyPointers"

STORAGE_ID_FIELD = "_id"

INDEXES: dict[str, list[IndexDefinition]] = {
    ACCOUNTS: [IndexDefinition.on("email", unique=True)],
    APPS: [IndexDefinition.on("name")],
    DEPLOYMENTS: [IndexDefinition.on("key", unique=True), IndexDefinition.on("appId")],
    ACCESS_KEYS: [IndexDefinition.on("createdBy")],
    ACCESS_KEY_POINTERS: [IndexDefinition.on("name", unique=True)],
}


def _strip(document: dict[str, Any] | None) -> dict[str, Any] | None:
    if document is not None:
        document.pop(STORAGE_ID_FIELD, None)
    return document


def _update_operators(fields: dict[str, Any]) -> dict[str, Any]:
    """Build ``$set``/``$unset`` operators; a None value removes the field."""
    operators: dict[str, Any] = {}
    to_set = {name: value for name, value in fields.items() if value is not None}
    to_unset = {name: "" for name, value in fields.items() if value is None}
    if to_set:
        operators["$set"] = to_set
    if to_unset:
        operators["$unset"] = to_unset
    return operators


def _mark_current_account(app: App, account_id: str | None) -> App:
    for collaborator_id, properties in app.collaborators.items():
        properties.is_current_account = collaborator_id == account_id
    return app


class DocumentStore:
    """Async document store adapter over an :class:`ObjectStorageBackend`."""

    def __init__(self, backend: ObjectStorageBackend):
        """Initialize the adapter; setup starts on the first operation.

        Args:
            backend: Blocking document backend (MongoDB or in-memory)
        """
        self._backend = backend
        self._setup = OneTimeSetup(self._run_setup, name="document store setup")

    @property
    def backend(self) -> ObjectStorageBackend:
        return self._backend

    async def _run_setup(self) -> None:
        await asyncio.to_thread(self._backend.connect)
        for collection, indexes in INDEXES.items():
            for index in indexes:
                await asyncio.to_thread(self._backend.create_index, collection, index)
        logger.info("Document store ready")

    async def ready(self) -> None:
        """Wait for the one-time setup to complete."""
        await self._setup.wait()

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        try:
            await self._setup.wait()
            return await asyncio.to_thread(func, *args)
        except StorageError:
            raise
        except Exception as e:
            raise map_error(e) from e

    # Document primitives

    async def insert(self, collection: str, document: dict[str, Any]) -> str:
        """Insert a document; ``AlreadyExistsError`` on key or index collision."""
        return await self._call(self._backend.insert_one, collection, document)

    async def find_one(self, collection: str, filter: dict[str, Any]) -> dict[str, Any] | None:
        """Find one document with its storage id stripped."""
        return _strip(await self._call(self._backend.find_one, collection, filter))

    async def find(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
        sort: list[tuple[str, SortOrder]] | None = None,
    ) -> list[dict[str, Any]]:
        """Find all matching documents with their storage ids stripped."""
        documents = await self._call(
            lambda: list(self._backend.find(collection, filter, sort=sort))
        )
        return [_strip(document) for document in documents]

    async def update(self, collection: str, filter: dict[str, Any], fields: dict[str, Any]) -> int:
        """Merge ``fields`` into the matching document.

        Returns:
            Number of matched documents; with no fields, 1 if the document exists
        """
        operators = _update_operators(fields)
        if not operators:
            return 0 if await self.find_one(collection, filter) is None else 1
        return await self._call(self._backend.update_one, collection, filter, operators)

    async def delete(self, collection: str, filter: dict[str, Any]) -> int:
        return await self._call(self._backend.delete_one, collection, filter)

    async def delete_many(self, collection: str, filter: dict[str, Any]) -> int:
        return await self._call(self._backend.delete_many, collection, filter)

    async def _update_or_raise(
        self, collection: str, filter: dict[str, Any], fields: dict[str, Any], what: str
    ) -> None:
        if await self.update(collection, filter, fields) == 0:
            raise NotFoundError(f"{what} not found")

    # Health

    async def check_health(self) -> None:
        """Ping the backend; any failure is reported as ConnectionFailedError."""
        try:
            await self._call(self._backend.ping)
        except ConnectionFailedError:
            raise
        except StorageError as e:
            raise ConnectionFailedError(f"Document store health check failed: {e}") from e

    async def close(self) -> None:
        await asyncio.to_thread(self._backend.close)

    # Accounts

    async def add_account(self, account: Account) -> str:
        """Insert an account; its email is stored lowercased.

        Returns:
            The account id (generated when not supplied)
        """
        account = replace(
            account,
            id=account.id or keys.generate_id(),
            email=account.email.lower(),
            created_time=account.created_time or now_ms(),
        )
        document = {STORAGE_ID_FIELD: keys.account_key(account.id), **account.to_document()}
        await self.insert(ACCOUNTS, document)
        logger.debug(f"Added account {account.id}")
        return account.id

    async def get_account(self, account_id: str) -> Account:
        document = await self.find_one(ACCOUNTS, {STORAGE_ID_FIELD: keys.account_key(account_id)})
        if document is None:
            raise NotFoundError(f"Account {account_id} not found")
        return Account.from_document(document)

    async def get_account_by_email(self, email: str) -> Account:
        document = await self.find_one(ACCOUNTS, {"email": email.lower()})
        if document is None:
            raise NotFoundError("The specified e-mail address doesn't represent a registered user")
        return Account.from_document(document)

    async def update_account(self, email: str, updates: AccountUpdate) -> None:
        """Merge ``updates`` into the account registered under ``email``."""
        await self._update_or_raise(
            ACCOUNTS, {"email": email.lower()}, updates.to_set(), f"Account {email}"
        )

    async def update_account_by_id(self, account_id: str, updates: AccountUpdate) -> None:
        await self._update_or_raise(
            ACCOUNTS,
            {STORAGE_ID_FIELD: keys.account_key(account_id)},
            updates.to_set(),
            f"Account {account_id}",
        )

    async def remove_account(self, account_id: str) -> None:
        if await self.delete(ACCOUNTS, {STORAGE_ID_FIELD: keys.account_key(account_id)}) == 0:
            raise NotFoundError(f"Account {account_id} not found")

    # Apps

    async def add_app(self, app: App) -> str:
        """Insert an app with its collaborator map.

        Returns:
            The app id (generated when not supplied)
        """
        app = replace(
            app, id=app.id or keys.generate_id(), created_time=app.created_time or now_ms()
        )
        document = {STORAGE_ID_FIELD: keys.app_key(app.id), **app.to_document()}
        await self.insert(APPS, document)
        logger.debug(f"Added app {app.id}")
        return app.id

    async def get_app(self, app_id: str, account_id: str | None = None) -> App:
        """Fetch an app, flagging ``account_id`` as the current collaborator."""
        document = await self.find_one(APPS, {STORAGE_ID_FIELD: keys.app_key(app_id)})
        if document is None:
            raise NotFoundError(f"App {app_id} not found")
        return _mark_current_account(App.from_document(document), account_id)

    async def get_apps(self, account_id: str) -> list[App]:
        """Every app whose collaborator map contains ``account_id``."""
        documents = await self.find(APPS, {f"collaborators.{account_id}": {"$exists": True}})
        return [_mark_current_account(App.from_document(doc), account_id) for doc in documents]

    async def update_app(self, app_id: str, updates: AppUpdate) -> None:
        await self._update_or_raise(
            APPS, {STORAGE_ID_FIELD: keys.app_key(app_id)}, updates.to_set(), f"App {app_id}"
        )

    async def remove_app(self, app_id: str) -> None:
        """Delete an app and then every deployment it owns.

        The two deletes are separate calls. Retrying after a failed cascade
        removes the leftover deployments; NotFoundError is raised only when
        neither the app nor any of its deployments existed.
        """
        removed_app = await self.delete(APPS, {STORAGE_ID_FIELD: keys.app_key(app_id)})
        removed_deployments = await self.delete_many(DEPLOYMENTS, {"appId": app_id})
        if removed_app == 0 and removed_deployments == 0:
            raise NotFoundError(f"App {app_id} not found")
        logger.info(f"Removed app {app_id} and {removed_deployments} deployment(s)")

    # Deployments

    async def add_deployment(self, app_id: str, deployment: Deployment) -> str:
        """Insert a deployment under an existing app.

        Returns:
            The deployment id (generated when not supplied)

        Raises:
            NotFoundError: If the app does not exist
            AlreadyExistsError: If the id or the public key is taken
        """
        await self.get_app(app_id)
        deployment = replace(
            deployment,
            id=deployment.id or keys.generate_id(),
            app_id=app_id,
            created_time=deployment.created_time or now_ms(),
        )
        document = {
            STORAGE_ID_FIELD: keys.deployment_key(app_id, deployment.id),
            **deployment.to_document(),
        }
        await self.insert(DEPLOYMENTS, document)
        logger.debug(f"Added deployment {deployment.id} to app {app_id}")
        return deployment.id

    async def get_deployment(self, app_id: str, deployment_id: str) -> Deployment:
        document = await self.find_one(
            DEPLOYMENTS, {STORAGE_ID_FIELD: keys.deployment_key(app_id, deployment_id)}
        )
        if document is None:
            raise NotFoundError(f"Deployment {deployment_id} not found")
        return Deployment.from_document(document)

    async def get_deployments(self, app_id: str) -> list[Deployment]:
        documents = await self.find(DEPLOYMENTS, {"appId": app_id})
        return [Deployment.from_document(document) for document in documents]

    async def get_deployment_by_key(self, deployment_key: str) -> Deployment:
        document = await self.find_one(DEPLOYMENTS, {"key": deployment_key})
        if document is None:
            raise NotFoundError("Deployment key not found")
        return Deployment.from_document(document)

    async def update_deployment(
        self, app_id: str, deployment_id: str, updates: DeploymentUpdate
    ) -> None:
        await self._update_or_raise(
            DEPLOYMENTS,
            {STORAGE_ID_FIELD: keys.deployment_key(app_id, deployment_id)},
            updates.to_set(),
            f"Deployment {deployment_id}",
        )

    async def remove_deployment(self, app_id: str, deployment_id: str) -> None:
        deleted = await self.delete(
            DEPLOYMENTS, {STORAGE_ID_FIELD: keys.deployment_key(app_id, deployment_id)}
        )
        if deleted == 0:
            raise NotFoundError(f"Deployment {deployment_id} not found")

    async def get_deployment_info(
        self,
        deployment_key: str,
        account_id: str | None = None,
        app_name: str | None = None,
    ) -> DeploymentInfo:
        """Resolve a public deployment key to its app and deployment ids.

        The app is located first by the optional ``account_id`` (collaborator)
        and ``app_name`` filters, then the deployment by its key. Either
        lookup failing raises NotFoundError. Without filters the app is
        looked up by the deployment's owning app id.
        """
        app_filter: dict[str, Any] = {}
        if app_name:
            app_filter["name"] = app_name
        if account_id:
            app_filter[f"collaborators.{account_id}"] = {"$exists": True}

        candidates: list[dict[str, Any]] = []
        if app_filter:
            candidates = await self.find(APPS, app_filter)
            if not candidates:
                raise NotFoundError("No app matches the given account and name")

        deployment = await self.find_one(DEPLOYMENTS, {"key": deployment_key})
        if deployment is None:
            raise NotFoundError("Deployment key not found")

        if app_filter:
            app = next((c for c in candidates if c.get("id") == deployment.get("appId")), None)
        else:
            app = await self.find_one(
                APPS, {STORAGE_ID_FIELD: keys.app_key(deployment.get("appId", ""))}
            )
        if app is None:
            raise NotFoundError("Deployment key does not belong to a matching app")

        return DeploymentInfo(
            app_id=app["id"], deployment_id=deployment["id"], deployment_key=deployment_key
        )
