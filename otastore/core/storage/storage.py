"""Storage facade combining the document store, blob store and their policies."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any

from otastore.core.utils.clock import now_ms

from .access_keys import AccessKeyStore
from .blobs import BlobContent, BlobStore
from .documents import DocumentStore
from .errors import AlreadyExistsError, InvalidError, NotFoundError
from .history import PackageHistory
from .models import (
    App,
    AppUpdate,
    CollaboratorProperties,
    DeploymentUpdate,
    Package,
    Permission,
)
from .registry import BackendRegistry

logger = logging.getLogger(__name__)


def next_label(history: list[Package]) -> str:
    """Label following the last entry of ``history``: ``v1``, ``v2``, ...

    A last label that is not of the form ``v<n>`` continues from the
    history length instead.
    """
    if not history:
        return "v1"
    last_label = history[-1].label or ""
    try:
        last_version = int(last_label[1:]) if last_label.startswith("v") else None
    except ValueError:
        last_version = None
    if last_version is None:
        last_version = len(history)
    return f"v{last_version + 1}"


class Storage:
    """Storage layer entry point for the update service.

    Entity CRUD lives on :attr:`documents` and access keys on
    :attr:`access_keys`. This class adds collaborator management, the
    health check and the workflows that span both stores (package commits
    and history maintenance).

    Examples:
        >>> storage = Storage.from_config()
        >>> package = await storage.commit_package(app_id, deployment_id, Package(app_version="1.0.0"))
        >>> package.label
        'v1'
    """

    def __init__(
        self,
        documents: DocumentStore,
        blobs: BlobStore,
        history: PackageHistory | None = None,
        access_keys: AccessKeyStore | None = None,
    ):
        self.documents = documents
        self.blobs = blobs
        self.history = history or PackageHistory(blobs)
        self.access_keys = access_keys or AccessKeyStore(documents)

    @classmethod
    def from_config(
        cls,
        configuration: dict[str, dict[str, Any]] | None = None,
        registry: BackendRegistry | None = None,
    ) -> Storage:
        """Build the storage layer from named backend configuration.

        Args:
            configuration: Resolved backend configuration; defaults to
                ``configs/storage_backends.py``
            registry: Registry to use instead of building one

        Raises:
            BackendNotFoundError: If a required backend name is not configured
            BackendConfigError: If a backend configuration is invalid
        """
        registry = registry or BackendRegistry(configuration)
        documents = DocumentStore(registry.get_document_backend("documents"))
        blobs = BlobStore(
            packages=registry.get_blob_backend("packages"),
            history=registry.get_blob_backend("history"),
            cdn=registry.get_cdn("cdn"),
        )
        return cls(documents, blobs)

    async def check_health(self) -> None:
        """Check both stores concurrently; raises ConnectionFailedError."""
        await asyncio.gather(self.documents.check_health(), self.blobs.check_health())

    async def close(self) -> None:
        await self.documents.close()

    # Collaborators

    async def _owned_app(self, account_id: str, app_id: str) -> App:
        app = await self.documents.get_app(app_id, account_id)
        if app.owner_id() != account_id:
            raise InvalidError(f"Only the owner of app {app_id} can manage its collaborators")
        return app

    async def _save_collaborators(self, app: App) -> None:
        await self.documents.update_app(app.id, AppUpdate(collaborators=app.collaborators))

    async def get_collaborators(
        self, account_id: str, app_id: str
    ) -> dict[str, CollaboratorProperties]:
        """Collaborator map of an app, keyed by account id.

        Raises:
            NotFoundError: If the app does not exist or ``account_id`` is not
                one of its collaborators
        """
        app = await self.documents.get_app(app_id, account_id)
        if account_id not in app.collaborators:
            raise NotFoundError(f"App {app_id} not found")
        return app.collaborators

    async def add_collaborator(self, account_id: str, app_id: str, email: str) -> None:
        """Grant the account registered under ``email`` access to an app.

        Raises:
            InvalidError: If ``account_id`` does not own the app
            NotFoundError: If no account is registered under ``email``
            AlreadyExistsError: If that account already collaborates on the app
        """
        app = await self._owned_app(account_id, app_id)
        collaborator = await self.documents.get_account_by_email(email)
        if collaborator.id in app.collaborators:
            raise AlreadyExistsError(f"{email} is already a collaborator")
        app.collaborators[collaborator.id] = CollaboratorProperties()
        await self._save_collaborators(app)
        logger.info(f"Added collaborator {collaborator.id} to app {app_id}")

    async def remove_collaborator(self, account_id: str, app_id: str, email: str) -> None:
        """Revoke a collaborator's access; the owner cannot be removed.

        Raises:
            InvalidError: If ``account_id`` does not own the app, or ``email``
                belongs to the owner
            NotFoundError: If ``email`` is unknown or not a collaborator
        """
        app = await self._owned_app(account_id, app_id)
        collaborator = await self.documents.get_account_by_email(email)
        properties = app.collaborators.get(collaborator.id)
        if properties is None:
            raise NotFoundError(f"{email} is not a collaborator")
        if properties.permission == Permission.OWNER.value:
            raise InvalidError("Cannot remove the owner of an app")
        del app.collaborators[collaborator.id]
        await self._save_collaborators(app)
        logger.info(f"Removed collaborator {collaborator.id} from app {app_id}")

    async def transfer_app(self, account_id: str, app_id: str, email: str) -> None:
        """Make the account registered under ``email`` the app's owner.

        The previous owner stays on as a collaborator.

        Raises:
            InvalidError: If ``account_id`` does not own the app
            NotFoundError: If no account is registered under ``email``
        """
        app = await self._owned_app(account_id, app_id)
        new_owner = await self.documents.get_account_by_email(email)
        for properties in app.collaborators.values():
            if properties.permission == Permission.OWNER.value:
                properties.permission = Permission.COLLABORATOR.value
        app.collaborators.setdefault(new_owner.id, CollaboratorProperties()).permission = (
            Permission.OWNER.value
        )
        await self._save_collaborators(app)
        logger.info(f"Transferred app {app_id} to {new_owner.id}")

    # Package history

    async def commit_package(self, app_id: str, deployment_id: str, package: Package) -> Package:
        """Release ``package`` to a deployment.

        Assigns the next label and the upload time, appends the package to
        the deployment's history and then makes it the current package.

        Returns:
            The committed package

        Raises:
            NotFoundError: If the deployment does not exist
        """
        await self.documents.get_deployment(app_id, deployment_id)
        history = await self.history.load(deployment_id)
        package = replace(package, label=next_label(history), upload_time=now_ms())

        await self.history.save(deployment_id, [*history, package])
        await self.documents.update_deployment(
            app_id, deployment_id, DeploymentUpdate(package=package)
        )
        logger.info(f"Committed {package.label} to deployment {deployment_id}")
        return package

    async def get_package_history(self, app_id: str, deployment_id: str) -> list[Package]:
        await self.documents.get_deployment(app_id, deployment_id)
        return await self.history.load(deployment_id)

    async def get_package_history_from_deployment_key(self, deployment_key: str) -> list[Package]:
        info = await self.documents.get_deployment_info(deployment_key)
        return await self.history.load(info.deployment_id)

    async def clear_package_history(self, app_id: str, deployment_id: str) -> None:
        """Empty the history and clear the deployment's current package."""
        await self.documents.get_deployment(app_id, deployment_id)
        await self.history.clear(deployment_id)
        await self.documents.update_deployment(app_id, deployment_id, DeploymentUpdate(package=None))

    async def update_package_history(
        self, app_id: str, deployment_id: str, history: list[Package]
    ) -> None:
        """Replace the history; its last entry becomes the current package."""
        await self.documents.get_deployment(app_id, deployment_id)
        stored = await self.history.save(deployment_id, history)
        current = stored[-1] if stored else None
        await self.documents.update_deployment(
            app_id, deployment_id, DeploymentUpdate(package=current)
        )

    # Blobs

    async def add_blob(self, blob_id: str, data: BlobContent, length: int | None = None) -> str:
        return await self.blobs.add_blob(blob_id, data, length)

    async def get_blob_url(self, blob_id: str) -> str:
        return await self.blobs.get_blob_url(blob_id)

    async def remove_blob(self, blob_id: str) -> None:
        await self.blobs.remove_blob(blob_id)

    # Authentication

    async def get_account_id_from_access_key(self, access_key_name: str) -> str:
        return await self.access_keys.resolve_account_id(access_key_name)
