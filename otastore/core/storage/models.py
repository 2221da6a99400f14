"""Entity records stored by the document and blob stores.

Records use snake_case attributes and serialize to the camelCase field names
used in stored documents and package-history JSON. Partial updates are typed
per entity: every field defaults to :data:`UNSET` and only the fields that
were set are merged into the stored document.
"""

from __future__ import annotations

from dataclasses import MISSING, dataclass, field, fields
from enum import Enum
from typing import Any

from .errors import InvalidError


class _Unset:
    """Marker for a partial-update field that was not supplied."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class Permission(str, Enum):
    OWNER = "Owner"
    COLLABORATOR = "Collaborator"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _field_name(f) -> str:
    return f.metadata.get("name") or _camel(f.name)


def _dump(value: Any) -> Any:
    if isinstance(value, _Record):
        return value.to_document()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _dump(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_dump(item) for item in value]
    return value


class _Record:
    """Serialization shared by all stored records."""

    def to_document(self) -> dict[str, Any]:
        """Return the stored representation, omitting unset optional fields."""
        document: dict[str, Any] = {}
        for f in fields(self):
            if f.metadata.get("persist") is False:
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            document[_field_name(f)] = _dump(value)
        return document

    @classmethod
    def _kwargs(cls, document: dict[str, Any]) -> dict[str, Any]:
        missing = [
            _field_name(f)
            for f in fields(cls)
            if f.default is MISSING
            and f.default_factory is MISSING
            and _field_name(f) not in document
        ]
        if missing:
            raise InvalidError(f"Stored {cls.__name__} is missing {', '.join(missing)}")
        return {f.name: document[_field_name(f)] for f in fields(cls) if _field_name(f) in document}

    @classmethod
    def from_document(cls, document: dict[str, Any]):
        """Build a record from a stored document, ignoring unknown fields."""
        return cls(**cls._kwargs(document))


@dataclass
class Account(_Record):
    email: str
    name: str
    id: str | None = None
    created_time: int | None = None
    github_id: str | None = field(default=None, metadata={"name": "gitHubId"})
    microsoft_id: str | None = None
    azure_ad_id: str | None = None


@dataclass
class CollaboratorProperties(_Record):
    permission: str = Permission.COLLABORATOR.value
    # computed per caller on read, never persisted
    is_current_account: bool = field(default=False, metadata={"persist": False})


@dataclass
class App(_Record):
    name: str
    id: str | None = None
    created_time: int | None = None
    collaborators: dict[str, CollaboratorProperties] = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> App:
        kwargs = cls._kwargs(document)
        kwargs["collaborators"] = {
            account_id: CollaboratorProperties.from_document(properties)
            for account_id, properties in (kwargs.get("collaborators") or {}).items()
        }
        return cls(**kwargs)

    def owner_id(self) -> str | None:
        """Return the account id holding the Owner permission, if any."""
        for account_id, properties in self.collaborators.items():
            if properties.permission == Permission.OWNER.value:
                return account_id
        return None


@dataclass
class BlobInfo(_Record):
    size: int
    url: str


@dataclass
class Package(_Record):
    app_version: str
    blob_url: str = ""
    description: str = ""
    diff_package_map: dict[str, BlobInfo] | None = None
    is_disabled: bool = False
    is_mandatory: bool = False
    label: str | None = None
    manifest_blob_url: str = ""
    package_hash: str = ""
    rollout: int | None = None
    size: int = 0
    upload_time: int | None = None
    released_by: str | None = None
    release_method: str | None = None
    original_deployment: str | None = None
    original_label: str | None = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Package:
        kwargs = cls._kwargs(document)
        diff_map = kwargs.get("diff_package_map")
        if diff_map is not None:
            kwargs["diff_package_map"] = {
                package_hash: BlobInfo.from_document(info) for package_hash, info in diff_map.items()
            }
        return cls(**kwargs)


@dataclass
class Deployment(_Record):
    name: str
    key: str
    id: str | None = None
    app_id: str | None = None
    created_time: int | None = None
    package: Package | None = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Deployment:
        kwargs = cls._kwargs(document)
        if kwargs.get("package") is not None:
            kwargs["package"] = Package.from_document(kwargs["package"])
        return cls(**kwargs)


@dataclass
class AccessKey(_Record):
    name: str
    expires: int
    friendly_name: str = ""
    id: str | None = None
    created_time: int | None = None
    description: str | None = None
    is_session: bool = False
    # owning account; stored for lookups but never returned to callers
    created_by: str | None = None


@dataclass
class AccessKeyPointer(_Record):
    name: str
    account_id: str
    expires: int


@dataclass
class DeploymentInfo:
    """Resolved reference to a deployment; not a stored entity."""

    app_id: str
    deployment_id: str
    deployment_key: str | None = None


class _Update:
    """Typed partial update; only supplied fields are merged.

    A None value removes an optional field from the stored document. Fields
    listed in ``_required`` cannot be removed, so None is rejected for them.
    """

    _required: tuple[str, ...] = ()

    def to_set(self) -> dict[str, Any]:
        """Return the supplied fields under their stored names.

        Raises:
            InvalidError: If a required field is set to None
        """
        cleared = [name for name in self._required if getattr(self, name) is None]
        if cleared:
            raise InvalidError(f"{type(self).__name__} cannot clear {', '.join(cleared)}")
        return {
            _field_name(f): _dump(getattr(self, f.name))
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }


@dataclass
class AccountUpdate(_Update):
    _required = ("name", "email")

    name: str = UNSET
    email: str = UNSET
    github_id: str | None = field(default=UNSET, metadata={"name": "gitHubId"})
    microsoft_id: str | None = UNSET
    azure_ad_id: str | None = UNSET

    def to_set(self) -> dict[str, Any]:
        updates = super().to_set()
        if isinstance(updates.get("email"), str):
            updates["email"] = updates["email"].lower()
        return updates


@dataclass
class AppUpdate(_Update):
    _required = ("name", "collaborators")

    name: str = UNSET
    collaborators: dict[str, CollaboratorProperties] = UNSET


@dataclass
class DeploymentUpdate(_Update):
    _required = ("name", "key")

    name: str = UNSET
    key: str = UNSET
    # None clears the current package
    package: Package | None = UNSET


@dataclass
class AccessKeyUpdate(_Update):
    _required = ("friendly_name", "expires", "is_session")

    friendly_name: str = UNSET
    expires: int = UNSET
    description: str | None = UNSET
    is_session: bool = UNSET
