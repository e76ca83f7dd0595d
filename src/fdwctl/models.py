"""Pydantic models for foreign-data objects and the desired state.

This module contains:
- Credential models: Secret, SecretK8s
- Object models: Extension, ForeignServer, UserMap, Schema, Grant
- Enum identity: SchemaEnum
- Desired state: DesiredState

Field aliases match the keys of the YAML/JSON configuration document
(``localuser``, ``remoteschema``, ``fromEnv`` ...); snake-case names are
accepted as well.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_WRAPPER = "postgres_fdw"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Secrets
# ============================================================================


class SecretK8s(_ConfigModel):
    """Location of a base64-encoded credential in a Kubernetes secret."""

    namespace: str = ""
    secret_name: str = Field(default="", alias="secretName")
    secret_key: str = Field(default="", alias="secretKey")

    def is_defined(self) -> bool:
        """All three coordinates are required to look the secret up."""
        return bool(self.namespace and self.secret_name and self.secret_key)


class Secret(_ConfigModel):
    """Where to retrieve a credential from.

    Sources are consulted in a fixed order: ``value``, ``from_env``,
    ``from_file``, ``from_k8s``.

    Example:
        >>> Secret(value="hunter2").is_defined()
        True
        >>> Secret().is_defined()
        False
    """

    value: str = ""
    from_env: str = Field(default="", alias="fromEnv")
    from_file: str = Field(default="", alias="fromFile")
    from_k8s: SecretK8s = Field(default_factory=SecretK8s, alias="fromK8s")

    def is_defined(self) -> bool:
        """True if at least one source is configured."""
        return bool(
            self.value or self.from_env or self.from_file or self.from_k8s.is_defined()
        )


# ============================================================================
# Objects
# ============================================================================


class Extension(_ConfigModel):
    """A PostgreSQL extension. ``version`` is only known from introspection."""

    name: str
    version: str = Field(default="", exclude=True)

    def equals(self, other: "Extension") -> bool:
        return self.name == other.name


class UserMap(_ConfigModel):
    """A user mapping from a local user to a remote user on a foreign server."""

    server_name: str = Field(default="", exclude=True)
    local_user: str = Field(alias="localuser")
    remote_user: str = Field(default="", alias="remoteuser")
    remote_secret: Secret = Field(default_factory=Secret, alias="remotesecret")

    @model_validator(mode="before")
    @classmethod
    def _remote_password_shorthand(cls, data: Any) -> Any:
        """Accept ``remotepassword: x`` as ``remotesecret: {value: x}``."""
        if isinstance(data, dict):
            password = data.get("remotepassword", data.get("remote_password"))
            has_secret = "remotesecret" in data or "remote_secret" in data
            if password is not None and not has_secret:
                data = {
                    k: v
                    for k, v in data.items()
                    if k not in ("remotepassword", "remote_password")
                }
                data["remotesecret"] = {"value": password}
        return data

    def equals(self, other: "UserMap") -> bool:
        """Compare mapping identity, remote user and the resolved password."""
        return (
            self.local_user == other.local_user
            and self.remote_user == other.remote_user
            and self.remote_secret.value == other.remote_secret.value
        )


class GrantPermissions(_ConfigModel):
    """Permissions granted on an imported schema."""

    usage: bool = True
    select: bool = True


class Grant(_ConfigModel):
    """Permissions for one local user on an imported schema."""

    user: str
    permissions: GrantPermissions = Field(default_factory=GrantPermissions)


class Schema(_ConfigModel):
    """A remote schema imported into a local schema through a foreign server."""

    server_name: str = Field(default="", exclude=True)
    local_schema: str = Field(alias="localschema")
    remote_schema: str = Field(default="", alias="remoteschema")
    import_enums: bool = Field(default=False, alias="importenums")
    enum_connection: str = Field(default="", alias="enumconnection")
    enum_secret: Secret = Field(default_factory=Secret, alias="enumsecret")
    grants: list[Grant] = Field(default_factory=list)

    @field_validator("grants", mode="before")
    @classmethod
    def _normalize_grants(cls, value: Any) -> Any:
        """Accept ``{users: [a, b]}`` and bare user names."""
        if value is None:
            return []
        if isinstance(value, dict) and "users" in value:
            value = value["users"] or []
        if isinstance(value, list):
            return [{"user": item} if isinstance(item, str) else item for item in value]
        return value


class ForeignServer(_ConfigModel):
    """A foreign server plus the user mappings and schemas that hang off it.

    ``owner`` is only populated by introspection. ``equals()`` ignores owner,
    user mappings and schemas; those are reconciled separately.
    """

    name: str
    host: str = ""
    port: int = 0
    db: str = ""
    wrapper: str = DEFAULT_WRAPPER
    owner: str = Field(default="", exclude=True)
    user_maps: list[UserMap] = Field(default_factory=list, alias="UserMap")
    schemas: list[Schema] = Field(default_factory=list, alias="Schemas")

    @field_validator("wrapper", mode="before")
    @classmethod
    def _default_wrapper(cls, value: Any) -> Any:
        return value or DEFAULT_WRAPPER

    @model_validator(mode="after")
    def _stamp_server_name(self) -> "ForeignServer":
        for usermap in self.user_maps:
            usermap.server_name = self.name
        for schema in self.schemas:
            schema.server_name = self.name
        return self

    def equals(self, other: "ForeignServer") -> bool:
        return (
            self.name == other.name
            and self.host == other.host
            and self.port == other.port
            and self.db == other.db
            and self.wrapper == other.wrapper
        )


@dataclass(frozen=True)
class SchemaEnum:
    """A remote enum type and the schema that owns it.

    Example:
        >>> str(SchemaEnum(schema="public", name="status"))
        'public.status'
    """

    schema: str
    name: str

    def __str__(self) -> str:
        return f"{self.schema}.{self.name}"


# ============================================================================
# Desired State
# ============================================================================


class DesiredState(_ConfigModel):
    """The declarative target the reconciler converges the database toward."""

    extensions: list[Extension] = Field(default_factory=list, alias="Extensions")
    servers: list[ForeignServer] = Field(default_factory=list, alias="Servers")
