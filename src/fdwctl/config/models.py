"""Pydantic model for the fdwctl configuration file."""

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from fdwctl.conninfo import resolve_connection_string
from fdwctl.models import DesiredState, Secret


class AppConfig(BaseModel):
    """Complete configuration from ``config.yaml``.

    Example document::

        FDWConnection: host=localhost port=5432 dbname=fdw user=postgres sslmode=disable
        FDWConnectionSecret:
          fromEnv: FDW_PASSWORD
        DesiredState:
          Extensions:
            - name: postgres_fdw
          Servers:
            - name: remotedb
              host: remote.example.com
              port: 5432
              db: app
              UserMap:
                - localuser: reporting
                  remoteuser: app_ro
                  remotesecret:
                    fromEnv: REMOTE_PASSWORD
              Schemas:
                - localschema: remote_public
                  remoteschema: public
    """

    model_config = ConfigDict(populate_by_name=True)

    fdw_connection: str = Field(default="", alias="FDWConnection")
    fdw_connection_secret: Secret = Field(default_factory=Secret, alias="FDWConnectionSecret")
    desired_state: DesiredState = Field(default_factory=DesiredState, alias="DesiredState")

    _resolved_connection: str | None = PrivateAttr(default=None)

    async def database_connection_string(self) -> str:
        """Resolve ``fdw_connection`` with its secret, once per instance."""
        if self._resolved_connection is None:
            self._resolved_connection = await resolve_connection_string(
                self.fdw_connection, self.fdw_connection_secret
            )
        return self._resolved_connection
