"""Access token model."""

from __future__ import annotations

from pydantic import Field, model_validator

from tesla_exporter.models._base import TeslaBaseModel

_SECRET_KEYS = frozenset({"access_token", "refresh_token", "id_token"})


class AccessToken(TeslaBaseModel):
    """Short-lived bearer token obtained from a refresh token.

    Parameters
    ----------
    access_token : str
        Opaque bearer token value.
    token_type : str
        Authorization scheme, ``"Bearer"`` for the owner API.
    expires_in : int
        Lifetime in seconds as reported by the auth server.
    raw : dict
        Token response without the token values themselves.
    """

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int = 0

    @model_validator(mode="after")
    def _strip_secrets(self) -> AccessToken:
        if any(key in self.raw for key in _SECRET_KEYS):
            object.__setattr__(self, "raw", {k: v for k, v in self.raw.items() if k not in _SECRET_KEYS})
        return self

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        scheme = self.token_type.strip() or "Bearer"
        if scheme.lower() == "bearer":
            scheme = "Bearer"
        return f"{scheme} {self.access_token}"

    def __repr__(self) -> str:
        return f"AccessToken(token_type={self.token_type!r}, expires_in={self.expires_in})"

    __str__ = __repr__
