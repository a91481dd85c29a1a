"""Client configuration."""

import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_BASE_URL = "http://localhost:8080/api"


class ClientSettings(BaseModel):
    """Connection and display settings for the client."""

    base_url: str = Field(default=DEFAULT_BASE_URL, description="API root, e.g. http://host:8080/api")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    currency_symbol: str = Field(default="₹", description="Symbol shown in front of amounts")

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "ClientSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Settings with defaults for any variable that is not set

        Raises:
            ValueError: If FOODORDER_TIMEOUT is not a number
        """
        if environ is None:
            environ = dict(os.environ)

        values: dict = {}
        if environ.get("FOODORDER_API_BASE"):
            values["base_url"] = environ["FOODORDER_API_BASE"]
        if environ.get("FOODORDER_TIMEOUT"):
            try:
                values["timeout"] = float(environ["FOODORDER_TIMEOUT"])
            except ValueError:
                raise ValueError(f"FOODORDER_TIMEOUT must be a number, got {environ['FOODORDER_TIMEOUT']!r}") from None
        if environ.get("FOODORDER_CURRENCY"):
            values["currency_symbol"] = environ["FOODORDER_CURRENCY"]
        return cls(**values)
