"""
nexusdav configuration

Connection settings come from 3 sources, in order of precedence (higher is more priority)
- Command line options (see nexusdav.py)
- Environment variables, prefixed with NEXUS_
- A .env file, either in the current working directory or in a location specified
  by the NEXUS_ENV_FILE environment variable
"""

from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "nexus_"


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")
    endpoint: Annotated[
        str | None,
        Field(
            description="Nexus URL, e.g. https://nexus.host",
        ),
    ] = None
    username: Annotated[
        str | None,
        Field(
            description="Nexus username",
        ),
    ] = None
    password: Annotated[
        str,
        Field(
            description="Nexus password",
        ),
    ] = ""
    timeout: Annotated[
        float,
        Field(
            description="Network timeout in seconds",
        ),
    ] = 30.0
    retries: Annotated[
        int,
        Field(
            description="Retries for failed requests",
        ),
    ] = 3

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)


def get_settings() -> Settings:
    # The env file location can itself come from the environment, so read it
    # first and load the file without overriding variables that are set.
    temp = Settings()
    load_dotenv(temp.env_file, override=False)
    return Settings()


def describe(name: str) -> str:
    """Help text for a setting, naming the environment variable that sets it."""
    description = Settings.model_fields[name].description
    return f"{description} (env {ENV_PREFIX.upper()}{name.upper()})"
