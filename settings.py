# settings.py
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import os

# Load variables from .env at import time
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    discord_token: str = Field(default=os.getenv("DISCORD_TOKEN", ""))
    client_id: str = Field(default=os.getenv("CLIENT_ID", ""))
    guild_id: str = Field(default=os.getenv("GUILD_ID", ""))
    database_url: str = Field(default=os.getenv("DATABASE_URL", "sqlite:///./bot-data.sqlite"))
    port: int = Field(default=int(os.getenv("PORT", "3000")))
    # Discord drops an interaction that is not answered within 3s
    command_timeout: float = Field(default=float(os.getenv("COMMAND_TIMEOUT", "2.5")))
    strict_transitions: bool = Field(default=_env_bool("STRICT_TRANSITIONS", "true"))
    run_bot: bool = Field(default=_env_bool("RUN_BOT", "true"))
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO").upper())

    def missing(self) -> list:
        """Names of the Discord env vars that are not set."""
        required = {
            "DISCORD_TOKEN": self.discord_token,
            "CLIENT_ID": self.client_id,
            "GUILD_ID": self.guild_id,
        }
        return [name for name, value in required.items() if not value]

settings = Settings()
