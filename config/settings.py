from pydantic import Field
from pydantic_settings import BaseSettings


class CommandoSettings(BaseSettings):
    discord_token: str | None = Field(default=None, description="Discord bot token")
    database_url: str = Field(default="sqlite:///data/commando.db", description="Database connection URL")

    command_prefix: str = Field(default="!", description="Default command prefix")
    owners: list[int] = Field(default_factory=list, description="User IDs of the bot owners")
    selfbot: bool = Field(default=False, description="Only respond to the bot's own account")
    invite: str | None = Field(default=None, description="Support server invite shown in error notices")

    # Dispatch behaviour
    command_editable_duration: int = Field(
        default=30, description="Seconds a command message stays editable (0 disables edit replay)"
    )
    non_command_editable: bool = Field(
        default=True, description="Whether edits of non-command messages may turn them into commands"
    )
    args_prompt_limit: float = Field(
        default=float("inf"), description="Default number of re-prompts per argument collection"
    )
    argument_wait: int = Field(default=30, description="Default seconds to wait for a prompt answer")

    # Command loading
    commands_directories: list[str] = Field(
        default=["commands"],
        description="Directories to scan for <group>/<command>.py files",
    )
    hot_reload: bool = Field(default=False, description="Reload command files when they change")

    environment: str = Field(default="development", description="Environment")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Enable debug mode")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = CommandoSettings()
