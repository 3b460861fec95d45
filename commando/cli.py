import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import typer

from config.settings import CommandoSettings

app = typer.Typer(
    name="commando",
    help="Chat command dispatch bot",
    add_completion=False,
)

SAMPLE_COMMAND = '''from commando import command


@command("ping", "util", "Checks the bot's responsiveness.", aliases=["pong"])
async def ping(ctx, args):
    return await ctx.reply("Pong!")
'''


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


@app.command()
def run(
    dev: bool = typer.Option(False, "--dev", help="Run in development mode"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Set log level"),
) -> None:
    """Connect to Discord and dispatch commands."""
    if dev:
        os.environ["ENVIRONMENT"] = "development"
        os.environ["HOT_RELOAD"] = "true"

    if log_level:
        os.environ["LOG_LEVEL"] = log_level

    settings = CommandoSettings()
    setup_logging(settings.log_level)

    if not settings.discord_token:
        typer.echo("❌ DISCORD_TOKEN is not set")
        raise typer.Exit(1)

    from .core.bot import build_bot
    from .database import DatabaseManager
    from .providers import DatabaseSettingProvider
    from .transport.gateway import HikariTransport

    bot = build_bot(settings)
    bot.set_provider(DatabaseSettingProvider(DatabaseManager(settings.database_url)))
    HikariTransport(bot).run()


@app.command()
def init(
    directory: Optional[str] = typer.Option(None, help="Directory to initialize")
) -> None:
    """Initialize a new bot project."""
    target_dir = Path(directory) if directory else Path.cwd()

    if not target_dir.exists():
        target_dir.mkdir(parents=True)

    (target_dir / "commands" / "util").mkdir(parents=True, exist_ok=True)
    (target_dir / "data").mkdir(exist_ok=True)

    sample = target_dir / "commands" / "util" / "ping.py"
    if not sample.exists():
        sample.write_text(SAMPLE_COMMAND)

    env_file = target_dir / ".env"
    if not env_file.exists():
        env_content = """# Bot Configuration
DISCORD_TOKEN=your_discord_bot_token_here
COMMAND_PREFIX=!
OWNERS=[]
DATABASE_URL=sqlite:///data/commando.db
ENVIRONMENT=development
LOG_LEVEL=INFO
"""
        env_file.write_text(env_content)

    typer.echo(f"✅ Bot project initialized in {target_dir}")


@app.command()
def commands(
    directory: Optional[str] = typer.Option(None, help="Commands directory to list instead of the configured ones")
) -> None:
    """List the groups and commands found in the commands directories."""
    from .core.bot import build_bot

    settings = CommandoSettings()
    if directory:
        settings.commands_directories = [directory]

    bot = build_bot(settings)
    typer.echo("📦 Registered commands:")
    for group in bot.registry.groups.values():
        typer.echo(f"  {group.name} ({group.id})")
        for cmd in group.commands.values():
            aliases = f" [{', '.join(cmd.aliases)}]" if cmd.aliases else ""
            typer.echo(f"    {cmd.name}{aliases}: {cmd.description}")


@app.command()
def db(
    action: str = typer.Argument(help="Action: create, reset"),
) -> None:
    """Database management commands."""
    from .database import DatabaseManager

    async def run_db_command():
        db_manager = DatabaseManager(CommandoSettings().database_url)
        try:
            if action == "create":
                await db_manager.create_tables()
                typer.echo("✅ Database tables created")
            elif action == "reset":
                confirm = typer.confirm("⚠️  This will delete all stored settings. Continue?")
                if confirm:
                    await db_manager.drop_tables()
                    await db_manager.create_tables()
                    typer.echo("✅ Database reset completed")
            else:
                typer.echo(f"Unknown action: {action}")
        finally:
            await db_manager.close()

    asyncio.run(run_db_command())


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
