import asyncio
import logging
from pathlib import Path
from typing import Any

from watchfiles import Change, awatch

logger = logging.getLogger(__name__)


class HotReloadManager:
    """Watches command directories and reloads command files when they change."""

    def __init__(self, bot: Any) -> None:
        self.bot = bot
        self.watched_directories: set[Path] = set()
        self.watch_task: asyncio.Task | None = None

    def add_watch_directory(self, directory: str | Path) -> None:
        path = Path(directory).resolve()
        if path.is_dir():
            self.watched_directories.add(path)
            logger.info(f"Added hot reload watch: {path}")
        else:
            logger.warning(f"Watch directory does not exist: {path}")

    def start_watching(self) -> None:
        if self.watch_task and not self.watch_task.done():
            logger.warning("Hot reload is already running")
            return
        if not self.watched_directories:
            logger.warning("No directories to watch for hot reload")
            return

        self.watch_task = asyncio.get_running_loop().create_task(self._watch_files())
        logger.info("Hot reload started")

    def stop_watching(self) -> None:
        if self.watch_task and not self.watch_task.done():
            self.watch_task.cancel()
            logger.info("Hot reload stopped")

    async def _watch_files(self) -> None:
        try:
            async for changes in awatch(*self.watched_directories):
                await self.handle_changes(changes)
        except asyncio.CancelledError:
            logger.info("File watcher cancelled")
        except Exception as e:
            logger.error(f"Error in file watcher: {e}")

    async def handle_changes(self, changes: set[tuple[Change, str]]) -> None:
        changed: set[Path] = set()
        for change_type, file_path in changes:
            path = Path(file_path).resolve()
            if path.suffix != ".py" or "__pycache__" in path.parts or path.name.startswith("_"):
                continue
            if not self._is_command_file(path):
                continue
            logger.debug(f"File change detected: {change_type.name} - {path}")
            changed.add(path)

        for path in sorted(changed):
            await self._reload_file(path)

    def _is_command_file(self, path: Path) -> bool:
        return any(path.parent.parent == directory for directory in self.watched_directories)

    async def _reload_file(self, path: Path) -> None:
        loader = self.bot.registry.loader
        if path in loader.loaded:
            success = await loader.reload_file(path)
        elif path.exists():
            success = bool(loader.load_file(path))
        else:
            return

        if success:
            logger.info(f"Hot reloaded commands from {path.name}")
            await self.bot.events.emit("commands_reloaded", path)
        else:
            logger.error(f"Failed to hot reload commands from {path.name}")

    def get_watched_directories(self) -> list[str]:
        return [str(path) for path in self.watched_directories]
