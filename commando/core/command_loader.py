import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from ..commands.base import Command
from ..commands.decorators import FunctionCommand

logger = logging.getLogger(__name__)

MODULE_PREFIX = "commando_commands"


class CommandLoader:
    """Loads command definitions from ``<directory>/<group>/<member>.py`` files.

    A file may define Command subclasses, functions decorated with
    :func:`commando.commands.command`, or a ``setup(registry)`` function
    returning such definitions. The folder name is registered as a group when
    no group with that ID exists.
    """

    def __init__(self, registry: Any) -> None:
        self.registry = registry
        self.directories: list[Path] = []
        self.loaded: dict[Path, list[str]] = {}

    def add_directory(self, directory: str | Path) -> None:
        path = Path(directory).resolve()
        if not path.is_dir():
            logger.warning(f"Commands directory does not exist: {path}")
            return
        if path not in self.directories:
            self.directories.append(path)
            logger.info(f"Added commands directory: {path}")

    def discover(self, directory: Path | None = None) -> list[Path]:
        files = []
        for root in [directory.resolve()] if directory else self.directories:
            if not root.is_dir():
                continue
            for group_dir in sorted(root.iterdir()):
                if not group_dir.is_dir() or group_dir.name.startswith(("_", ".")):
                    continue
                for path in sorted(group_dir.glob("*.py")):
                    if not path.name.startswith("_"):
                        files.append(path)
        return files

    def _module_name(self, path: Path) -> str:
        return f"{MODULE_PREFIX}.{path.parent.name}.{path.stem}"

    def _load_module(self, path: Path) -> ModuleType:
        module_name = self._module_name(path)
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load commands from {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(module_name, None)
            raise
        return module

    def _extract_definitions(self, module: ModuleType) -> list[Any]:
        if hasattr(module, "setup"):
            definitions = module.setup(self.registry)
            if definitions is None:
                return []
            if isinstance(definitions, (list, tuple)):
                return list(definitions)
            return [definitions]

        definitions: list[Any] = []
        for _, obj in inspect.getmembers(module):
            if (
                inspect.isclass(obj)
                and issubclass(obj, Command)
                and obj not in (Command, FunctionCommand)
                and obj.__module__ == module.__name__
                and not inspect.isabstract(obj)
            ):
                definitions.append(obj)
            elif inspect.isfunction(obj) and hasattr(obj, "_command_info"):
                definitions.append(obj)
        return definitions

    def read_commands(self, path: str | Path) -> list[Command]:
        """Build (without registering) the commands defined in a file."""
        path = Path(path).resolve()
        module = self._load_module(path)
        commands = []
        for definition in self._extract_definitions(module):
            command = self.registry.build_command(definition)
            command.source_path = path
            commands.append(command)
        if not commands:
            raise ValueError(f"No commands found in {path}")
        return commands

    def read_command(self, path: str | Path, name: str) -> Command:
        for command in self.read_commands(path):
            if command.name == name:
                return command
        raise LookupError(f"Command {name} is no longer defined in {path}")

    def load_file(self, path: str | Path) -> list[Command]:
        path = Path(path).resolve()
        if path.parent.name not in self.registry.groups:
            self.registry.register_group(path.parent.name, path.parent.name.title())

        registered = []
        try:
            for command in self.read_commands(path):
                registered.append(self.registry.register_command(command))
        except Exception as e:
            logger.error(f"Failed to load commands from {path}: {e}")
            for command in registered:
                self.registry.discard_command(command)
            return []

        self.loaded[path] = [command.name for command in registered]
        logger.info(f"Loaded {len(registered)} command(s) from {path.name}")
        return registered

    def load_directory(self, directory: Path) -> list[Command]:
        commands = []
        for path in self.discover(directory):
            commands.extend(self.load_file(path))
        return commands

    def load_all(self) -> list[Command]:
        commands = []
        for directory in self.directories:
            commands.extend(self.load_directory(directory))
        logger.info(f"Loaded {len(commands)} command(s) from {len(self.directories)} directories")
        return commands

    async def reload_file(self, path: str | Path) -> bool:
        """Re-read a file and replace, add or remove its commands accordingly."""
        path = Path(path).resolve()
        try:
            if path.parent.name not in self.registry.groups:
                self.registry.register_group(path.parent.name, path.parent.name.title())
            fresh = self.read_commands(path) if path.exists() else []
            previous = self.loaded.get(path, [])

            for command in fresh:
                old = self.registry.commands.get(command.name)
                if old is not None and old.source_path == path:
                    await self.registry.reregister_command(command, old)
                else:
                    self.registry.register_command(command)

            fresh_names = {command.name for command in fresh}
            for name in previous:
                old = self.registry.commands.get(name)
                if name not in fresh_names and old is not None:
                    await self.registry.unregister_command(old)
        except Exception as e:
            logger.error(f"Failed to reload commands from {path}: {e}")
            return False

        if fresh:
            self.loaded[path] = sorted(fresh_names)
        else:
            self.loaded.pop(path, None)
            sys.modules.pop(self._module_name(path), None)
        logger.info(f"Reloaded commands from {path.name}")
        return True

    def get_loaded_files(self) -> list[Path]:
        return list(self.loaded)
