"""Definition Loader - agent and workflow definitions from YAML.

An agent file holds one :class:`AgentDescriptor` mapping; a workflow file holds
one :class:`Workflow` mapping. A file may also hold a list of mappings to
define several at once.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from agent_delegation.models import AgentDescriptor, Workflow
from agent_delegation.utils.exceptions import ConfigurationError
from agent_delegation.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

YAML_SUFFIXES = ("*.yaml", "*.yml")


class DefinitionLoadError(ConfigurationError):
    """Raised when a definition file cannot be read."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(
            message + (f" (path: {path})" if path else ""),
            details={"path": path} if path else None,
        )


class DefinitionConfigError(DefinitionLoadError):
    """Raised when a definition is readable but invalid."""

    pass


class DefinitionLoader:
    """Loads agent descriptors and workflows from YAML files."""

    def __init__(self) -> None:
        self._agents: dict[str, AgentDescriptor] = {}
        self._workflows: dict[str, Workflow] = {}

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def load_agents(self, path: str | Path) -> list[AgentDescriptor]:
        """Load the agent definitions in one YAML file.

        Raises:
            DefinitionLoadError: If the file cannot be read.
            DefinitionConfigError: If a definition is invalid.
        """
        descriptors = [
            self.create_agent(item, source_path=str(path))
            for item in self._read_items(path)
        ]
        for descriptor in descriptors:
            self._agents[descriptor.id] = descriptor
        return descriptors

    def load_agents_from_directory(self, dir_path: str | Path) -> list[AgentDescriptor]:
        """Load every agent definition in a directory."""
        return self._load_directory(dir_path, self.load_agents, "agents")

    @staticmethod
    def create_agent(
        data: dict[str, Any], source_path: str | None = None
    ) -> AgentDescriptor:
        """Build a descriptor from a definition mapping.

        Raises:
            DefinitionConfigError: If the mapping is not a valid descriptor.
        """
        return _validate(AgentDescriptor, data, "agent", source_path)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def load_workflows(self, path: str | Path) -> list[Workflow]:
        """Load the workflow definitions in one YAML file.

        Raises:
            DefinitionLoadError: If the file cannot be read.
            DefinitionConfigError: If a definition is invalid.
        """
        workflows = [
            self.create_workflow(item, source_path=str(path))
            for item in self._read_items(path)
        ]
        for workflow in workflows:
            self._workflows[workflow.id] = workflow
        return workflows

    def load_workflows_from_directory(self, dir_path: str | Path) -> list[Workflow]:
        """Load every workflow definition in a directory."""
        return self._load_directory(dir_path, self.load_workflows, "workflows")

    @staticmethod
    def create_workflow(
        data: dict[str, Any], source_path: str | None = None
    ) -> Workflow:
        """Build a workflow from a definition mapping.

        Raises:
            DefinitionConfigError: If the mapping is not a valid workflow.
        """
        return _validate(Workflow, data, "workflow", source_path)

    # ------------------------------------------------------------------
    # Loaded definitions
    # ------------------------------------------------------------------

    def get_loaded_agents(self) -> dict[str, AgentDescriptor]:
        return dict(self._agents)

    def get_loaded_workflows(self) -> dict[str, Workflow]:
        return dict(self._workflows)

    def clear(self) -> None:
        """Forget every loaded definition."""
        self._agents.clear()
        self._workflows.clear()

    # ------------------------------------------------------------------
    # File handling
    # ------------------------------------------------------------------

    @staticmethod
    def _read_items(path: str | Path) -> list[dict[str, Any]]:
        path = Path(path)

        if not path.exists():
            raise DefinitionLoadError("Definition file not found", str(path))

        if not path.is_file():
            raise DefinitionLoadError("Path is not a file", str(path))

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DefinitionLoadError(f"Invalid YAML: {e}", str(path)) from e
        except OSError as e:
            raise DefinitionLoadError(f"Cannot read file: {e}", str(path)) from e

        if not data:
            raise DefinitionConfigError("Empty definition file", str(path))

        items = data if isinstance(data, list) else [data]
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise DefinitionConfigError(
                    f"Definition {index} must be a mapping", str(path)
                )
        return items

    @staticmethod
    def _load_directory(
        dir_path: str | Path,
        load: Callable[[Path], list[T]],
        kind: str,
    ) -> list[T]:
        dir_path = Path(dir_path)

        if not dir_path.exists():
            raise DefinitionLoadError("Directory not found", str(dir_path))

        if not dir_path.is_dir():
            raise DefinitionLoadError("Path is not a directory", str(dir_path))

        loaded: list[T] = []
        errors: list[str] = []
        files = sorted(f for pattern in YAML_SUFFIXES for f in dir_path.glob(pattern))
        for definition_file in files:
            try:
                loaded.extend(load(definition_file))
            except DefinitionLoadError as e:
                logger.warning("definition_skipped", path=str(definition_file), error=str(e))
                errors.append(str(e))

        if errors and not loaded:
            raise DefinitionLoadError(
                f"Failed to load any {kind}. Errors: {'; '.join(errors)}",
                str(dir_path),
            )
        return loaded


def _validate(
    model: type[T], data: dict[str, Any], kind: str, source_path: str | None
) -> T:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DefinitionConfigError(
            f"Invalid {kind} definition: {e}", source_path
        ) from e
