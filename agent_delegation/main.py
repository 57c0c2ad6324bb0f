"""Agent Delegation - application wiring and command line entry point.

This module builds a ready-to-use :class:`Coordinator` from an
:class:`AppConfig`: model provider, memory, built-in tools, policy, delegation
manager and the agent/workflow definitions found on disk.
"""

import argparse
import asyncio
from pathlib import Path

from agent_delegation.agents.memory import InMemoryMemoryStore, MemoryStore
from agent_delegation.core.coordinator import Coordinator
from agent_delegation.core.delegation import DelegationManager
from agent_delegation.core.policy import DelegationPolicy
from agent_delegation.llm.base import BaseLLMProvider
from agent_delegation.llm.factory import LLMProviderFactory
from agent_delegation.loader import DefinitionLoader
from agent_delegation.tools.builtin import Retriever, register_builtin_tools
from agent_delegation.tools.registry import ToolRegistry
from agent_delegation.utils.config import AppConfig, LogFormat, init_config
from agent_delegation.utils.exceptions import AgentDelegationError
from agent_delegation.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def get_config_path() -> Path:
    """Get the path to the app.yaml configuration file."""
    return get_project_root() / "configs" / "app.yaml"


def get_agents_config_path() -> Path:
    """Get the path to the agent definitions directory."""
    return get_project_root() / "configs" / "agents"


def get_workflows_config_path() -> Path:
    """Get the path to the workflow definitions directory."""
    return get_project_root() / "configs" / "workflows"


def create_provider(config: AppConfig) -> BaseLLMProvider:
    """Create the model provider serving the coordinator's model."""
    return LLMProviderFactory.from_config(config)


def create_coordinator(
    config: AppConfig | None = None,
    provider: BaseLLMProvider | None = None,
    memory: MemoryStore | None = None,
    agents_dir: str | Path | None = None,
    workflows_dir: str | Path | None = None,
    retriever: Retriever | None = None,
    policy: DelegationPolicy | None = None,
) -> Coordinator:
    """Wire a coordinator from configuration.

    Args:
        config: Application configuration; defaults when omitted.
        provider: Model provider; created from ``config`` when omitted.
        memory: Conversation memory; in-process when omitted.
        agents_dir: Directory of agent definitions to register.
        workflows_dir: Directory of workflow definitions to register.
        retriever: Backend for the ``rag.search`` tool.
        policy: Delegation policy; the default rules when omitted.

    Returns:
        The configured coordinator.

    Raises:
        DefinitionLoadError: If a definitions directory cannot be loaded.
        AgentAlreadyExistsError: If two definitions share an agent id.
    """
    config = config or AppConfig()
    provider = provider or create_provider(config)
    memory = memory or InMemoryMemoryStore()

    tools = ToolRegistry()
    tool_names = register_builtin_tools(tools, config.tools, retriever=retriever)

    manager = DelegationManager(
        tools,
        tool_timeout=config.timeout.tool,
        delegator_id=Coordinator.COORDINATOR_ID,
    )
    coordinator = Coordinator(
        config.coordinator,
        provider,
        tools,
        memory,
        policy=policy,
        manager=manager,
        agent_defaults=config.agent_defaults,
        agent_timeout=config.timeout.agent,
    )

    loader = DefinitionLoader()
    if agents_dir is not None:
        for descriptor in loader.load_agents_from_directory(agents_dir):
            coordinator.add_agent(descriptor)
    if workflows_dir is not None:
        for workflow in loader.load_workflows_from_directory(workflows_dir):
            coordinator.add_workflow(workflow)

    logger.info(
        "coordinator_created",
        provider=provider.provider_name,
        agents=len(coordinator.get_available_agents()),
        workflows=len(coordinator.get_workflows()),
        tools=tool_names,
    )
    return coordinator


def bootstrap(
    config_path: str | Path | None = None,
    env_file: str | Path | None = None,
) -> Coordinator:
    """Load configuration, set up logging and build the coordinator.

    Definitions under ``configs/agents`` and ``configs/workflows`` are loaded
    when those directories exist.
    """
    if config_path is None and get_config_path().exists():
        config_path = get_config_path()

    config = init_config(yaml_path=config_path, env_file=env_file)
    setup_logging(
        level=config.logging.level,
        json_format=config.logging.format == LogFormat.JSON,
        log_file=config.logging.file,
    )
    logger.info(
        "application_starting",
        app_name=config.app.name,
        version=config.app.version,
        environment=config.app.env.value,
        debug=config.app.debug,
    )

    agents_dir = get_agents_config_path()
    workflows_dir = get_workflows_config_path()
    return create_coordinator(
        config,
        agents_dir=agents_dir if agents_dir.is_dir() else None,
        workflows_dir=workflows_dir if workflows_dir.is_dir() else None,
    )


async def run_message(
    coordinator: Coordinator,
    message: str,
    conversation_id: str | None = None,
    workflow_id: str | None = None,
) -> str:
    """Handle one message and return the reply text."""
    response = await coordinator.handle_message(
        message, conversation_id=conversation_id, workflow_id=workflow_id
    )
    return response.content


def main() -> None:
    """Send one message through the coordinator and print the reply."""
    parser = argparse.ArgumentParser(
        description="Route a message through the agent delegation coordinator",
    )
    parser.add_argument("message", help="Message to handle")
    parser.add_argument("--config", default=None, help="Path to app.yaml")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--conversation", default=None, help="Conversation id")
    parser.add_argument("--workflow", default=None, help="Run this workflow id")
    args = parser.parse_args()

    try:
        coordinator = bootstrap(args.config, args.env_file)
        reply = asyncio.run(
            run_message(coordinator, args.message, args.conversation, args.workflow)
        )
    except AgentDelegationError as e:
        logger.error("request_failed", **e.to_dict())
        raise SystemExit(1) from e

    print(reply)


if __name__ == "__main__":
    main()
