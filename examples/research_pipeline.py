#!/usr/bin/env python
"""Research Pipeline Example - basic usage.

Loads the agents and workflows under ``configs/``, sends one message through
policy routing and runs the ``research-and-write`` workflow on another.

Usage:
    ANTHROPIC_API_KEY=... python examples/research_pipeline.py
"""

import asyncio

from agent_delegation.main import bootstrap


async def run_pipeline() -> None:
    print("=" * 60)
    print("Research Pipeline Example")
    print("=" * 60)

    coordinator = bootstrap()
    for descriptor in coordinator.get_available_agents():
        print(f"Agent registered: {descriptor.name} ({descriptor.id})")
    print()

    # Routed by the delegation policy
    response = await coordinator.handle_message(
        "Research the history of the printing press", conversation_id="demo"
    )
    print(response.content)
    print()

    # Runs every step of the workflow, then synthesizes the results
    execution = await coordinator.execute_workflow(
        "research-and-write",
        "The printing press and its effect on literacy",
        conversation_id="demo",
    )
    print(f"Workflow status: {execution.status.value}")
    for step_id, result in execution.results.items():
        print(f"- {step_id}: {len(result.content)} chars")
    for step_id, error in execution.errors.items():
        print(f"- {step_id} failed: {error}")
    if execution.response is not None:
        print()
        print(execution.response.content)

    print()
    print("Delegation stats:", coordinator.get_delegation_stats())
    print("Conversation:", coordinator.get_context("demo"))


if __name__ == "__main__":
    asyncio.run(run_pipeline())
