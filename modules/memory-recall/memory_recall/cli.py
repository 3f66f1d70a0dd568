"""Interactive command-line chat with persistent memory."""

import argparse
import asyncio
from datetime import timedelta
from typing import NamedTuple, Optional

from .agent import AgentSession, MemoryAgent
from .config import MemorySettings
from .consolidation import Consolidator
from .embeddings import EmbeddingCache, EmbeddingGenerator
from .generation import TextGenerator
from .log import get_logger, setup_logging
from .memory import MemoryService
from .models import utc_now
from .retrieval import MemoryRetriever
from .storage import MemoryStorage

logger = get_logger(__name__)

COMMANDS = {
    "/help": "Show available commands",
    "/stats": "Show memory statistics",
    "/clear": "Clear conversation history",
    "/consolidate": "Summarize memories older than a week",
    "/exit": "Exit",
    "/quit": "Exit",
}


class Components(NamedTuple):
    storage: MemoryStorage
    embedder: EmbeddingGenerator
    agent: MemoryAgent
    consolidator: Consolidator


def build_components(settings: MemorySettings) -> Components:
    """Wire the store, collaborators and agent for one process."""
    storage = MemoryStorage(settings.agent_id, settings.storage_config())
    api_key = settings.openai_api_key or None
    embedder = EmbeddingGenerator(
        model=settings.embedding_model,
        api_key=api_key,
        dimensions=settings.embedding_dimensions,
        cache=EmbeddingCache(settings.embedding_cache_size),
        batch_size=settings.embedding_batch_size,
    )
    generator = TextGenerator(model=settings.chat_model, api_key=api_key)
    memory_service = MemoryService(storage, embedder)
    retriever = MemoryRetriever(storage, embedder, settings)
    agent = MemoryAgent(retriever, memory_service, storage, generator, settings)
    consolidator = Consolidator(storage, memory_service, generator)
    return Components(storage, embedder, agent, consolidator)


def print_help() -> None:
    print("\nAvailable commands:")
    for command, description in COMMANDS.items():
        print(f"  {command:<14} - {description}")
    print()


async def show_stats(components: Components) -> None:
    count = await components.storage.count_memories()
    chunks = await components.storage.list_all_summary_chunks()
    cache = components.embedder.cache.stats()

    print("\nMemory statistics:")
    print(f"  Total memories: {count.value if count.success else 'error'}")
    print(f"  Summary chunks: {len(chunks.value) if chunks.success else 'error'}")
    print(f"  Embedding cache: {cache['size']}/{cache['max_size']} (hit rate {cache['hit_rate']:.0%})")
    print()


async def consolidate(components: Components) -> None:
    result = await components.consolidator.consolidate(
        "weekly", older_than=utc_now() - timedelta(days=7)
    )
    if not result.success:
        print(f"\nError: {result.error}\n")
    elif result.value is None:
        print("\nNothing to consolidate.\n")
    else:
        print(f"\nSummarized {result.value.memory_count} memories.\n")


async def handle_command(command: str, components: Components, session: AgentSession) -> bool:
    """Run a slash command. Returns False when the loop should stop."""
    if command in ("/exit", "/quit"):
        return False
    if command == "/help":
        print_help()
    elif command == "/stats":
        await show_stats(components)
    elif command == "/clear":
        session.clear()
        print("\nConversation history cleared\n")
    elif command == "/consolidate":
        await consolidate(components)
    else:
        print(f"\nUnknown command: {command}")
        print("Type /help for available commands\n")
    return True


async def run(settings: MemorySettings) -> None:
    components = build_components(settings)
    session = AgentSession()
    logger.info("cli_started", agent_id=settings.agent_id)
    print_help()

    try:
        while True:
            try:
                line = input("You: ").strip()
            except EOFError:
                break

            if not line:
                continue
            if line.startswith("/"):
                if not await handle_command(line.lower(), components, session):
                    break
                continue

            result = await components.agent.process_input(line, session)
            if not result.success:
                print(f"\nError: {result.error}\n")
                continue

            response = result.value
            print(f"\nAssistant:\n{response.message}")
            print(
                f"\n[{response.memories_found} memories | {response.summary_chunks_found} chunks"
                f" | {response.memories_extracted} extracted | {response.prompt_tokens} tokens]\n"
            )
    finally:
        components.storage.close()
        print("\nGoodbye!\n")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Chat with an assistant that remembers.")
    parser.add_argument("--agent-id", help="Memory namespace to use")
    parser.add_argument("--log-level", help="debug, info, warning or error")
    args = parser.parse_args(argv)

    settings = MemorySettings()
    overrides = {}
    if args.agent_id:
        overrides["agent_id"] = args.agent_id
    if args.log_level:
        overrides["log_level"] = args.log_level
    if overrides:
        settings = settings.model_copy(update=overrides)

    setup_logging(settings.log_level, settings.log_file)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        print("\nGoodbye!\n")


if __name__ == "__main__":
    main()
