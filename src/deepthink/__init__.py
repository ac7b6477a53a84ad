"""
DeepThink - multi-round, multi-expert reasoning engine.

A query runs through rounds of web research, parallel expert answers and
synthesis. Progress streams out as typed events and the run can be aborted
at any point.

Example:
    import asyncio
    from deepthink import ClientCache, DeepThinkEngine, RunConfig, load_config
    from deepthink.search import build_search_manager

    async def main():
        config = load_config()
        cache = ClientCache(max_size=config.engine.client_cache_size)
        engine = DeepThinkEngine(config, cache, build_search_manager(config.search))

        async for event in engine.stream("What is 2+2?", RunConfig(maxRounds=2)):
            print(event.to_wire())

        await cache.aclose()

    asyncio.run(main())
"""

__version__ = "0.1.0"

from .config import DeepThinkConfig, RunConfig, load_config
from .engine import DeepThinkEngine, EngineStatus
from .llm import ClientCache

__all__ = [
    "__version__",
    "ClientCache",
    "DeepThinkConfig",
    "DeepThinkEngine",
    "EngineStatus",
    "RunConfig",
    "load_config",
]
