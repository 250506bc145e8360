"""CLI helpers shared by the command groups."""

from __future__ import annotations

import asyncio

from pymongo.errors import PyMongoError


def run_async(coro):
    """Run an async function from sync context."""
    return asyncio.run(coro)


async def get_context():
    """Create and initialize an AppContext. Exits if MongoDB is unreachable."""
    from playbookrunner.context import AppContext

    ctx = AppContext()
    try:
        await ctx.initialize()
    except PyMongoError as e:
        raise SystemExit(f"Cannot reach MongoDB at {ctx.config.mongodb.uri}: {e}") from e
    return ctx
