"""
Clubguard
=========

Access-control and abuse-mitigation bot for the club's Discord server.
Every slash command passes the security engine before it runs; denials and
admissions are recorded in the security event store and severe events are
escalated to admins by direct message.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. CLUBGUARD_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("CLUBGUARD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import discord
from dotenv import load_dotenv

from clubguard.configuration.app_configuration import AppConfig
from clubguard.database.db_connection import ConnectionManager
from clubguard.security.engine import SecurityEngine
from clubguard.security.event_store import SecurityEventStore
from clubguard.security.notifier import EscalationNotifier
from clubguard.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents needed to read member roles and find admins to alert."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    return intents


def build_engine(config: AppConfig, connection: ConnectionManager) -> SecurityEngine:
    """Wire the store, notifier and engine from configuration.

    Raises
    ------
    ValueError
        If the configured rate-limit table is invalid.
    """
    store = SecurityEventStore(connection)
    notifier = EscalationNotifier(
        config.permissions,
        max_recipients=config.security.escalation_max_recipients,
    )
    return SecurityEngine.from_config(config, store=store, notifier=notifier)


def create_bot(engine: SecurityEngine) -> discord.Bot:
    """Instantiate the Discord bot and register the security cog."""
    from clubguard.cog.commands import security_cmds

    bot = discord.Bot(intents=build_intents())
    if engine.notifier is not None:
        engine.notifier.set_bot(bot)
    security_cmds.setup(bot, engine)
    logger.info("All cogs loaded successfully.")
    return bot


async def shutdown_runtime(
    bot: discord.Bot | None,
    engine: SecurityEngine | None,
    connection: ConnectionManager,
) -> None:
    """Stop the bot, the engine's cleanup task and the database, in that order."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing Discord bot: %s", exc)

    if engine is not None:
        try:
            await engine.shutdown()
        except Exception as exc:
            logger.exception("Error during security engine shutdown: %s", exc)

    await connection.close()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database, engine and bot; return a process exit code."""
    token = load_environment()
    config = AppConfig(BASE_DIR / "config" / "app_config.yml")
    connection = ConnectionManager()

    try:
        logger.info("Opening security event database at %s", config.database_path)
        await connection.open(config.database_path)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    try:
        engine = build_engine(config, connection)
    except ValueError as exc:
        logger.critical("Invalid security configuration: %s", exc)
        await connection.close()
        return 1

    bot: discord.Bot | None = None
    exit_code = 0
    try:
        bot = create_bot(engine)
        engine.start()
        logger.info("Attempting to connect to Discord…")
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, engine, connection)

    return exit_code


def main() -> int:
    """Entrypoint for the ``clubguard`` console script."""
    sys.excepthook = handle_exception
    logger.info("Starting Clubguard…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        return code if isinstance(code, int) else 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
