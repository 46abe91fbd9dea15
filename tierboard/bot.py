import discord
from discord.ext import commands
import asyncio
import sys
from typing import List

from tierboard.config import Config
from tierboard.services.database_service import DatabaseService
from tierboard.services.redis_service import RedisService
from tierboard.services.logger import get_logger
from tierboard.exceptions import (
    TierboardException,
    RateLimitError,
    AuthorizationError,
    ValidationError,
    PlayerNotFoundError,
    StorageError,
)
from tierboard.utils.embed_builder import EmbedBuilder

logger = get_logger(__name__)


class TierboardBot(commands.Bot):
    """
    Tierboard Discord bot.

    Hybrid commands (slash and prefix) on top of the ranking services.
    Handles database and Redis connections, cog loading, graceful shutdown
    and the mapping of service exceptions to error embeds.
    """

    def __init__(self):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.guilds = True

        super().__init__(
            command_prefix=self._get_prefix,
            intents=intents,
            help_command=None,
            case_insensitive=True,
            strip_after_prefix=True,
            description=Config.BOT_DESCRIPTION,
        )

        self.initial_extensions: List[str] = [
            "tierboard.cogs.admin_cog",
            "tierboard.cogs.leaderboard_cog",
        ]

    def _get_prefix(self, bot: commands.Bot, message: discord.Message) -> List[str]:
        return commands.when_mentioned_or(Config.COMMAND_PREFIX)(bot, message)

    async def setup_hook(self):
        """
        Setup hook called during bot startup.

        Performs initialization:
            - Initialize database and create tables
            - Initialize Redis (required only for distributed locks)
            - Load all cogs
            - Sync slash commands (dev/prod)
        """
        logger.info("Starting Tierboard setup...")

        try:
            await DatabaseService.initialize()
            await DatabaseService.create_tables()
            logger.info("✓ Database initialized [SUCCESS]")

            try:
                await RedisService.initialize()
                logger.info("✓ Redis initialized [SUCCESS]")
            except Exception as e:
                if Config.DISTRIBUTED_LOCKS:
                    raise
                logger.warning(f"Redis unavailable, rate limiting disabled: {e}")

            for extension in self.initial_extensions:
                try:
                    await self.load_extension(extension)
                    logger.info(f"✓ Loaded {extension} [SUCCESS]")
                except Exception as e:
                    logger.error(f"✗ Failed to load {extension}: {e}", exc_info=True)

            if Config.is_development() and Config.DISCORD_GUILD_ID:
                logger.info("Syncing slash commands to test guild...")
                guild = discord.Object(id=Config.DISCORD_GUILD_ID)
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
                logger.info("✓ Slash commands synced [DEV]")
            elif Config.is_production():
                logger.info("Syncing global slash commands...")
                await self.tree.sync()
                logger.info("✓ Slash commands synced [PROD]")

            logger.info("Bot setup complete!")

        except Exception as e:
            logger.critical(f"Fatal error during bot setup: {e}", exc_info=True)
            raise

    async def on_ready(self):
        logger.info(f"Logged in as: {self.user.name} ({self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guilds")

        activity = discord.Activity(
            type=discord.ActivityType.watching,
            name=f"/leaderboard | {Config.COMMAND_PREFIX}profile",
        )
        await self.change_presence(activity=activity)

    async def safe_send(self, ctx: commands.Context, embed: discord.Embed, ephemeral: bool = True):
        """
        Safely send messages that might be ephemeral.

        Ensures no errors for prefix commands (which don't support ephemeral).
        """
        try:
            if hasattr(ctx, "interaction") and ctx.interaction:
                await ctx.send(embed=embed, ephemeral=ephemeral)
            else:
                await ctx.send(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Error sending message: {e}")

    async def on_command_error(self, ctx: commands.Context, error: Exception):
        """Global error handler for hybrid and prefix commands."""
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, (commands.CommandInvokeError, commands.HybridCommandError)):
            # Hybrid commands wrap the invoke error once more.
            original = error
            while getattr(original, "original", None) is not None:
                original = original.original

            if isinstance(original, RateLimitError):
                embed = EmbedBuilder.warning(
                    title="Rate Limited",
                    description=f"Please wait **{original.retry_after:.1f}s** before using this command again.",
                    footer="Rate limits prevent spam and ensure fair usage",
                )
                return await self.safe_send(ctx, embed)

            if isinstance(original, AuthorizationError):
                embed = EmbedBuilder.error(
                    title="Permission Denied",
                    description=original.reason.capitalize() + ".",
                    help_text="Placement commands need a tier tester role",
                )
                return await self.safe_send(ctx, embed)

            if isinstance(original, ValidationError):
                embed = EmbedBuilder.error(
                    title="Invalid Input",
                    description=original.reason,
                    help_text=f"Use `/{ctx.command.name}` again with corrected values",
                )
                return await self.safe_send(ctx, embed)

            if isinstance(original, PlayerNotFoundError):
                embed = EmbedBuilder.error(
                    title="Player Not Found",
                    description=original.message,
                )
                return await self.safe_send(ctx, embed)

            if isinstance(original, StorageError):
                logger.error(f"Storage error in {ctx.command}: {original}", exc_info=original)
                embed = EmbedBuilder.error(
                    title="Database Error",
                    description="The change could not be saved. Nothing was modified.",
                    help_text="Try again shortly",
                )
                return await self.safe_send(ctx, embed)

            if isinstance(original, TierboardException):
                embed = EmbedBuilder.error(
                    title="Error",
                    description=original.message,
                    help_text="If this persists, contact an administrator",
                )
                return await self.safe_send(ctx, embed)

        if isinstance(error, commands.MissingRequiredArgument):
            embed = EmbedBuilder.error(
                title="Missing Argument",
                description=f"Missing required argument: `{error.param.name}`",
                help_text=f"Use `/{ctx.command.name}` to see the expected arguments",
            )
            return await self.safe_send(ctx, embed)

        if isinstance(error, commands.BadArgument):
            embed = EmbedBuilder.error(
                title="Invalid Argument",
                description=str(error),
            )
            return await self.safe_send(ctx, embed)

        logger.error(f"Unhandled error in command {ctx.command}: {error}", exc_info=error)
        embed = EmbedBuilder.error(
            title="Something Went Wrong",
            description="An unexpected error occurred while processing your command.",
            help_text="Please try again later.",
        )
        await self.safe_send(ctx, embed)

    async def close(self):
        """Graceful shutdown procedure."""
        logger.info("Shutting down Tierboard...")

        try:
            await DatabaseService.shutdown()
            logger.info("✓ Database closed [SUCCESS]")
        except Exception as e:
            logger.error(f"Error closing database: {e}", exc_info=True)

        try:
            await RedisService.shutdown()
            logger.info("✓ Redis closed [SUCCESS]")
        except Exception as e:
            logger.error(f"Error closing Redis: {e}", exc_info=True)

        await super().close()
        logger.info("Bot shutdown complete.")


async def main():
    """Main entry point for the bot."""
    try:
        Config.validate()
        Config.validate_bot()
    except Exception as e:
        logger.critical(f"Configuration validation failed: {e}")
        sys.exit(1)

    bot = TierboardBot()

    try:
        logger.info("Starting Tierboard...")
        await bot.start(Config.DISCORD_TOKEN)
    except discord.LoginFailure:
        logger.critical("Failed to login: Invalid Discord token")
        sys.exit(1)
    finally:
        if not bot.is_closed():
            await bot.close()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")


if __name__ == "__main__":
    run()
