from discord.ext import commands
from typing import Dict, Optional

from tierboard.services.database_service import DatabaseService
from tierboard.services.player_service import PlayerService
from tierboard.services.placement_service import PlacementService
from tierboard.services.points_aggregator import PointsAggregator
from tierboard.services.bulk_submission_service import BulkSubmissionService
from tierboard.constants import GameMode
from tierboard.exceptions import AuthorizationError, PlayerNotFoundError
from tierboard.services.logger import get_logger
from tierboard.utils.admin_session import AdminSession
from tierboard.utils.decorators import ratelimit
from tierboard.utils.embed_builder import EmbedBuilder
from tierboard.utils.line_parser import (
    REGISTRATION_FORMAT,
    SUBMISSION_FORMAT,
    parse_registration_lines,
    parse_submission_lines,
)

logger = get_logger(__name__)


class AdminCog(commands.Cog):
    """
    Placement and player management for tier testers.

    Every command needs a live AdminSession. Sessions are cached per member
    until they expire, but the member's roles are checked on every command.
    Business logic stays in the services; this cog only parses, authorizes
    and renders.
    """

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self._sessions: Dict[int, AdminSession] = {}

    def _admin_session(self, ctx: commands.Context) -> AdminSession:
        role_ids = [role.id for role in getattr(ctx.author, "roles", [])]
        cached = self._sessions.get(ctx.author.id)
        try:
            if cached is None:
                session = AdminSession.from_role_ids(role_ids)
            else:
                session = cached.refresh(role_ids)
        except AuthorizationError:
            self._sessions.pop(ctx.author.id, None)
            raise

        if session is not cached:
            self._sessions[ctx.author.id] = session
            logger.info(f"Issued admin session for {ctx.author} until {session.expires_at}")
        session.require()
        return session

    @staticmethod
    def _context(ctx: commands.Context) -> str:
        return f"command:/{ctx.command.name} user:{ctx.author.id} guild:{ctx.guild.id if ctx.guild else 'DM'}"

    async def _resolve_player_id(self, ign: str) -> int:
        async with DatabaseService.get_session() as session:
            player = await PlayerService.get_by_ign(session, ign)
        if player is None:
            raise PlayerNotFoundError(ign=ign)
        return player.id

    @commands.hybrid_command(
        name="submit",
        description="Set a player's tier in one gamemode (creates the player if new)",
    )
    @ratelimit(uses=30, per_seconds=60, command_name="submit")
    async def submit(
        self,
        ctx: commands.Context,
        ign: str,
        gamemode: str,
        tier: str,
        region: Optional[str] = None,
    ):
        self._admin_session(ctx)
        await ctx.defer()

        result = await PlacementService.submit_by_ign(
            ign, gamemode, tier, region=region, context=self._context(ctx)
        )

        embed = EmbedBuilder.success(
            title="Placement Saved",
            description=(
                f"**{result.ign}** is now **{result.tier}** in "
                f"**{GameMode(result.gamemode).display_name}** (+{result.points} pts)"
            ),
            footer=f"Global: {result.global_points:,} pts • Rank #{result.rank}",
        )
        await ctx.send(embed=embed)

    @commands.hybrid_command(
        name="clear",
        description="Remove a player's placement in one gamemode",
    )
    async def clear(self, ctx: commands.Context, ign: str, gamemode: str):
        self._admin_session(ctx)
        await ctx.defer()

        player_id = await self._resolve_player_id(ign)
        total = await PlacementService.clear_placement(player_id, gamemode, context=self._context(ctx))

        await ctx.send(embed=EmbedBuilder.success(
            title="Placement Cleared",
            description=f"**{ign}** has no placement in **{gamemode}** now.",
            footer=f"Global: {total:,} pts",
        ))

    @commands.hybrid_command(
        name="bulk",
        description=f"Submit many placements, one per line: {SUBMISSION_FORMAT}",
    )
    @ratelimit(uses=3, per_seconds=60, command_name="bulk")
    async def bulk(self, ctx: commands.Context, *, text: str):
        self._admin_session(ctx)
        await ctx.defer()

        entries, parse_errors = parse_submission_lines(text)
        result = await BulkSubmissionService.submit_batch(entries, context=self._context(ctx))
        result.failure_count += len(parse_errors)
        result.errors = sorted(parse_errors + result.errors, key=_line_number)

        await ctx.send(embed=EmbedBuilder.batch_result("Bulk Submission", result))

    @commands.hybrid_command(
        name="register",
        description=f"Register many players, one per line: {REGISTRATION_FORMAT}",
    )
    @ratelimit(uses=3, per_seconds=60, command_name="register")
    async def register(self, ctx: commands.Context, *, text: str):
        self._admin_session(ctx)
        await ctx.defer()

        rows, parse_errors = parse_registration_lines(text)
        result = await BulkSubmissionService.register_batch(rows, context=self._context(ctx))
        result.failure_count += len(parse_errors)
        result.errors = sorted(parse_errors + result.errors, key=_line_number)

        await ctx.send(embed=EmbedBuilder.batch_result("Player Registration", result))

    @commands.hybrid_command(
        name="editplayer",
        description="Change a player's region, device or Java username",
    )
    async def editplayer(
        self,
        ctx: commands.Context,
        ign: str,
        region: Optional[str] = None,
        device: Optional[str] = None,
        java_username: Optional[str] = None,
    ):
        self._admin_session(ctx)
        await ctx.defer()

        changes = {}
        if region is not None:
            changes["region"] = region
        if device is not None:
            changes["device"] = device
        if java_username is not None:
            changes["java_username"] = java_username

        player_id = await self._resolve_player_id(ign)
        player = await PlayerService.update_profile(player_id, context=self._context(ctx), **changes)

        await ctx.send(embed=EmbedBuilder.success(
            title="Player Updated",
            description=(
                f"**{player.ign}** · Region: {player.region or '—'} · "
                f"Device: {player.device or '—'} · Java: {player.java_username or '—'}"
            ),
        ))

    @commands.hybrid_command(
        name="deleteplayer",
        description="Delete a player and all of their placements",
    )
    async def deleteplayer(self, ctx: commands.Context, ign: str):
        self._admin_session(ctx)
        await ctx.defer()

        player_id = await self._resolve_player_id(ign)
        deleted = await PlayerService.delete_player(player_id, context=self._context(ctx))

        await ctx.send(embed=EmbedBuilder.warning(
            title="Player Deleted",
            description=f"**{deleted}** and all of their placements were removed.",
        ))

    @commands.hybrid_command(
        name="repairpoints",
        description="Recompute every player's global points from their placements",
    )
    async def repairpoints(self, ctx: commands.Context):
        self._admin_session(ctx)
        await ctx.defer()

        repaired = await PointsAggregator.recompute_all(context=self._context(ctx))
        await ctx.send(embed=EmbedBuilder.info(
            title="Points Check Complete",
            description=f"Repaired **{repaired}** player totals.",
        ))

    async def cog_command_error(self, ctx: commands.Context, error: Exception):
        original = getattr(error, "original", error)
        if isinstance(original, AuthorizationError):
            self._sessions.pop(ctx.author.id, None)


def _line_number(message: str) -> int:
    try:
        return int(message.split(" ", 2)[1])
    except (IndexError, ValueError):
        return 0


async def setup(bot: commands.Bot):
    await bot.add_cog(AdminCog(bot))
