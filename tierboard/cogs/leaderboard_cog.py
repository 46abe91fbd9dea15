from discord.ext import commands
from typing import Optional

from tierboard.config import Config
from tierboard.constants import EventNames, GameMode
from tierboard.services.database_service import DatabaseService
from tierboard.services.event_bus import EventBus, PlacementCommitted
from tierboard.services.rank_title_service import RankTitleResolver
from tierboard.services.ranking_service import RankingService
from tierboard.services.logger import get_logger
from tierboard.utils.decorators import ratelimit
from tierboard.utils.embed_builder import EmbedBuilder
from tierboard.utils.validators import normalize_gamemode

logger = get_logger(__name__)


class LeaderboardCog(commands.Cog):
    """
    Public read views: global and per-gamemode leaderboards, tier lists and
    player profiles. Also announces committed placements when
    Config.ANNOUNCE_CHANNEL_ID is set.
    """

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def cog_load(self):
        EventBus.subscribe(EventNames.PLACEMENT_COMMITTED, self.announce_placement)

    async def cog_unload(self):
        EventBus.unsubscribe(EventNames.PLACEMENT_COMMITTED, self.announce_placement)

    async def announce_placement(self, event: PlacementCommitted):
        if not Config.ANNOUNCE_CHANNEL_ID:
            return
        channel = self.bot.get_channel(Config.ANNOUNCE_CHANNEL_ID)
        if channel is None:
            logger.warning(f"Announce channel {Config.ANNOUNCE_CHANNEL_ID} not found")
            return

        title = RankTitleResolver.title_for(event.new_global_points)
        await channel.send(embed=EmbedBuilder.info(
            title="New Placement",
            description=(
                f"**{event.ign}** placed **{event.new_tier}** in "
                f"**{GameMode(event.gamemode).display_name}**"
            ),
            footer=f"{event.new_global_points:,} pts • Rank #{event.new_rank} • {title.title}",
        ))

    @commands.hybrid_command(
        name="leaderboard",
        aliases=["lb", "top"],
        description="Show the global leaderboard or one gamemode's",
    )
    @ratelimit(uses=10, per_seconds=60, command_name="leaderboard")
    async def leaderboard(self, ctx: commands.Context, gamemode: Optional[str] = None, page: int = 1):
        await ctx.defer()

        async with DatabaseService.get_session() as session:
            if gamemode:
                mode = normalize_gamemode(gamemode)
                ranked = await RankingService.rank_by_gamemode(session, mode)
                title = f"🏆 {mode.display_name} Leaderboard"
            else:
                ranked = await RankingService.rank_all(session)
                title = "🏆 Global Leaderboard"

        embed = EmbedBuilder.leaderboard(
            title, ranked, page=max(1, page), page_size=Config.LEADERBOARD_PAGE_SIZE
        )
        await ctx.send(embed=embed)

    @commands.hybrid_command(
        name="tiers",
        description="Show a gamemode's players grouped by tier",
    )
    @ratelimit(uses=10, per_seconds=60, command_name="tiers")
    async def tiers(self, ctx: commands.Context, gamemode: str):
        await ctx.defer()

        mode = normalize_gamemode(gamemode)
        async with DatabaseService.get_session() as session:
            groups = await RankingService.tier_groups(session, mode)

        await ctx.send(embed=EmbedBuilder.tier_groups(mode, groups))

    @commands.hybrid_command(
        name="profile",
        aliases=["p"],
        description="Show a player's points, rank, title and placements",
    )
    @ratelimit(uses=10, per_seconds=60, command_name="profile")
    async def profile(self, ctx: commands.Context, ign: str):
        await ctx.defer()

        async with DatabaseService.get_session() as session:
            standing = await RankingService.standing_for(session, ign)

        embed = EmbedBuilder.profile(
            standing,
            next_title=RankTitleResolver.next_title(standing.points),
            points_to_next=RankTitleResolver.points_to_next(standing.points),
        )
        await ctx.send(embed=embed)


async def setup(bot: commands.Bot):
    await bot.add_cog(LeaderboardCog(bot))
