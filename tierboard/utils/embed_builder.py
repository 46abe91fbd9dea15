import discord
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from tierboard.constants import GameMode

TIERBOARD_COLOR = {
    "primary": 0x7289DA,     # Calm blue (neutral)
    "success": 0x57F287,     # Discord green
    "error": 0xED4245,       # Discord red
    "warning": 0xFEE75C,     # Gold/yellow
    "info": 0x5865F2,        # Indigo
}

TITLE_COLOR = {
    "grandmaster": 0xE91E63,
    "master": 0x9B59B6,
    "ace": 0xE67E22,
    "specialist": 0x3498DB,
    "cadet": 0x2ECC71,
    "novice": 0x95A5A6,
    "rookie": 0x7F8C8D,
}

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


class EmbedBuilder:
    """
    Factory for standardized Discord embeds across Tierboard commands.

    Every embed includes:
        - title
        - description
        - optional fields
        - footer timestamp
    """

    @staticmethod
    def _base_embed(title: str, description: str, color: int, footer: Optional[str] = None) -> discord.Embed:
        embed = discord.Embed(
            title=title,
            description=description,
            color=color,
            timestamp=datetime.now(timezone.utc)
        )
        if footer:
            embed.set_footer(text=footer)
        return embed

    # --- Core Types --- #
    @staticmethod
    def primary(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        return EmbedBuilder._base_embed(title, description, TIERBOARD_COLOR["primary"], footer)

    @staticmethod
    def success(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        """Committed changes and confirmations."""
        return EmbedBuilder._base_embed(title, description, TIERBOARD_COLOR["success"], footer)

    @staticmethod
    def error(title: str, description: str, help_text: Optional[str] = None) -> discord.Embed:
        """Error embeds with optional help text."""
        desc = description
        if help_text:
            desc += f"\n\n💡 **Help:** {help_text}"
        return EmbedBuilder._base_embed(title, desc, TIERBOARD_COLOR["error"])

    @staticmethod
    def warning(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        return EmbedBuilder._base_embed(title, description, TIERBOARD_COLOR["warning"], footer)

    @staticmethod
    def info(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        return EmbedBuilder._base_embed(title, description, TIERBOARD_COLOR["info"], footer)

    # --- Specialized --- #
    @staticmethod
    def leaderboard(title: str, ranked: Sequence, page: int = 1, page_size: int = 10) -> discord.Embed:
        """One page of RankedPlayer rows."""
        start = (page - 1) * page_size
        rows = ranked[start:start + page_size]
        if rows:
            lines = [
                f"{MEDALS.get(row.rank, f'`#{row.rank}`')} **{row.ign}** · {row.points:,} pts"
                for row in rows
            ]
            description = "\n".join(lines)
        else:
            description = "No ranked players yet."

        pages = max(1, -(-len(ranked) // page_size))
        return EmbedBuilder._base_embed(
            title, description, TIERBOARD_COLOR["primary"],
            footer=f"Page {min(page, pages)}/{pages} • {len(ranked)} players"
        )

    @staticmethod
    def profile(standing, next_title=None, points_to_next: Optional[int] = None) -> discord.Embed:
        """Points, rank, title and per-gamemode placements of one player."""
        player = standing.player
        title = standing.title
        embed = discord.Embed(
            title=f"{player.ign}",
            description=f"**{title.title}** · Rank **#{standing.rank}** · **{standing.points:,}** pts",
            color=TITLE_COLOR.get(title.visual_tier, TIERBOARD_COLOR["primary"]),
            timestamp=datetime.now(timezone.utc)
        )

        if standing.placements:
            value = "\n".join(
                f"{GameMode(entry.gamemode).display_name}: **{entry.internal_tier}** ({entry.score} pts)"
                for entry in standing.placements
            )
        else:
            value = "No placements yet."
        embed.add_field(name="🎯 Placements", value=value, inline=False)

        details = []
        if player.region:
            details.append(f"Region: **{player.region}**")
        if player.device:
            details.append(f"Device: **{player.device}**")
        if player.java_username:
            details.append(f"Java: **{player.java_username}**")
        if details:
            embed.add_field(name="👤 Profile", value="\n".join(details), inline=True)

        if next_title is not None:
            embed.add_field(
                name="📈 Next Title",
                value=f"{next_title.title} in **{points_to_next}** pts",
                inline=True
            )

        embed.set_footer(text="Tierboard • Placements update live")
        return embed

    @staticmethod
    def tier_groups(gamemode: GameMode, groups: Dict[str, List]) -> discord.Embed:
        embed = EmbedBuilder._base_embed(
            f"{gamemode.display_name} Tiers", "", TIERBOARD_COLOR["info"]
        )
        for key, members in groups.items():
            label = "Retired" if key == "retired" else key.replace("tier-", "Tier ")
            value = ", ".join(f"{m.ign} ({m.tier})" for m in members) or "—"
            embed.add_field(name=label, value=value[:1024], inline=False)
        return embed

    @staticmethod
    def batch_result(title: str, result, max_errors: int = 15) -> discord.Embed:
        color = TIERBOARD_COLOR["success"] if result.failure_count == 0 else TIERBOARD_COLOR["warning"]
        embed = EmbedBuilder._base_embed(
            title,
            f"✅ **{result.success_count}** succeeded · ❌ **{result.failure_count}** failed",
            color
        )
        if result.errors:
            shown = result.errors[:max_errors]
            more = len(result.errors) - len(shown)
            value = "\n".join(shown)
            if more:
                value += f"\n… and {more} more"
            embed.add_field(name="Errors", value=value[:1024], inline=False)
        return embed
