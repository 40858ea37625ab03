from __future__ import annotations

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

log = logging.getLogger(__name__)

ARCHIVE_MINUTES = 1440


def thread_name(sender: str, recipient: str) -> str:
    first, second = sorted([sender, recipient])
    return f"{first}-{second}-notes"


class NotePassing(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def _find_thread(self, channel: discord.TextChannel, name: str) -> Optional[discord.Thread]:
        for thread in channel.threads:
            if thread.name == name:
                return thread
        try:
            async for thread in channel.archived_threads(private=True, limit=None):
                if thread.name == name:
                    return thread
        except discord.Forbidden:
            log.warning("Missing perms to list archived threads in #%s", channel.name)
        return None

    @app_commands.command(name="note", description="Pass a note to another user")
    @app_commands.describe(user="The user that you want to message", message="The message to send")
    @app_commands.guild_only()
    async def note(self, interaction: discord.Interaction, user: discord.User, message: str):
        channel = interaction.channel
        if not isinstance(channel, discord.TextChannel):
            return await interaction.response.send_message(
                "Notes can only be passed in a server text channel", ephemeral=True
            )

        await interaction.response.defer(ephemeral=True)
        sender = interaction.user
        name = thread_name(sender.name, user.name)

        await channel.send(f"{sender.mention} has passed a note to {user.mention}")

        thread = await self._find_thread(channel, name)
        if thread is None:
            thread = await channel.create_thread(
                name=name,
                type=discord.ChannelType.private_thread,
                auto_archive_duration=ARCHIVE_MINUTES,
            )
            log.info("Created note thread %s in #%s", name, channel.name)

        await thread.edit(archived=False, locked=False, auto_archive_duration=ARCHIVE_MINUTES)
        await thread.add_user(sender)
        await thread.add_user(user)
        await thread.send(f"{sender.mention} passes the following note to {user.mention}:\n> {message or 'Empty Note'}")
        await thread.edit(locked=True)

        await interaction.followup.send("Note sent", ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(NotePassing(bot))
