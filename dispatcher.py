from __future__ import annotations

import logging

import discord
from discord import app_commands

log = logging.getLogger(__name__)


def describe_interaction(interaction: discord.Interaction) -> str:
    """Rebuild the slash command the user typed, e.g. `/roll input:2d6`."""
    data = interaction.data or {}
    parts = [f"/{data.get('name', 'unknown')}"]
    for option in data.get("options", []):
        parts.append(f"{option.get('name')}:{option.get('value')}")
    return " ".join(parts)


def format_error(error: Exception, interaction: discord.Interaction) -> str:
    return f"```\nError Occurred.\nError: {error}\nInput: {describe_interaction(interaction)}\n```"


async def report_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
    original = getattr(error, "original", error)
    log.error(
        "Error in command %s",
        describe_interaction(interaction),
        exc_info=(type(original), original, original.__traceback__),
    )
    content = format_error(original, interaction)
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content)
        else:
            await interaction.response.send_message(content)
    except discord.DiscordException:
        log.exception("Failed to report error for %s", describe_interaction(interaction))


class DiceCommandTree(app_commands.CommandTree):
    async def on_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        await report_error(interaction, error)


@app_commands.command(name="ping", description="A quick ping pong test")
async def ping(interaction: discord.Interaction):
    await interaction.response.send_message("Pong!")
