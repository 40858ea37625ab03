from __future__ import annotations

import asyncio
import logging
from typing import Iterable

import discord
from discord import app_commands
from discord.ext import commands

from config import load_config
from dispatcher import DiceCommandTree, describe_interaction, ping

# === Logging Setup ===
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
log = logging.getLogger("main")

PREFIX = "!"
DEFAULT_EXTENSIONS: tuple[str, ...] = ("diceroller", "notes")


def build_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    return intents


class DiceBot(commands.Bot):
    def __init__(self, *, extensions: Iterable[str], **kwargs):
        super().__init__(tree_cls=DiceCommandTree, **kwargs)
        self._initial_extensions = tuple(extensions)

    async def setup_hook(self):
        self.tree.add_command(ping)
        await load_extensions(self, self._initial_extensions)
        try:
            log.info("Started refreshing application (/) commands.")
            synced = await self.tree.sync()
            log.info("Successfully reloaded %d application (/) commands.", len(synced))
        except Exception:
            log.exception("Failed to sync application commands.")

    async def on_ready(self):
        log.info("Logged in as %s (%s)", self.user, getattr(self.user, "id", "unknown"))

    async def on_app_command_completion(self, interaction: discord.Interaction, command: app_commands.Command):
        log.info("Handled %s for %s", describe_interaction(interaction), interaction.user)


async def load_extensions(bot: commands.Bot, exts: Iterable[str]):
    for ext in exts:
        try:
            await bot.load_extension(ext)
            log.info("Loaded extension: %s", ext)
        except Exception:
            log.exception("Failed to load extension: %s", ext)


async def main():
    config = load_config()
    logging.getLogger().setLevel(config["LOG_LEVEL"])

    bot = DiceBot(
        command_prefix=PREFIX,
        intents=build_intents(),
        help_command=None,
        application_id=config["DISCORD_CLIENT_ID"],
        status=discord.Status.online,
        extensions=DEFAULT_EXTENSIONS,
    )

    async with bot:
        await bot.start(config["DISCORD_TOKEN"])


if __name__ == "__main__":
    asyncio.run(main())
