from __future__ import annotations

import dataclasses
import re
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from renderer import DiscordRollRenderer
from roller import Roller

MODIFIER_RE = re.compile(r"[^0-9+\-]")
POOL_RE = re.compile(r"^\+?([0-9]+)$")
DIGITS_RE = re.compile(r"^[0-9]+$")

ROLLER = Roller()
RENDERER = DiscordRollRenderer()


def rolemaster_expression(modifier: str) -> str:
    """`"+10"` -> `"1d100!>95+10"`; an empty modifier counts as `0`."""
    return f"1d100!>95+{normalize_modifier(modifier)}"


def normalize_modifier(modifier: str) -> str:
    return (modifier or "0").strip().removeprefix("+")


def scum_outcome(values: List[int]) -> str:
    best = max(values)
    if best <= 3:
        return "Bad Outcome:"
    if best <= 5:
        return "Partial Success:"
    return "Critical Success:" if values.count(6) > 1 else "Full Success:"


def count_successes(values: List[int], target: int = 5) -> int:
    return sum(1 for v in values if v >= target)


def is_glitch(values: List[int]) -> bool:
    return values.count(1) >= len(values) / 2


def faces(roll) -> List[int]:
    return [r.roll for r in roll.rolls]


class DiceRoller(commands.Cog):
    def __init__(self, bot: Optional[commands.Bot], roller: Optional[Roller] = None, renderer: Optional[DiscordRollRenderer] = None):
        self.bot = bot
        self.roller = roller or ROLLER
        self.renderer = renderer or RENDERER

    @app_commands.command(name="roll", description="The default dice roller")
    @app_commands.describe(input="The dice command to roll (Example: 3d6)")
    async def roll(self, interaction: discord.Interaction, input: str):
        result = self.roller.roll(input)
        await interaction.response.send_message(self.renderer.render(input, result))

    @app_commands.command(name="gurps", description="A GURPS dice roller that defaults to 3d6")
    @app_commands.describe(input="The dice to roll")
    async def gurps(self, interaction: discord.Interaction, input: Optional[str] = None):
        input = input or "3d6"
        result = self.roller.roll(input)
        await interaction.response.send_message(self.renderer.render(input, result))

    @app_commands.command(name="shadowrun", description="Roll a number of dice for Shadowrun")
    @app_commands.describe(input="The number of dice in the pool")
    async def shadowrun(self, interaction: discord.Interaction, input: str):
        if not DIGITS_RE.match(input.strip()):
            return await interaction.response.send_message(
                "The number of dice you entered is not a number", ephemeral=True
            )
        pool = int(input.strip())
        if pool < 1:
            return await interaction.response.send_message("You need to roll at least one die", ephemeral=True)
        values = faces(self.roller.roll(f"{pool}d6"))

        glitch = "### GLITCH DETECTED ###\r\n\r\n" if is_glitch(values) else ""
        await interaction.response.send_message(
            f"```md\r\n{glitch}# {count_successes(values)} successes \r\n"
            f"# Rolls: [{pool}d6: ({', '.join(map(str, values))})]```"
        )

    @app_commands.command(name="rolemaster", description="Roll with a D100 with a modifier")
    @app_commands.describe(input="The modifier to add to the roll")
    async def rolemaster(self, interaction: discord.Interaction, input: Optional[str] = None):
        input = input or "0"
        if MODIFIER_RE.search(input):
            return await interaction.response.send_message(
                "The modifier you entered is not a number", ephemeral=True
            )
        result = self.roller.roll(rolemaster_expression(input))
        await interaction.response.send_message(
            self.renderer.render(f"1d100+{normalize_modifier(input)}", result)
        )

    async def _scum(self, interaction: discord.Interaction, input: str):
        m = POOL_RE.match(input.strip())
        if not m:
            return await interaction.response.send_message(
                "The number of dice you entered is not a number", ephemeral=True
            )
        pool = int(m.group(1))
        if pool < 1:
            return await interaction.response.send_message("You need to roll at least one die", ephemeral=True)

        result = self.roller.roll(f"{pool}d6")
        values = faces(result)
        status = scum_outcome(values)
        # the displayed total is the best die, not the sum
        result = dataclasses.replace(result, value=max(values))
        await interaction.response.send_message(self.renderer.render(f"{status} {pool}d6", result))

    @app_commands.command(
        name="scum",
        description="Roll a number of d6 for Scum and Villainy. Returns the highest number rolled",
    )
    @app_commands.describe(input="The number of d6 to roll")
    async def scum(self, interaction: discord.Interaction, input: str):
        await self._scum(interaction, input)

    @app_commands.command(
        name="d",
        description="Roll a number of d6 for Scum and Villainy. Returns the highest number rolled",
    )
    @app_commands.describe(input="The number of d6 to roll")
    async def d(self, interaction: discord.Interaction, input: str):
        await self._scum(interaction, input)

    @app_commands.command(name="par", description="Roll some D6, Catch the computers attention!")
    @app_commands.describe(input="Format: numberOfRolls,successesNeeded (Example: 5,3)")
    async def par(self, interaction: discord.Interaction, input: str):
        fields = [field.strip() for field in input.split(",")] + ["", ""]
        rolls, required = fields[0], fields[1]
        if not rolls or not required:
            return await interaction.response.send_message(
                "The input is not valid. Please try in the format {diceToRoll,successesRequired}. "
                "For example: /par 5,3"
            )
        if not DIGITS_RE.match(rolls):
            return await interaction.response.send_message(
                "The number of rolls you entered is not a number", ephemeral=True
            )
        if not DIGITS_RE.match(required):
            return await interaction.response.send_message(
                "The number of successes needed you entered is not a number", ephemeral=True
            )

        player_values = faces(self.roller.roll(f"{int(rolls)}d6"))
        computer_value = faces(self.roller.roll("1d6"))[0]

        succeeded = count_successes(player_values + [computer_value]) >= int(required)
        outcome = "The action succeeded" if succeeded else "The action failed"
        notice = "The computer is watching" if computer_value >= 6 else ""
        await interaction.response.send_message(
            f"{outcome} {notice} ```md\r\n# Players: [{', '.join(map(str, player_values))}] \r\n"
            f"# Computer: [{computer_value}]```"
        )


async def setup(bot: commands.Bot):
    await bot.add_cog(DiceRoller(bot))
