from __future__ import annotations

from rolls import (
    DiceExpressionRoll,
    DiceRollResult,
    DieRoll,
    ExpressionRoll,
    FateDieRoll,
    GroupRoll,
    MathFunctionRoll,
    Number,
    RollBase,
)


class RenderError(ValueError):
    pass


def format_number(value: Number) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def add_brackets(render: str) -> str:
    if not render.startswith("("):
        render = f"({render}"
    if not render.endswith(")"):
        render = f"{render})"
    return render


def strip_brackets(render: str) -> str:
    if render.startswith("("):
        render = render[1:]
    if render.endswith(")"):
        render = render[:-1]
    return render


class DiscordRollRenderer:
    """Renders a roll tree as a Discord markdown code block.

    The trace mirrors the structure of the tree: dice in parentheses, groups in
    braces, dropped or invalid parts struck through and labels prefixed.
    """

    def render(self, input: str, roll: RollBase) -> str:
        return f"```md\r\n# {format_number(roll.value)} \r\nDetails: [{input} ({self._render(roll, root=True)})]```"

    def _render(self, roll: RollBase, root: bool = False) -> str:
        kind = roll.kind

        if kind == "diceexpression":
            render = self._render_dice_expression(roll)
        elif kind == "group":
            render = self._render_group(roll)
        elif kind == "die":
            render = self._render_die(roll)
        elif kind == "expression":
            render = self._render_expression(roll)
        elif kind == "mathfunction":
            render = self._render_function(roll)
        elif kind == "roll":
            return self._render_roll(roll)
        elif kind == "fateroll":
            return self._render_fate_roll(roll)
        elif kind == "number":
            label = f" ({roll.label})" if roll.label else ""
            return f"{format_number(roll.value)}{label}"
        elif kind == "fate":
            return "F"
        else:
            raise RenderError(f"Unable to render roll of kind {kind!r}")

        if not roll.valid:
            render = "~~" + render.replace("~~", "") + "~~"

        if root:
            return strip_brackets(render)

        return f"({roll.label}: {render})" if roll.label else render

    def _render_group(self, group: GroupRoll) -> str:
        replies = [self._render(die) for die in group.dice]
        if len(replies) > 1:
            return "{ " + " + ".join(replies) + " }"
        return "{ " + strip_brackets(replies[0]) + " }"

    def _render_dice_expression(self, group: DiceExpressionRoll) -> str:
        replies = [self._render(die) for die in group.dice]
        return f"({' + '.join(replies)})" if len(replies) > 1 else replies[0]

    def _render_die(self, die: DiceRollResult) -> str:
        return "(" + ", ".join(self._render(roll) for roll in die.rolls) + ")"

    def _render_expression(self, expr: ExpressionRoll) -> str:
        if len(expr.dice) > 1:
            parts = [self._render(expr.dice[0])]
            for op, operand in zip(expr.ops, expr.dice[1:]):
                parts.append(op)
                parts.append(self._render(operand))
            return f"({' '.join(parts)})"
        if expr.dice[0].kind == "number":
            return format_number(expr.value)
        return self._render(expr.dice[0])

    def _render_function(self, roll: MathFunctionRoll) -> str:
        return f"({roll.op}{add_brackets(self._render(roll.expr))})"

    def _render_roll(self, roll: DieRoll) -> str:
        return format_number(roll.roll)

    def _render_fate_roll(self, roll: FateDieRoll) -> str:
        symbol = "0" if roll.roll == 0 else "+" if roll.roll > 0 else "-"

        display = str(roll.roll)
        if not roll.valid:
            display = f"~~{symbol}~~"
        elif roll.success and roll.value == 1:
            display = f"**{symbol}**"
        elif roll.success and roll.value == -1:
            display = f"*{symbol}*"

        if roll.matched:
            display = f"__{display}__"
        return display
