from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple, Union

Number = Union[int, float]


@dataclass(frozen=True)
class RollBase:
    """Common fields of every node in a roll result tree."""

    kind: ClassVar[str] = ""

    value: Number = 0
    valid: bool = True
    label: Optional[str] = None
    success: bool = False


@dataclass(frozen=True)
class NumberRoll(RollBase):
    kind: ClassVar[str] = "number"


@dataclass(frozen=True)
class FateSides(RollBase):
    """The `F` in `4dF`."""

    kind: ClassVar[str] = "fate"


@dataclass(frozen=True)
class DieRoll(RollBase):
    kind: ClassVar[str] = "roll"

    roll: Number = 0
    matched: bool = False


@dataclass(frozen=True)
class FateDieRoll(RollBase):
    kind: ClassVar[str] = "fateroll"

    roll: int = 0
    matched: bool = False


@dataclass(frozen=True)
class DiceRollResult(RollBase):
    kind: ClassVar[str] = "die"

    count: NumberRoll = NumberRoll(1)
    die: RollBase = NumberRoll(6)
    rolls: Tuple[RollBase, ...] = ()


@dataclass(frozen=True)
class ExpressionRoll(RollBase):
    kind: ClassVar[str] = "expression"

    dice: Tuple[RollBase, ...] = ()
    ops: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DiceExpressionRoll(RollBase):
    kind: ClassVar[str] = "diceexpression"

    dice: Tuple[RollBase, ...] = ()
    ops: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GroupRoll(RollBase):
    kind: ClassVar[str] = "group"

    dice: Tuple[RollBase, ...] = ()


@dataclass(frozen=True)
class MathFunctionRoll(RollBase):
    kind: ClassVar[str] = "mathfunction"

    op: str = ""
    expr: RollBase = NumberRoll(0)
