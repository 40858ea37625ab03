from __future__ import annotations

import logging
import math
import random
import re
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Tuple

from rolls import (
    DiceExpressionRoll,
    DiceRollResult,
    DieRoll,
    ExpressionRoll,
    FateDieRoll,
    FateSides,
    GroupRoll,
    MathFunctionRoll,
    Number,
    NumberRoll,
    RollBase,
)

log = logging.getLogger(__name__)

MAX_DICE = 1000
MAX_EXPLOSIONS = 100
MAX_REROLLS = 100
MAX_MAGNITUDE = 1e308
MAX_DIGITS = 300

FUNCTIONS = {
    "floor": math.floor,
    "ceil": math.ceil,
    "round": lambda x: math.floor(x + 0.5),
    "abs": abs,
}

NUMBER_RE = re.compile(rf"\d{{1,{MAX_DIGITS}}}(?:\.\d{{1,{MAX_DIGITS}}})?")
INT_RE = re.compile(rf"\d{{1,{MAX_DIGITS}}}")
COMPARE_RE = re.compile(rf"(>=|<=|>|<|=)?(\d{{1,{MAX_DIGITS}}})")
FUNCTION_RE = re.compile(r"(" + "|".join(FUNCTIONS) + r")\s*\(")

Compare = Tuple[str, Number]


class DiceError(ValueError):
    pass


def compare_matches(value: Number, compare: Compare) -> bool:
    op, target = compare
    if op == ">":
        return value > target
    if op == "<":
        return value < target
    if op == ">=":
        return value >= target
    if op == "<=":
        return value <= target
    return value == target


def apply_op(left: Number, op: str, right: Number) -> Number:
    if op == "+":
        result = left + right
    elif op == "-":
        result = left - right
    elif op == "*":
        result = left * right
    elif op == "**":
        result = power(left, right)
    elif right == 0:
        raise DiceError("Division by zero")
    elif op == "/":
        result = left / right
    else:
        # remainder takes the sign of the dividend
        result = math.fmod(left, right)
    return check_magnitude(result)


def power(base: Number, exponent: Number) -> float:
    if base == 0 and exponent < 0:
        raise DiceError("Division by zero")
    try:
        result = float(base) ** float(exponent)
    except OverflowError:
        raise DiceError("Result is too large") from None
    if isinstance(result, complex):
        raise DiceError("Result is not a real number")
    return result


def check_magnitude(value: Number) -> Number:
    if abs(value) > MAX_MAGNITUDE:
        raise DiceError("Result is too large")
    if isinstance(value, float):
        return int(value) if value.is_integer() else value
    return value


@dataclass
class _Face:
    """Mutable stand-in for a roll while modifiers are applied."""

    roll: Number
    value: Number
    owner: int = 0
    source: int = 0
    valid: bool = True
    success: bool = False
    matched: bool = False


class _Parser:
    def __init__(self, text: str, rng: Any):
        self.text = text
        self.pos = 0
        self.rng = rng

    # -- scanning helpers -------------------------------------------------

    def error(self, message: str) -> DiceError:
        return DiceError(f"{message} at position {self.pos + 1} in '{self.text}'")

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def accept(self, token: str) -> bool:
        if self.peek(token):
            self.pos += len(token)
            return True
        return False

    def expect(self, token: str) -> None:
        self.skip_ws()
        if not self.accept(token):
            found = self.text[self.pos] if self.pos < len(self.text) else "end of input"
            raise self.error(f"Expected '{token}' but found '{found}'")

    def match(self, pattern: re.Pattern) -> Optional[re.Match]:
        m = pattern.match(self.text, self.pos)
        if m:
            self.pos = m.end()
        return m

    # -- grammar ----------------------------------------------------------

    def parse(self) -> RollBase:
        self.skip_ws()
        if self.pos >= len(self.text):
            raise DiceError("Empty dice expression")
        node = self.expression()
        self.skip_ws()
        if self.pos < len(self.text):
            raise self.error(f"Unexpected '{self.text[self.pos]}'")
        return node

    def expression(self) -> RollBase:
        operands = [self.term()]
        ops: List[str] = []
        while True:
            self.skip_ws()
            if self.peek("+") or self.peek("-"):
                ops.append(self.text[self.pos])
                self.pos += 1
                operands.append(self.term())
            else:
                break
        return self.fold(operands, ops)

    def term(self) -> RollBase:
        operands = [self.power()]
        ops: List[str] = []
        while True:
            self.skip_ws()
            if self.peek("*") or self.peek("/") or self.peek("%"):
                ops.append(self.text[self.pos])
                self.pos += 1
                operands.append(self.power())
            else:
                break
        return self.fold(operands, ops)

    def power(self) -> RollBase:
        base = self.unary()
        self.skip_ws()
        if self.accept("**"):
            exponent = self.power()
            return self.fold([base, exponent], ["**"])
        return base

    def unary(self) -> RollBase:
        self.skip_ws()
        if self.accept("-"):
            self.skip_ws()
            m = NUMBER_RE.match(self.text, self.pos)
            if m and not self.text.startswith("d", m.end()):
                self.pos = m.end()
                return self.labelled(NumberRoll(value=-self.to_number(m.group(0))))
            operand = self.unary()
            return self.fold([NumberRoll(value=-1), operand], ["*"])
        return self.primary()

    def primary(self) -> RollBase:
        self.skip_ws()
        m = self.match(FUNCTION_RE)
        if m:
            inner = self.expression()
            self.expect(")")
            fn = FUNCTIONS[m.group(1)]
            node: RollBase = MathFunctionRoll(value=fn(inner.value), op=m.group(1), expr=inner)
        elif self.accept("("):
            node = self.expression()
            self.expect(")")
        elif self.accept("{"):
            node = self.group()
        else:
            node = self.dice_or_number()
        return self.labelled(node)

    def labelled(self, node: RollBase) -> RollBase:
        self.skip_ws()
        if not self.accept("["):
            return node
        end = self.text.find("]", self.pos)
        if end < 0:
            raise self.error("Unterminated label")
        label = self.text[self.pos:end].strip()
        self.pos = end + 1
        return replace(node, label=label or None)

    def dice_or_number(self) -> RollBase:
        start = self.pos
        count_match = self.match(INT_RE) if not self.peek("d") else None
        if not self.peek("d"):
            self.pos = start
            m = self.match(NUMBER_RE)
            if not m:
                found = self.text[self.pos] if self.pos < len(self.text) else "end of input"
                raise self.error(f"Unexpected '{found}'")
            return NumberRoll(value=self.to_number(m.group(0)))

        self.pos += 1
        count = int(count_match.group(0)) if count_match else 1
        if self.accept("%"):
            sides: RollBase = NumberRoll(value=100)
        elif self.accept("F"):
            sides = FateSides()
        else:
            m = self.match(INT_RE)
            if not m:
                raise self.error("Expected the number of sides")
            sides = NumberRoll(value=int(m.group(0)))
        if count > MAX_DICE:
            raise DiceError(f"Cannot roll more than {MAX_DICE} dice at once")
        if isinstance(sides, NumberRoll) and sides.value < 1:
            raise DiceError("A die needs at least one side")

        return self.roll_dice(count, sides, self.modifiers(dice=True))

    def to_number(self, text: str) -> Number:
        return float(text) if "." in text else int(text)

    def compare(self, default: Optional[Compare] = None) -> Optional[Compare]:
        m = self.match(COMPARE_RE)
        if not m:
            return default
        return (m.group(1) or "=", int(m.group(2)))

    def modifiers(self, dice: bool) -> List[Tuple[str, Any]]:
        mods: List[Tuple[str, Any]] = []
        while self.pos < len(self.text):
            if dice and self.accept("!!"):
                mods.append(("compound", self.compare()))
            elif dice and self.accept("!p"):
                mods.append(("penetrate", self.compare()))
            elif dice and self.accept("!"):
                mods.append(("explode", self.compare()))
            elif dice and self.accept("ro"):
                mods.append(("reroll-once", self.compare(("=", 1))))
            elif dice and self.accept("r"):
                mods.append(("reroll", self.compare(("=", 1))))
            elif self.accept("kl"):
                mods.append(("keep-lowest", self.amount()))
            elif self.accept("kh") or self.accept("k"):
                mods.append(("keep-highest", self.amount()))
            elif self.accept("dh"):
                mods.append(("drop-highest", self.amount()))
            elif self.accept("dl") or self.accept("d"):
                mods.append(("drop-lowest", self.amount()))
            elif self.accept("m"):
                mods.append(("match", self.amount(2)))
            elif self.accept("sd"):
                mods.append(("sort", "desc"))
            elif self.accept("sa") or self.accept("s"):
                mods.append(("sort", "asc"))
            elif self.accept("f"):
                compare = self.compare()
                if compare is None:
                    raise self.error("Expected a failure target")
                mods.append(("failure", compare))
            elif self.text[self.pos] in "<>=":
                mods.append(("success", self.compare()))
            else:
                break
        return mods

    def amount(self, default: int = 1) -> int:
        m = self.match(INT_RE)
        return int(m.group(0)) if m else default

    # -- evaluation -------------------------------------------------------

    def fold(self, operands: List[RollBase], ops: List[str]) -> RollBase:
        if not ops:
            return operands[0]
        value = operands[0].value
        for op, operand in zip(ops, operands[1:]):
            value = apply_op(value, op, operand.value)
        return ExpressionRoll(value=value, dice=tuple(operands), ops=tuple(ops))

    def roll_face(self, sides: RollBase) -> int:
        if isinstance(sides, FateSides):
            return self.rng.randint(-1, 1)
        return self.rng.randint(1, int(sides.value))

    def roll_dice(self, count: int, sides: RollBase, mods: List[Tuple[str, Any]]) -> DiceRollResult:
        fate = isinstance(sides, FateSides)
        faces = []
        for _ in range(count):
            roll = self.roll_face(sides)
            faces.append(_Face(roll=roll, value=roll))

        for name, arg in mods:
            if name in ("explode", "compound", "penetrate", "reroll", "reroll-once") and fate:
                raise DiceError("Fate dice cannot explode or be rerolled")
            if name in ("explode", "compound", "penetrate"):
                faces = self.explode(faces, sides, name, arg or (">=", sides.value))
            elif name in ("reroll", "reroll-once"):
                self.reroll(faces, sides, arg, once=name == "reroll-once")
        apply_modifiers(faces, mods)

        cls = FateDieRoll if fate else DieRoll
        rolls = tuple(
            cls(value=f.value, valid=f.valid, success=f.success, roll=f.roll, matched=f.matched) for f in faces
        )
        return DiceRollResult(
            value=total(faces),
            success=has_success(mods),
            count=NumberRoll(value=count),
            die=sides,
            rolls=rolls,
        )

    def explode(self, faces: List[_Face], sides: RollBase, mode: str, compare: Compare) -> List[_Face]:
        if compare_matches(1, compare) and compare_matches(sides.value, compare):
            raise DiceError("Every face would explode")
        exploded: List[_Face] = []
        for face in faces:
            exploded.append(face)
            last = face.roll
            extra = 0
            while compare_matches(last, compare) and extra < MAX_EXPLOSIONS:
                last = self.roll_face(sides)
                extra += 1
                value = last - 1 if mode == "penetrate" else last
                if mode == "compound":
                    face.roll += last
                    face.value = face.roll
                else:
                    exploded.append(_Face(roll=value, value=value))
        return exploded

    def reroll(self, faces: List[_Face], sides: RollBase, compare: Compare, once: bool) -> None:
        if not once and compare_matches(1, compare) and compare_matches(sides.value, compare):
            raise DiceError("Every face would be rerolled")
        for face in faces:
            tries = 0
            while compare_matches(face.roll, compare) and tries < (1 if once else MAX_REROLLS):
                face.roll = face.value = self.roll_face(sides)
                tries += 1

    def group(self) -> GroupRoll:
        elements = [self.expression()]
        while True:
            self.skip_ws()
            if self.accept(","):
                elements.append(self.expression())
            else:
                break
        self.expect("}")
        mods = self.modifiers(dice=False)

        if len(elements) == 1:
            terms = additive_terms(elements[0])
            if terms is not None:
                inner = self.roll_dice_expression(terms, mods)
                return GroupRoll(value=inner.value, success=inner.success, dice=(inner,))

        faces = [_Face(roll=e.value, value=e.value, source=i) for i, e in enumerate(elements)]
        apply_modifiers(faces, mods)
        dice = tuple(
            replace(elements[f.source], valid=f.valid and elements[f.source].valid, success=f.success)
            for f in faces
        )
        return GroupRoll(value=total(faces), success=has_success(mods), dice=dice)

    def roll_dice_expression(self, terms: List[RollBase], mods: List[Tuple[str, Any]]) -> DiceExpressionRoll:
        faces: List[_Face] = []
        for i, term in enumerate(terms):
            if isinstance(term, DiceRollResult):
                faces.extend(
                    _Face(
                        roll=r.roll,
                        value=r.value,
                        owner=i,
                        valid=r.valid,
                        success=r.success,
                        matched=r.matched,
                    )
                    for r in term.rolls
                )
        apply_modifiers(faces, mods)

        success = has_success(mods)
        dice: List[RollBase] = []
        for i, term in enumerate(terms):
            if not isinstance(term, DiceRollResult):
                dice.append(term)
                continue
            owned = [f for f in faces if f.owner == i]
            cls = FateDieRoll if isinstance(term.die, FateSides) else DieRoll
            rolls = tuple(
                cls(value=f.value, valid=f.valid, success=f.success, roll=f.roll, matched=f.matched) for f in owned
            )
            dice.append(replace(term, value=total(owned), success=success, rolls=rolls))

        value = sum(d.value for d in dice if isinstance(d, DiceRollResult) or not success)
        return DiceExpressionRoll(value=value, success=success, dice=tuple(dice), ops=("+",) * (len(dice) - 1))


def additive_terms(node: RollBase) -> Optional[List[RollBase]]:
    """Split `2d6 + 1d4 + 1` into its terms, or None if it is anything else."""
    if isinstance(node, DiceRollResult):
        return [node]
    if isinstance(node, ExpressionRoll) and node.label is None and all(op == "+" for op in node.ops):
        if all(isinstance(d, (DiceRollResult, NumberRoll)) for d in node.dice):
            if any(isinstance(d, DiceRollResult) for d in node.dice):
                return list(node.dice)
    return None


def has_success(mods: List[Tuple[str, Any]]) -> bool:
    return any(name in ("success", "failure") for name, _ in mods)


def total(faces: List[_Face]) -> Number:
    return sum(f.value for f in faces if f.valid)


def apply_modifiers(faces: List[_Face], mods: List[Tuple[str, Any]]) -> None:
    """Apply keep/drop, match, success/failure and sort modifiers in place."""
    success = [arg for name, arg in mods if name == "success"]
    failure = [arg for name, arg in mods if name == "failure"]

    for name, arg in mods:
        if name in ("keep-highest", "keep-lowest", "drop-highest", "drop-lowest"):
            live = sorted((f for f in faces if f.valid), key=lambda f: f.value)
            if name == "keep-highest":
                dropped = live[: max(len(live) - arg, 0)]
            elif name == "keep-lowest":
                dropped = live[arg:]
            elif name == "drop-highest":
                dropped = live[len(live) - arg:] if arg else []
            else:
                dropped = live[:arg]
            for f in dropped:
                f.valid = False
        elif name == "match":
            counts: dict = {}
            for f in faces:
                if f.valid:
                    counts[f.roll] = counts.get(f.roll, 0) + 1
            for f in faces:
                if f.valid and counts.get(f.roll, 0) >= arg:
                    f.matched = True

    if success or failure:
        for f in faces:
            if any(compare_matches(f.roll, c) for c in success):
                f.success, f.value = True, 1
            elif any(compare_matches(f.roll, c) for c in failure):
                f.success, f.value = True, -1
            else:
                f.success, f.value = False, 0

    for name, arg in mods:
        if name == "sort":
            sign = -1 if arg == "desc" else 1
            faces.sort(key=lambda f: (f.owner, sign * f.roll))


class Roller:
    """Parses dice notation and rolls it into a tree of roll results.

    Supports arithmetic (`+ - * / % **`), parentheses, `floor`/`ceil`/`round`/
    `abs`, dice (`3d6`, `d%`, `4dF`) with explode, reroll, keep/drop, match,
    success/failure and sort modifiers, `{...}` groups and `[label]`s.

    `rng` only needs a `randint(a, b)` method.
    """

    def __init__(self, rng: Any = None):
        self.rng = rng or random.Random()

    def roll(self, expression: str) -> RollBase:
        result = _Parser(expression, self.rng).parse()
        log.debug("Rolled %r -> %s", expression, result.value)
        return result
