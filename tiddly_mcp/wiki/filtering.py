"""Evaluation of TiddlyWiki filter expressions.

Supports the subset of the filter language that agents use for queries:

- runs separated by whitespace, with the ``+`` (intersect with the result so
  far) and ``-`` (remove from the result so far) prefixes;
- literal titles: ``[[Title With Spaces]]``, ``"Title"``, ``'Title'``, ``Word``;
- bracketed runs of steps such as ``[tag[Journal]!is[system]sort[modified]]``.
"""

import re
from typing import Callable, NamedTuple

from tiddly_mcp.exceptions import FilterSyntaxError

from .base import Fields, field_as_list, field_as_text, is_system_title, matches_search

_STEP_HEAD = re.compile(r"(!?)([A-Za-z0-9_.$\-]*)(?::([^\[\]]*))?\[")


class Step(NamedTuple):
    """A single ``operator:suffix[operand]`` step."""

    operator: str
    operand: str
    suffix: str | None = None
    negated: bool = False


class Run(NamedTuple):
    """A filter run with its prefix and either steps or a literal title."""

    prefix: str
    steps: tuple[Step, ...] = ()
    literal: str | None = None


def parse_filter(expression: str) -> list[Run]:
    """Parse a filter expression into runs.

    Raises:
        FilterSyntaxError: If the expression is malformed.
    """
    runs: list[Run] = []
    pos = 0
    length = len(expression)

    while pos < length:
        if expression[pos].isspace():
            pos += 1
            continue

        prefix = ""
        if expression[pos] in "+-" and pos + 1 < length and not expression[pos + 1].isspace():
            prefix = expression[pos]
            pos += 1

        char = expression[pos]
        if expression.startswith("[[", pos):
            end = expression.find("]]", pos + 2)
            if end == -1:
                raise FilterSyntaxError(expression, "missing ']]' after literal title")
            runs.append(Run(prefix=prefix, literal=expression[pos + 2:end]))
            pos = end + 2
        elif char in "\"'":
            end = expression.find(char, pos + 1)
            if end == -1:
                raise FilterSyntaxError(expression, f"missing closing {char}")
            runs.append(Run(prefix=prefix, literal=expression[pos + 1:end]))
            pos = end + 1
        elif char == "[":
            steps, pos = _parse_steps(expression, pos + 1)
            runs.append(Run(prefix=prefix, steps=steps))
        else:
            end = pos
            while end < length and not expression[end].isspace() and expression[end] != "[":
                end += 1
            runs.append(Run(prefix=prefix, literal=expression[pos:end]))
            pos = end

    return runs


def _parse_steps(expression: str, pos: int) -> tuple[tuple[Step, ...], int]:
    steps: list[Step] = []
    while True:
        if pos >= len(expression):
            raise FilterSyntaxError(expression, "missing ']' at end of run")
        if expression[pos] == "]":
            if not steps:
                raise FilterSyntaxError(expression, "empty filter run")
            return tuple(steps), pos + 1

        match = _STEP_HEAD.match(expression, pos)
        if match is None:
            raise FilterSyntaxError(expression, f"unexpected character {expression[pos]!r} at {pos}")
        if match.end() < len(expression) and expression[match.end()] in "{<":
            raise FilterSyntaxError(expression, "text references and variables are not supported")

        close = expression.find("]", match.end())
        if close == -1:
            raise FilterSyntaxError(expression, "missing ']' after operand")

        negated, operator, suffix = match.group(1), match.group(2), match.group(3)
        steps.append(
            Step(
                operator=operator or "title",
                operand=expression[match.end():close],
                suffix=suffix or None,
                negated=bool(negated),
            )
        )
        pos = close + 1


def evaluate_filter(expression: str, tiddlers: list[Fields]) -> list[str]:
    """Evaluate ``expression`` over a snapshot of tiddler field maps.

    Args:
        expression: Filter expression.
        tiddlers: Every tiddler in the store, in store order.

    Returns:
        Matching titles, de-duplicated, in filter order.
    """
    index = {fields["title"]: fields for fields in tiddlers}
    all_titles = list(index)
    result: list[str] = []

    for run in parse_filter(expression):
        if run.prefix == "+":
            result = _evaluate_run(expression, run, list(result), index)
        elif run.prefix == "-":
            removed = set(_evaluate_run(expression, run, all_titles, index))
            result = [title for title in result if title not in removed]
        else:
            for title in _evaluate_run(expression, run, all_titles, index):
                if title not in result:
                    result.append(title)

    return result


def _evaluate_run(expression: str, run: Run, source: list[str], index: dict[str, Fields]) -> list[str]:
    if run.literal is not None:
        return [run.literal]

    titles = source
    for step in run.steps:
        operator = _OPERATORS.get(step.operator)
        if operator is None:
            # Unknown operators compare against the field of the same name
            titles = _field_operator(step.operator, step, titles, index)
        else:
            titles = operator(step, titles, index, expression)
    return _dedupe(titles)


def _dedupe(titles: list[str]) -> list[str]:
    seen: set[str] = set()
    unique = []
    for title in titles:
        if title not in seen:
            seen.add(title)
            unique.append(title)
    return unique


def _keep(step: Step, titles: list[str], predicate: Callable[[str], bool]) -> list[str]:
    return [title for title in titles if predicate(title) != step.negated]


def _count(step: Step, expression: str, default: int = 1) -> int:
    if not step.operand.strip():
        return default
    try:
        return max(int(step.operand), 0)
    except ValueError:
        raise FilterSyntaxError(expression, f"{step.operator} expects a number, got {step.operand!r}")


def _op_all(step, titles, index, expression):
    if not step.operand:
        return list(titles)
    selected: list[str] = []
    for category in step.operand.split("+"):
        if category == "tiddlers":
            selected.extend(index)
        elif category == "current":
            selected.extend(titles)
        else:
            raise FilterSyntaxError(expression, f"unsupported all[{category}]")
    return _dedupe(selected)


def _op_title(step, titles, index, expression):
    if step.negated:
        return [title for title in titles if title != step.operand]
    return [step.operand]


def _op_tag(step, titles, index, expression):
    return _keep(step, titles, lambda title: step.operand in field_as_list(index.get(title, {}).get("tags")))


def _op_tags(step, titles, index, expression):
    return _dedupe([tag for title in titles for tag in field_as_list(index.get(title, {}).get("tags"))])


def _op_prefix(step, titles, index, expression):
    return _keep(step, titles, lambda title: title.startswith(step.operand))


def _op_suffix(step, titles, index, expression):
    return _keep(step, titles, lambda title: title.endswith(step.operand))


def _op_field(step, titles, index, expression):
    if not step.suffix:
        raise FilterSyntaxError(expression, "field operator needs a field name, e.g. field:type[...]")
    return _field_operator(step.suffix, step, titles, index)


def _field_operator(name: str, step: Step, titles: list[str], index: dict[str, Fields]) -> list[str]:
    def predicate(title: str) -> bool:
        fields = index.get(title, {"title": title})
        return field_as_text(fields.get(name)) == step.operand

    return _keep(step, titles, predicate)


def _op_has(step, titles, index, expression):
    return _keep(step, titles, lambda title: field_as_text(index.get(title, {}).get(step.operand)) != "")


def _op_is(step, titles, index, expression):
    if step.operand == "system":
        return _keep(step, titles, is_system_title)
    if step.operand == "tiddler":
        return _keep(step, titles, lambda title: title in index)
    raise FilterSyntaxError(expression, f"unsupported is[{step.operand}]")


def _op_search(step, titles, index, expression):
    return _keep(
        step,
        titles,
        lambda title: matches_search(index.get(title, {"title": title}), step.operand, field=step.suffix),
    )


def _op_sort(step, titles, index, expression):
    field = step.operand or "title"
    ordered = sorted(titles, key=lambda title: field_as_text(index.get(title, {"title": title}).get(field)).casefold())
    return list(reversed(ordered)) if step.negated else ordered


def _op_nsort(step, titles, index, expression):
    field = step.operand or "title"

    def key(title: str) -> tuple[int, float, str]:
        text = field_as_text(index.get(title, {"title": title}).get(field))
        try:
            return (0, float(text), "")
        except ValueError:
            return (1, 0.0, text.casefold())

    ordered = sorted(titles, key=key)
    return list(reversed(ordered)) if step.negated else ordered


def _op_limit(step, titles, index, expression):
    count = _count(step, expression, default=len(titles))
    if step.negated:
        return titles[-count:] if count else []
    return titles[:count]


def _op_first(step, titles, index, expression):
    return titles[:_count(step, expression)]


def _op_last(step, titles, index, expression):
    count = _count(step, expression)
    return titles[-count:] if count else []


def _op_each(step, titles, index, expression):
    field = step.operand or "title"
    seen: set[str] = set()
    kept = []
    for title in titles:
        value = field_as_text(index.get(title, {"title": title}).get(field))
        if value not in seen:
            seen.add(value)
            kept.append(title)
    return kept


_OPERATORS = {
    "all": _op_all,
    "title": _op_title,
    "tag": _op_tag,
    "tags": _op_tags,
    "prefix": _op_prefix,
    "suffix": _op_suffix,
    "field": _op_field,
    "has": _op_has,
    "is": _op_is,
    "search": _op_search,
    "sort": _op_sort,
    "nsort": _op_nsort,
    "limit": _op_limit,
    "first": _op_first,
    "last": _op_last,
    "each": _op_each,
}
