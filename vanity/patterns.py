"""Compile gopkg path templates into prefix matchers.

A path template such as ``/github/$1/$2`` is turned into the expression
``/github/([\\w-]+)/([\\w-]+)``. Every ``$N`` placeholder becomes a capture
group of ASCII letters, digits, ``_`` and ``-``, and all other text is matched
literally. The expression is anchored at the start of the request path only,
so a request for a package inside a module (``/github/xxx/yyy/zzz``) or a
suffixed name (``/yaml.v2``) still matches the module's pattern.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import NamedTuple

from vanity.exceptions import PatternCompileError

logger = logging.getLogger(__name__)

DEFAULT_VCS = "git"
PLACEHOLDER = re.compile(r"\$(\d+)")
# Matched with re.ASCII, so a segment is [A-Za-z0-9_-]+
SEGMENT_PATTERN = r"([\w-]+)"


class GopkgDirective(NamedTuple):
    """One raw ``gopkg`` configuration entry."""

    path: str
    vcs: str
    uri: str


@dataclass(frozen=True)
class CompiledMatcher:
    """A path template compiled for matching, with its URI template.

    Built by :func:`compile_matcher`. Instances are immutable and safe to share
    between concurrent requests.
    """

    path: str
    uri: str
    vcs: str
    regex: re.Pattern[str] = field(repr=False, compare=False)

    @property
    def placeholder_count(self) -> int:
        return self.regex.groups

    def match(self, request_path: str) -> re.Match[str] | None:
        return self.regex.match(request_path)

    def expand(self, template: str, match: re.Match[str]) -> str:
        """Substitute ``$N`` in ``template`` with the Nth captured segment.

        Templates belonging to a pattern without placeholders are returned
        untouched.
        """
        if not self.regex.groups:
            return template

        return PLACEHOLDER.sub(lambda m: match.group(int(m.group(1))), template)


def _placeholder_numbers(template: str) -> list[int]:
    return [int(m.group(1)) for m in PLACEHOLDER.finditer(template)]


def build_expression(path: str) -> str:
    """Translate a path template into regular expression source."""
    parts = []
    position = 0
    for placeholder in PLACEHOLDER.finditer(path):
        parts.append(re.escape(path[position : placeholder.start()]))
        parts.append(SEGMENT_PATTERN)
        position = placeholder.end()
    parts.append(re.escape(path[position:]))

    return "".join(parts)


def compile_matcher(path: str, uri: str, vcs: str = DEFAULT_VCS) -> CompiledMatcher:
    """Compile one path template into a :class:`CompiledMatcher`.

    Args:
        path: The path template, e.g. ``/github/$1/$2``.
        uri: The repository URI template, e.g. ``https://github.com/$1/$2``.
        vcs: The VCS identifier reported in the go-import tag.

    Raises:
        PatternCompileError: If the template is empty, does not start with
            ``/``, numbers its placeholders out of order, or if the URI refers
            to a placeholder the path does not capture.
    """
    if not path or not path.startswith("/"):
        raise PatternCompileError("Path template must start with '/'", path=path)

    if not vcs:
        raise PatternCompileError("VCS identifier must not be empty", path=path)

    numbers = _placeholder_numbers(path)
    if numbers != list(range(1, len(numbers) + 1)):
        raise PatternCompileError(
            f"Placeholders must be numbered $1..${len(numbers)} from left to right, got "
            + ", ".join(f"${n}" for n in numbers),
            path=path,
        )

    if numbers:
        unknown = sorted({n for n in _placeholder_numbers(uri) if n > len(numbers)})
        if unknown:
            raise PatternCompileError(
                f"URI template {uri!r} refers to "
                + ", ".join(f"${n}" for n in unknown)
                + f" but the path only captures {len(numbers)} segment(s)",
                path=path,
            )

    try:
        regex = re.compile(build_expression(path), re.ASCII)
    except re.error as e:
        raise PatternCompileError(f"Invalid path template: {e}", path=path) from e

    logger.debug(f"Compiled {path!r} ({vcs}) -> {regex.pattern!r}")
    return CompiledMatcher(path=path, uri=uri, vcs=vcs, regex=regex)


def compile_matchers(directives: Iterable[GopkgDirective]) -> tuple[CompiledMatcher, ...]:
    """Compile every directive, in order.

    The first failure aborts the whole batch; callers never see a partially
    compiled list.
    """
    return tuple(
        compile_matcher(directive.path, directive.uri, directive.vcs)
        for directive in directives
    )
