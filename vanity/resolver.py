import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from vanity.exceptions import NoMatchError
from vanity.patterns import CompiledMatcher

logger = logging.getLogger(__name__)

type MatcherList = tuple[CompiledMatcher, ...]


@dataclass(frozen=True)
class ResolvedVars:
    """The values rendered into the go-get metadata for one request."""

    host: str
    path: str
    vcs: str
    uri: str

    @property
    def import_path(self) -> str:
        return f"{self.host}{self.path}"


def resolve(matchers: Sequence[CompiledMatcher], host: str, path: str) -> ResolvedVars:
    """Resolve a request against the configured import paths.

    Matchers are tried in configuration order and the first one whose pattern
    matches the start of ``path`` wins. The module path is expanded from the
    pattern, so trailing package segments in the request path never leak into
    the module path or the repository URI.

    Args:
        matchers: The compiled matchers, in configuration order.
        host: The request host, copied into the result verbatim.
        path: The request path.

    Returns:
        The resolved template variables.

    Raises:
        NoMatchError: If no matcher matches the path.
    """
    for matcher in matchers:
        match = matcher.match(path)
        if not match:
            continue

        resolved = ResolvedVars(
            host=host,
            path=matcher.expand(matcher.path, match),
            vcs=matcher.vcs,
            uri=matcher.expand(matcher.uri, match),
        )
        logger.debug(f"Resolved {host}{path} via {matcher.path!r} -> {resolved.uri}")
        return resolved

    raise NoMatchError(path)


class MatcherRegistry:
    """Holds the published matcher list.

    The list is replaced wholesale by :meth:`publish`; readers take a
    :attr:`snapshot` once per request and resolve against it, so a reload
    running alongside a request is never observed half-applied.
    """

    def __init__(self, matchers: Iterable[CompiledMatcher] = ()):
        self._matchers: MatcherList = tuple(matchers)

    @property
    def snapshot(self) -> MatcherList:
        return self._matchers

    def publish(self, matchers: Iterable[CompiledMatcher]) -> MatcherList:
        """Install a new matcher list, returning the one it replaced."""
        new_matchers = tuple(matchers)
        previous, self._matchers = self._matchers, new_matchers
        logger.debug(f"Published {len(new_matchers)} matcher(s), replacing {len(previous)}")
        return previous

    def resolve(self, host: str, path: str) -> ResolvedVars:
        return resolve(self.snapshot, host, path)

    def __len__(self) -> int:
        return len(self._matchers)

    def __iter__(self):
        return iter(self._matchers)
