"""The HTML document served to ``go get`` for a resolved import path."""

from jinja2 import Environment, StrictUndefined

from vanity.exceptions import RenderError
from vanity.resolver import ResolvedVars

GO_GET_TEMPLATE = """<html>
<head>
<meta name="go-import" content="{{ go_import }}">
<meta name="go-source" content="{{ go_source }}" />
</head>
<body>
go get {{ import_path }}
</body>
</html>
"""

_environment = Environment(
    autoescape=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)
_template = _environment.from_string(GO_GET_TEMPLATE)


def go_import_content(resolved: ResolvedVars) -> str:
    return f"{resolved.import_path} {resolved.vcs} {resolved.uri}"


def go_source_content(resolved: ResolvedVars) -> str:
    uri = resolved.uri
    return (
        f"{resolved.import_path} {uri} {uri}/tree/master{{/dir}} "
        f"{uri}/blob/master{{/dir}}/{{file}}#L{{line}}"
    )


def render_go_get(resolved: ResolvedVars) -> str:
    """Render the go-get metadata page for ``resolved``.

    The meta tag contents are the ones :func:`go_import_content` and
    :func:`go_source_content` return. Values are HTML escaped, so a host or
    URI containing markup cannot break out of the meta tags.

    Raises:
        RenderError: If the template fails to render.
    """
    try:
        return _template.render(
            go_import=go_import_content(resolved),
            go_source=go_source_content(resolved),
            import_path=resolved.import_path,
        )
    except Exception as e:
        raise RenderError(f"Failed to render go-get page for {resolved.import_path}: {e}") from e
