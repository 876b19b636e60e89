from urllib.parse import parse_qs


class Request:
    def __init__(self, scope, receive):
        if scope["type"] != "http":
            raise RuntimeError("Request only supports HTTP scope")

        self.scope = scope
        self._receive = receive

    @property
    def method(self) -> str:
        return self.scope.get("method", "")

    @property
    def scheme(self) -> str:
        return self.scope.get("scheme", "")

    @property
    def path(self) -> str:
        return self.scope.get("path", "")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("utf-8", errors="replace")

    @property
    def query_params(self) -> dict:
        return {k: v if len(v) > 1 else v[0] for k, v in parse_qs(self.query_string).items()}

    def query_value(self, name: str) -> str:
        """First value of a query parameter, or an empty string when absent."""
        values = parse_qs(self.query_string).get(name)
        return values[0] if values else ""

    @property
    def headers(self) -> dict:
        return {
            name.decode("latin-1").lower(): value.decode("latin-1")
            for name, value in self.scope.get("headers", [])
        }

    @property
    def host(self) -> str:
        """The request host as sent by the client, including any port."""
        host = self.headers.get("host")
        if host:
            return host

        server = self.server
        if not server:
            return ""

        hostname, port = server
        default_port = 443 if self.scheme == "https" else 80
        return hostname if port in (None, default_port) else f"{hostname}:{port}"

    @property
    def client(self):
        return self.scope.get("client")

    @property
    def server(self):
        return self.scope.get("server")

    @property
    def http_version(self) -> str:
        return self.scope.get("http_version", "")
