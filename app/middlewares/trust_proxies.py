from starlette.types import ASGIApp, Receive, Scope, Send


def resolve_client_ip(forwarded_for: str, proxies_count: int) -> str | None:
    """Pick the client address from an ``X-Forwarded-For`` chain.

    The header reads ``client, proxy1, proxy2``; with N trusted proxies the
    client sits at index ``-(N + 1)``. Returns None when the chain is too
    short to trust.
    """
    ips = [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]
    if proxies_count <= 0 or len(ips) <= proxies_count:
        return None
    return ips[-(proxies_count + 1)]


class TrustedProxiesMiddleware:
    """Rewrite ``scope["client"]`` so slowapi and logging see the real caller."""

    def __init__(self, app: ASGIApp, proxies_count: int = 1) -> None:
        self.app = app
        self.proxies_count = proxies_count

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.proxies_count > 0:
            headers = dict(scope.get("headers", []))
            forwarded_for = headers.get(b"x-forwarded-for", b"").decode()
            real_ip = resolve_client_ip(forwarded_for, self.proxies_count) if forwarded_for else None
            if real_ip:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (real_ip, port)

        await self.app(scope, receive, send)
