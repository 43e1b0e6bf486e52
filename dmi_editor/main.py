import asyncio
import secrets

import click

from . import commands
from .commands import EditorSession
from .logger import error, set_debug, trace
from .server import create_mcp_server

DEFAULT_PORT = 51822


def check_token(token: str | None, auth_header: str, query_token: str | None) -> int:
    """요청 토큰을 검사하고 HTTP 상태 코드를 반환합니다 (200이면 통과)."""
    if not token:
        return 200

    provided = auth_header[7:] if auth_header.startswith("Bearer ") else None
    provided = provided or query_token

    if not provided:
        return 401
    if not secrets.compare_digest(provided, token):
        return 403
    return 200


def create_sse_app(session: EditorSession, token: str | None = None):
    """세션 하나를 공유하는 SSE 전송용 Starlette 앱을 만듭니다.

    /sse 와 /messages/ 는 토큰이 있을 때만 열리고, /health 는 항상 열립니다.
    """
    from mcp.server.sse import SseServerTransport
    from starlette.applications import Starlette
    from starlette.requests import Request
    from starlette.responses import JSONResponse, Response
    from starlette.routing import Mount, Route

    server = create_mcp_server(session)
    sse = SseServerTransport("/messages/")

    def denied(request):
        code = check_token(
            token,
            request.headers.get("Authorization", ""),
            request.query_params.get("token"),
        )
        if code == 200:
            return None
        trace(f"토큰 거부 ({code}): {request.client}")
        reason = "Missing token" if code == 401 else "Invalid token"
        return JSONResponse({"error": reason}, status_code=code)

    async def handle_sse(request):
        rejection = denied(request)
        if rejection is not None:
            return rejection
        async with sse.connect_sse(request.scope, request.receive, request._send) as (read, write):
            await server.run(read, write, server.create_initialization_options())
        return Response()

    async def handle_messages(scope, receive, send):
        rejection = denied(Request(scope, receive))
        if rejection is not None:
            await rejection(scope, receive, send)
            return
        await sse.handle_post_message(scope, receive, send)

    async def health(request):
        loaded = commands.status(session).get("metadata_loaded", False)
        return JSONResponse({
            "status": "ok",
            "metadata_loaded": loaded,
            "auth_required": token is not None,
        })

    return Starlette(routes=[
        Route("/sse", handle_sse),
        Mount("/messages/", app=handle_messages),
        Route("/health", health),
    ])


async def serve_stdio(session: EditorSession):
    from mcp.server.stdio import stdio_server

    server = create_mcp_server(session)
    async with stdio_server() as (read, write):
        trace("stdio 모드로 대기 중")
        await server.run(read, write, server.create_initialization_options())


async def serve_sse(app, host: str, port: int):
    import uvicorn

    await uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info")).serve()


@click.command()
@click.option("--mode", type=click.Choice(["stdio", "sse"]), default="stdio", show_default=True)
@click.option("--host", default="localhost", show_default=True, help="SSE 모드 바인딩 주소")
@click.option("--port", type=int, default=DEFAULT_PORT, show_default=True, help="SSE 모드 포트")
@click.option("--token", envvar="DMI_MCP_TOKEN", default=None,
              help="SSE 인증 토큰. 'auto'면 새로 생성")
@click.option("--metadata", type=click.Path(dir_okay=False), default=None,
              help="zTXt 청크 저장 파일 (기본: DMI_METADATA_PATH 또는 dmi_metadata.bin)")
@click.option("--debug", is_flag=True, help="추적 로그 출력")
def main(mode, host, port, token, metadata, debug):
    """DMI Editor MCP 서버"""
    if debug:
        set_debug(True)
    session = EditorSession(metadata)

    if mode == "stdio":
        asyncio.run(serve_stdio(session))
        return

    if token == "auto":
        token = secrets.token_urlsafe(32)
        click.echo(f"Generated token: {token}", err=True)
    elif not token:
        error("SSE server is running without a token")

    error(f"dmi-editor SSE server on http://{host}:{port}/sse")
    asyncio.run(serve_sse(create_sse_app(session, token), host, port))


if __name__ == "__main__":
    main()
