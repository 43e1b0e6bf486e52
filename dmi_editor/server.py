import json
from typing import Any, Dict, List

from mcp.server import Server
from mcp.types import TextContent, Tool

from . import commands
from .commands import DEFAULT_CELL_HEIGHT, DEFAULT_CELL_WIDTH, EditorSession
from .logger import error, trace
from .sprite import Direction


DIRECTION_SCHEMA = {
    "type": "string",
    "enum": ["south", "north", "east", "west"],
}

CELL_SCHEMA = {
    "cellWidth": {"type": "number", "description": f"Frame width in pixels (default: {DEFAULT_CELL_WIDTH})"},
    "cellHeight": {"type": "number", "description": f"Frame height in pixels (default: {DEFAULT_CELL_HEIGHT})"},
}


def _cell_size(arguments: Dict[str, Any]) -> Dict[str, int]:
    return {
        "cell_width": int(arguments.get("cellWidth", DEFAULT_CELL_WIDTH)),
        "cell_height": int(arguments.get("cellHeight", DEFAULT_CELL_HEIGHT)),
    }


def _format_result(result: Dict[str, Any]) -> str:
    """명령 결과를 사용자에게 보여줄 문자열로 변환합니다."""
    if "hex" in result:
        return (
            f"Raw Metadata ({result['bytes']} bytes, Hex):\n{result['hex']}\n"
            f"Printable Characters:\n{result['text']}"
        )
    if "reason" in result:
        return f"{result['reason']}. Fix the problem and try again."
    if "message" in result:
        return result["message"]
    return json.dumps(result, ensure_ascii=False)


def create_mcp_server(session: EditorSession = None) -> Server:
    """MCP 서버를 생성합니다."""

    server = Server("dmi-editor")
    session = session or EditorSession()

    # 이전 실행에서 저장한 메타데이터가 있으면 불러온다
    commands.status(session)

    @server.list_tools()
    async def handle_list_tools() -> List[Tool]:
        """사용 가능한 도구 목록을 반환합니다."""
        return [
            Tool(
                name="dmi_status",
                description="""Show whether DMI metadata is loaded and which sprite is open.""",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="dmi_import",
                description="""Import a DMI file: extract its zTXt metadata chunk, store it, and open the file as the current sprite.
The sprite is opened even when the file has no zTXt chunk.""",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "Local path of the .dmi or .png file"},
                    },
                    "required": ["path"],
                },
            ),
            Tool(
                name="dmi_export",
                description="""Export the current sprite as a DMI file.
Saves the pixels as PNG and inserts the stored zTXt chunk before the first IDAT chunk.
Requires a previous dmi_import.""",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "Output .dmi path"},
                        "width": {"type": "number", "description": "Frame width"},
                        "height": {"type": "number", "description": "Frame height"},
                        "directions": {"type": "number", "description": "Number of directions (default: 4)"},
                    },
                    "required": ["path"],
                },
            ),
            Tool(
                name="dmi_open_sprite",
                description="""Open a PNG file as the current sprite without touching stored metadata.""",
                inputSchema={
                    "type": "object",
                    "properties": {"path": {"type": "string", "description": "Local PNG path"}},
                    "required": ["path"],
                },
            ),
            Tool(
                name="dmi_save_sprite",
                description="""Save the current sprite pixels as PNG (no metadata).
Overwrites the opened file when no path is given.""",
                inputSchema={
                    "type": "object",
                    "properties": {"path": {"type": "string", "description": "Output PNG path (optional)"}},
                },
            ),
            Tool(
                name="dmi_mirror_east_to_west",
                description="""Mirror east-facing frames horizontally into the west-facing frame that directly follows them.
Frames are read row by row in the SNEW cycle: south, north, east, west.""",
                inputSchema={
                    "type": "object",
                    "properties": {
                        **CELL_SCHEMA,
                        "source": {**DIRECTION_SCHEMA, "description": "Direction to copy from (default: east)"},
                        "target": {**DIRECTION_SCHEMA, "description": "Direction to mirror into (default: west)"},
                    },
                },
            ),
            Tool(
                name="dmi_delete_west_frames",
                description="""Clear every west-facing frame to full transparency.""",
                inputSchema={
                    "type": "object",
                    "properties": {
                        **CELL_SCHEMA,
                        "direction": {**DIRECTION_SCHEMA, "description": "Direction to clear (default: west)"},
                    },
                },
            ),
            Tool(
                name="dmi_view_metadata",
                description="""Show the first bytes of the stored zTXt chunk as hex and printable characters.""",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "maxBytes": {"type": "number", "description": "Bytes to show (default: 200)"},
                    },
                },
            ),
            Tool(
                name="dmi_clear_metadata",
                description="""Forget the stored zTXt chunk and empty the metadata file.""",
                inputSchema={"type": "object", "properties": {}},
            ),
        ]

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        """도구 호출을 처리합니다."""
        try:
            text = run_tool(session, name, arguments or {})
            return [TextContent(type="text", text=text)]

        except Exception as e:
            error(f"도구 '{name}' 실패: {str(e)}")
            return [TextContent(type="text", text=f"Error: {str(e)}")]

    return server


def run_tool(session: EditorSession, name: str, arguments: Dict[str, Any]) -> str:
    """도구 하나를 실행하고 결과 문자열을 반환합니다."""
    trace(f"{name} 호출, 인자: {json.dumps(arguments)}")

    if name == "dmi_status":
        result = commands.status(session)

    elif name == "dmi_import":
        result = commands.import_dmi(session, arguments["path"])

    elif name == "dmi_export":
        result = commands.export_dmi(
            session,
            arguments["path"],
            width=int(arguments.get("width", DEFAULT_CELL_WIDTH)),
            height=int(arguments.get("height", DEFAULT_CELL_HEIGHT)),
            directions=int(arguments.get("directions", 4)),
        )

    elif name == "dmi_open_sprite":
        result = commands.open_sprite(session, arguments["path"])

    elif name == "dmi_save_sprite":
        result = commands.save_sprite(session, arguments.get("path"))

    elif name == "dmi_mirror_east_to_west":
        result = commands.mirror_east_to_west(
            session,
            source=Direction.parse(arguments.get("source", "east")),
            target=Direction.parse(arguments.get("target", "west")),
            **_cell_size(arguments),
        )

    elif name == "dmi_delete_west_frames":
        result = commands.delete_west_frames(
            session,
            direction=Direction.parse(arguments.get("direction", "west")),
            **_cell_size(arguments),
        )

    elif name == "dmi_view_metadata":
        result = commands.view_metadata(session, int(arguments.get("maxBytes", 200)))

    elif name == "dmi_clear_metadata":
        result = commands.clear_metadata(session)

    else:
        raise ValueError(f"Unknown tool: {name}")

    text = _format_result(result)
    trace(f"=> {text}")
    return text
