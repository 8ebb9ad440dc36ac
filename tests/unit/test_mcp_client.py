import asyncio
import json
from contextlib import asynccontextmanager

import pytest
from mcp.types import CallToolResult, ListToolsResult, TextContent, Tool

from filebridge.base.config import BackendConfig
from filebridge.client.mcp_client import ConnectionState, MCPFileClient
from filebridge.errors import NotConnectedError, ToolError, TransportError


def text_result(text, is_error=False):
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


class FakeSession:
    """Records tool calls and answers from a canned response table."""

    def __init__(self):
        self.calls = []
        self.responses = {}

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        response = self.responses.get(name, text_result("ok"))
        if isinstance(response, Exception):
            raise response
        return response

    async def list_tools(self):
        return ListToolsResult(tools=[
            Tool(name="list_files", description="List files", inputSchema={"type": "object"}),
            Tool(name="upload_image", inputSchema={"type": "object"}),
        ])


class FakeChannelClient(MCPFileClient):
    """MCPFileClient whose channel is a FakeSession instead of a child process."""

    def __init__(self, session, open_error=None):
        super().__init__(
            config=BackendConfig(server_path="/srv/backend/index.js", storage_dir="/srv/storage", auto_connect=False)
        )
        self.fake_session = session
        self.open_error = open_error
        self.opened = 0
        self.closed = 0
        self.crash_error = None
        self._holder = None

    @asynccontextmanager
    async def _open_session(self):
        self.opened += 1
        # Yield control so concurrent connect() calls really overlap
        await asyncio.sleep(0)
        if self.open_error:
            raise self.open_error
        self._holder = asyncio.current_task()
        try:
            yield self.fake_session
        except asyncio.CancelledError:
            # Transport task group cancels the body, then reports why on exit
            if self.crash_error is not None:
                raise self.crash_error
            raise
        finally:
            self.closed += 1

    def crash(self, error):
        """Kill the live channel the way a dying backend process does."""
        self.crash_error = error
        self._holder.cancel()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    return FakeChannelClient(session)


# ---------------------------------------------------------------------------
# Not connected
# ---------------------------------------------------------------------------

OPERATIONS = [
    ("list_files", ("all",)),
    ("list_images", ()),
    ("list_videos", ()),
    ("upload_file", ("a.txt", "aGk=")),
    ("upload_image", ("a.png", "aGk=")),
    ("upload_video", ("a.mp4", "aGk=")),
    ("upload_by_kind", ("a.png", "aGk=", "image")),
    ("download_file", ("a.png", "IMAGES")),
    ("delete_file", ("a.png", "IMAGES")),
    ("get_file_info", ("a.png",)),
    ("create_directory", ("albums",)),
    ("get_queue_status", ()),
    ("join_download_queue", ("a.mp4", "VIDEOS")),
    ("check_ticket", ("t-1",)),
    ("get_download_queue_status", ()),
    ("get_active_streams", ()),
    ("start_stream", ("rtmp://cam/live", "rtmp")),
    ("stop_stream", ("s-1",)),
    ("get_tools", ()),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("method,args", OPERATIONS)
async def test_operations_require_connection(client, session, method, args):
    with pytest.raises(NotConnectedError) as exc_info:
        await getattr(client, method)(*args)

    assert exc_info.value.message == "Not connected to MCP server"
    assert session.calls == []


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_connect_is_idempotent(client):
    await client.connect()
    await client.connect()

    assert client.is_connected()
    assert client.state is ConnectionState.CONNECTED
    assert client.opened == 1

    await client.disconnect()


@pytest.mark.asyncio
async def test_concurrent_connect_opens_one_channel(client):
    await asyncio.gather(client.connect(), client.connect(), client.connect())

    assert client.opened == 1
    assert client.is_connected()

    await client.disconnect()


@pytest.mark.asyncio
async def test_disconnect_closes_channel(client):
    await client.connect()

    connected = await client.disconnect()

    assert connected is False
    assert client.closed == 1
    assert client.state is ConnectionState.DISCONNECTED
    with pytest.raises(NotConnectedError):
        await client.list_images()


@pytest.mark.asyncio
async def test_disconnect_without_connect_is_noop(client):
    assert await client.disconnect() is False
    assert client.closed == 0


@pytest.mark.asyncio
async def test_reconnect_after_disconnect_opens_new_channel(client):
    await client.connect()
    await client.disconnect()
    await client.connect()

    assert client.opened == 2
    assert client.is_connected()

    await client.disconnect()


@pytest.mark.asyncio
async def test_connect_failure_raises_transport_error(session):
    client = FakeChannelClient(session, open_error=FileNotFoundError("spawn node ENOENT"))

    with pytest.raises(TransportError) as exc_info:
        await client.connect()

    assert "spawn node ENOENT" in exc_info.value.message
    assert client.state is ConnectionState.DISCONNECTED
    assert not client.is_connected()


@pytest.mark.asyncio
async def test_connect_failure_reports_task_group_cause(session):
    error = ExceptionGroup("unhandled errors in a TaskGroup", [ConnectionError("Connection closed")])
    client = FakeChannelClient(session, open_error=error)

    with pytest.raises(TransportError) as exc_info:
        await client.connect()

    assert exc_info.value.message == "Connection closed"
    assert not client.is_connected()


@pytest.mark.asyncio
async def test_backend_death_after_connect_drops_channel(client):
    await client.connect()
    owner = client._owner

    client.crash(ExceptionGroup("unhandled errors in a TaskGroup", [BrokenPipeError("backend exited")]))
    await owner

    assert not client.is_connected()
    assert client.state is ConnectionState.DISCONNECTED
    with pytest.raises(NotConnectedError):
        await client.list_images()

    await client.connect()

    assert client.opened == 2
    assert client._owner is not owner
    assert client.is_connected()

    await client.disconnect()
    assert client.closed == 2


def test_server_parameters_carry_storage_dir(client):
    params = client._server_parameters()

    assert params.command == "node"
    assert params.args == ["/srv/backend/index.js"]
    assert params.env["STORAGE_DIR"] == "/srv/storage"


# ---------------------------------------------------------------------------
# Call-and-parse
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_files_parses_json(client, session):
    listing = [{"folder": "IMAGES", "files": [{"name": "photo.png", "size": 3}]}]
    session.responses["list_files"] = text_result(json.dumps(listing))
    await client.connect()

    result = await client.list_files("IMAGES")

    assert result == listing
    assert session.calls == [("list_files", {"folder": "IMAGES"})]
    await client.disconnect()


@pytest.mark.asyncio
async def test_text_operations_return_raw_text(client, session):
    session.responses["upload_file"] = text_result("Uploaded notes.txt")
    await client.connect()

    result = await client.upload_file("notes.txt", "aGk=")

    assert result == "Uploaded notes.txt"
    assert session.calls == [("upload_file", {"filename": "notes.txt", "content": "aGk=", "encoding": "base64"})]
    await client.disconnect()


@pytest.mark.asyncio
async def test_optional_folder_is_omitted(client, session):
    await client.connect()

    await client.download_file("a.png")
    await client.delete_file("a.png", "IMAGES")

    assert session.calls == [
        ("download_file", {"filename": "a.png", "encoding": "base64"}),
        ("delete_file", {"filename": "a.png", "folder": "IMAGES"}),
    ]
    await client.disconnect()


@pytest.mark.asyncio
async def test_backend_argument_names(client, session):
    session.responses["check_ticket"] = text_result('{"status": "queued", "ticketId": "t-1", "position": 2}')
    session.responses["start_stream"] = text_result('{"id": "s-1", "name": "cam", "status": "live"}')
    await client.connect()

    await client.create_directory("albums", "IMAGES")
    ticket = await client.check_ticket("t-1")
    stream = await client.start_stream("rtsp://cam/live", "rtsp")
    await client.stop_stream("s-1")

    assert session.calls == [
        ("create_directory", {"name": "albums", "parentFolder": "IMAGES"}),
        ("check_ticket", {"ticketId": "t-1"}),
        ("start_stream", {"source": "rtsp://cam/live", "type": "rtsp"}),
        ("stop_stream", {"streamId": "s-1"}),
    ]
    assert ticket["position"] == 2
    assert stream["status"] == "live"
    await client.disconnect()


@pytest.mark.asyncio
@pytest.mark.parametrize("kind,tool", [("image", "upload_image"), ("video", "upload_video"), (None, "upload_file"), ("doc", "upload_file")])
async def test_upload_by_kind_routes_to_tool(client, session, kind, tool):
    await client.connect()

    await client.upload_by_kind("x.bin", "aGk=", kind)

    assert session.calls[0][0] == tool
    await client.disconnect()


@pytest.mark.asyncio
async def test_tool_error_result_raises(client, session):
    session.responses["get_file_info"] = text_result("File not found: ghost.png", is_error=True)
    await client.connect()

    with pytest.raises(ToolError) as exc_info:
        await client.get_file_info("ghost.png", "IMAGES")

    assert exc_info.value.message == "File not found: ghost.png"
    assert exc_info.value.tool == "get_file_info"
    await client.disconnect()


@pytest.mark.asyncio
async def test_transport_failure_passes_message_through(client, session):
    session.responses["list_images"] = ConnectionResetError("backend pipe closed")
    await client.connect()

    with pytest.raises(TransportError) as exc_info:
        await client.list_images()

    assert exc_info.value.message == "backend pipe closed"
    await client.disconnect()


@pytest.mark.asyncio
async def test_malformed_json_raises_transport_error(client, session):
    session.responses["get_queue_status"] = text_result("not json")
    await client.connect()

    with pytest.raises(TransportError):
        await client.get_queue_status()
    await client.disconnect()


@pytest.mark.asyncio
async def test_empty_content_returns_empty_text(client, session):
    session.responses["stop_stream"] = CallToolResult(content=[])
    await client.connect()

    assert await client.stop_stream("s-1") == ""
    await client.disconnect()


@pytest.mark.asyncio
async def test_get_tools_returns_descriptors(client):
    await client.connect()

    tools = await client.get_tools()

    assert [t["name"] for t in tools] == ["list_files", "upload_image"]
    assert tools[0]["description"] == "List files"
    assert tools[0]["inputSchema"] == {"type": "object"}
    await client.disconnect()
