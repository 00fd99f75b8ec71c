"""
Tests for tools module.
"""

import pytest

from pocket_agent.errors import ToolError
from pocket_agent.tools import (
    FileManager,
    Tool,
    ToolParameter,
    ToolRegistry,
    create_default_registry,
    create_file_tools,
)
from pocket_agent.tools.think import ThinkTool
from pocket_agent.tools.web_fetch import WebFetchTool


def echo_tool() -> Tool:
    async def echo(text: str, times: int = 1) -> str:
        return " ".join([text] * times)

    return Tool(
        name="echo",
        description="Echo text back",
        parameters=[
            ToolParameter(name="text", param_type="string", description="Text to echo"),
            ToolParameter(name="times", param_type="integer", description="Repeat count", required=False, default=1),
        ],
        handler=echo,
    )


def test_tool_parameters_schema():
    """Test JSON schema from tool parameters."""
    schema = echo_tool().get_parameters_schema()

    assert schema["type"] == "object"
    assert schema["properties"]["text"] == {"type": "string", "description": "Text to echo"}
    assert schema["properties"]["times"]["default"] == 1
    assert schema["required"] == ["text"]


def test_base_tool_to_definition():
    """Test converting a class tool to a definition."""
    definition = ThinkTool().to_definition()

    assert definition.name == "think"
    assert "thought" in definition.parameters["properties"]
    assert definition.parameters["required"] == ["thought"]


def test_registry_register_and_list():
    """Test registering and listing tools."""
    registry = ToolRegistry()
    registry.register(echo_tool())
    registry.register(ThinkTool())

    assert len(registry) == 2
    assert "echo" in registry
    assert registry.list_tools() == ["echo", "think"]
    assert [d.name for d in registry.get_definitions()] == ["echo", "think"]

    registry.unregister("echo")
    assert "echo" not in registry


def test_registry_rejects_non_tools():
    """Test registering something that is not a tool."""
    with pytest.raises(TypeError):
        ToolRegistry().register("not a tool")


@pytest.mark.asyncio
async def test_registry_execute():
    """Test executing a tool through the registry."""
    registry = ToolRegistry()
    registry.register(echo_tool())

    assert await registry.execute("echo", {"text": "hi", "times": 2}) == "hi hi"


@pytest.mark.asyncio
async def test_registry_unknown_tool():
    """Test executing an unknown tool."""
    with pytest.raises(ToolError, match="Unknown tool: missing"):
        await ToolRegistry().execute("missing", {})


@pytest.mark.asyncio
async def test_registry_wraps_tool_exceptions():
    """Test tool exceptions are wrapped in ToolError."""
    def broken() -> str:
        raise ValueError("bad input")

    registry = ToolRegistry()
    registry.register(Tool(name="broken", description="Always fails", parameters=[], handler=broken))

    with pytest.raises(ToolError, match="Tool execution failed: bad input"):
        await registry.execute("broken", {})


@pytest.mark.asyncio
async def test_registry_wraps_bad_arguments():
    """Test bad arguments are wrapped in ToolError."""
    registry = ToolRegistry()
    registry.register(echo_tool())

    with pytest.raises(ToolError, match="Tool execution failed"):
        await registry.execute("echo", {"wrong": "argument"})


def test_default_registry(tmp_path):
    """Test the default tool set."""
    registry = create_default_registry(tmp_path)

    assert set(registry.list_tools()) == {
        "read_file",
        "write_file",
        "edit_file",
        "list_dir",
        "web_fetch",
        "think",
    }


@pytest.mark.asyncio
async def test_think_tool():
    """Test the think tool."""
    assert await ThinkTool().execute(thought="check the file first") == "Thought recorded: check the file first"


def test_file_manager_write_and_read(tmp_path):
    """Test writing and reading files."""
    manager = FileManager(tmp_path)

    assert manager.write_file("notes/todo.txt", "line 1\nline 2\nline 3") == "Wrote 20 characters to notes/todo.txt"
    assert manager.read_file("notes/todo.txt") == "line 1\nline 2\nline 3"
    assert manager.read_file("notes/todo.txt", offset=1, limit=1) == "line 2"

    manager.write_file("notes/todo.txt", "\nline 4", append=True)
    assert manager.read_file("notes/todo.txt").endswith("line 4")


def test_file_manager_rejects_paths_outside_workspace(tmp_path):
    """Test paths outside the workspace are rejected."""
    manager = FileManager(tmp_path / "workspace")

    with pytest.raises(ToolError, match="outside the workspace"):
        manager.read_file("../secret.txt")

    with pytest.raises(ToolError, match="outside the workspace"):
        manager.write_file(str(tmp_path / "elsewhere.txt"), "x")


def test_file_manager_missing_file(tmp_path):
    """Test reading a missing file."""
    with pytest.raises(ToolError, match="File not found"):
        FileManager(tmp_path).read_file("nope.txt")


def test_file_manager_edit_file(tmp_path):
    """Test editing a file."""
    manager = FileManager(tmp_path)
    manager.write_file("app.py", "x = 1\ny = 2\n")

    assert manager.edit_file("app.py", "y = 2", "y = 3") == "Edited app.py"
    assert manager.read_file("app.py") == "x = 1\ny = 3\n"


def test_file_manager_edit_requires_unique_match(tmp_path):
    """Test edits need exactly one match."""
    manager = FileManager(tmp_path)
    manager.write_file("app.py", "a\na\n")

    with pytest.raises(ToolError, match="appears 2 times"):
        manager.edit_file("app.py", "a", "b")

    with pytest.raises(ToolError, match="not found"):
        manager.edit_file("app.py", "c", "d")


def test_file_manager_list_dir(tmp_path):
    """Test listing a directory."""
    manager = FileManager(tmp_path)
    manager.write_file("b.txt", "")
    manager.write_file("a/inner.txt", "")

    assert manager.list_dir() == ["a/", "b.txt"]


@pytest.mark.asyncio
async def test_file_tools_through_registry(tmp_path):
    """Test file tools through the registry."""
    registry = ToolRegistry()
    for tool in create_file_tools(tmp_path):
        registry.register(tool)

    await registry.execute("write_file", {"path": "hello.txt", "content": "hello"})

    assert await registry.execute("read_file", {"path": "hello.txt"}) == "hello"
    assert await registry.execute("list_dir", {}) == "hello.txt"

    with pytest.raises(ToolError, match="File not found"):
        await registry.execute("read_file", {"path": "missing.txt"})


@pytest.mark.asyncio
async def test_web_fetch_rejects_non_http_urls():
    """Test non-http URLs are rejected."""
    with pytest.raises(ToolError, match="Only http"):
        await WebFetchTool().execute(url="file:///etc/passwd")


def test_web_fetch_extracts_main_text():
    """Test extracting readable text from HTML."""
    html = """
    <html>
      <head><title> Example Page </title><script>var x = 1;</script></head>
      <body>
        <nav>Home | About</nav>
        <main><h1>Heading</h1><p>First paragraph.</p></main>
        <footer>Copyright</footer>
      </body>
    </html>
    """

    text = WebFetchTool()._extract_text(html, "https://example.com")

    assert text == "Title: Example Page\nURL: https://example.com\n\nHeading\nFirst paragraph."
