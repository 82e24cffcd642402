"""
Echo MCP Tool Server: minimal reference implementation.

Use this as a template for building new tool servers.
It implements tools that echo their input back, useful for
testing the transport layer and the tool proxy end to end.

Launch:
    python -m toolservers.servers.echo

Test:
    echo '{"jsonrpc":"2.0","method":"ping","id":1}' | python -m toolservers.servers.echo
"""

from toolservers.server import StdioToolServer, ToolHandler


class EchoTool(ToolHandler):
    name = "echo"
    description = "Echoes back the input message. Useful for testing."
    parameters = {
        "message": {
            "type": "string",
            "description": "The message to echo back",
        },
    }
    required = ["message"]

    def handle(self, params: dict) -> str:
        return params.get("message", "")


class ReverseTool(ToolHandler):
    name = "reverse"
    description = "Returns the input message reversed."
    parameters = {
        "message": {
            "type": "string",
            "description": "The message to reverse",
        },
    }
    required = ["message"]

    def handle(self, params: dict) -> str:
        message = params.get("message")
        if not isinstance(message, str):
            raise ValueError("message must be a string")
        return message[::-1]


def main() -> None:
    server = StdioToolServer("echo", "1.0.0")
    server.register(EchoTool())
    server.register(ReverseTool())
    server.run()


if __name__ == "__main__":
    main()
