# mocopr

Asyncio building blocks for the Model Context Protocol (MCP):

- JSON-RPC 2.0 message types, with parsing and serialization
- stdio, HTTP and WebSocket transports
- security checks for URIs, file paths and inputs, and a helper that retries
  failed operations
- health checks and request performance metrics

## Installation

```
pip install mocopr
```

## Messages (`mocopr.protocol`)

```python
from mocopr.protocol import create_request, serialize_message, parse_message

request = create_request("tools/list", None, 1)
text = serialize_message(request)   # '{"jsonrpc":"2.0","id":1,"method":"tools/list"}'
message = parse_message(text)       # JsonRpcRequest
```

`parse_message` decides what kind of message it has from the fields present:

- a message with `method` and `id` is a `JsonRpcRequest`
- a message with `method` and no `id` is a `JsonRpcNotification`
- a message with `result` or `error` is a `JsonRpcResponse`

Text that is not JSON raises `ParseError`. JSON that is not a valid message
raises `InvalidRequestError`.

The module has further helpers:

- `create_response`, `create_notification`, `create_error` and
  `generate_request_id` (a UUID string) build messages and their parts.
- `is_version_supported` and `latest_version` report the protocol version,
  which is `2025-06-18`.
- `validate_method_name` and `method_category` check and split method names.

## Errors (`mocopr.errors`)

Every error the package raises is a subclass of `McpError`. Each subclass has
a `code` from `ErrorCode`, for example `MethodNotFoundError` → `-32601` and
`ToolNotFoundError` → `-32002`.

`protocol.error_to_jsonrpc(exc)` turns an exception into the `JsonRpcError`
that goes back to the peer. An exception that is not an `McpError` maps to
`INTERNAL_ERROR`.

Transport failures are `TransportError` subclasses:

- `ConnectionFailedError`
- `SendFailedError`
- `ReceiveFailedError`
- `NotReadyError`
- `TransportClosedError`

## Transports

All transports implement `mocopr.transport.Transport`:

- `send(message)`
- `receive()`, which returns `None` once the peer has closed
- `close()`
- `is_connected()`
- `transport_type()`

Each transport is also an async context manager that closes on exit, and an
async iterable over the messages it receives. Counters are kept in a
`TransportStats` object on the transport's `stats` attribute.

```python
from mocopr.stdio import StdioTransport

async with await StdioTransport.spawn("my-mcp-server", ["--flag"]) as transport:
    await transport.send(text)
    reply = await transport.receive()
```

- `StdioTransport` exchanges one message per line. `spawn(command, args)`
  starts a child process. `from_process(process)` wraps an asyncio subprocess
  whose stdin and stdout are pipes. `current_process()` uses this program's
  own stdin and stdout. A `StdioTransport()` made with no arguments has no
  channel: calling `send` or `receive` on it raises `NotReadyError`. `kill()`
  and `wait()` control the child process.
- `WebSocketTransport.connect(url)` opens a WebSocket connection, and
  `reconnect()` opens a new one. A binary frame is accepted when it holds
  UTF-8 text.
- `HttpTransport.connect(endpoint)` first checks that the endpoint answers a
  GET. After that it POSTs each message as JSON. HTTP gives the server no way
  to push messages, so `receive()` always returns `None`.

`mocopr.factory.create_transport(config)` builds a transport from a
`TransportConfig`:

- `TransportKind.STDIO` gives an unattached `StdioTransport`.
- `WEBSOCKET` and `HTTP` connect to `config.url`.
- `CUSTOM` raises `InternalError`.

## Security (`mocopr.security`)

`SecurityValidator` is built with `with_allowed_schemes`, `with_max_file_size`,
`with_allowed_extensions` and `with_root_directory`. Each of these returns a new
validator. It has these checks:

- `validate_uri(uri)` checks the URI scheme. For a `file:` URI it also checks
  the file path.
- `validate_file_path(path)` rejects a path that leaves the root directory and
  a file extension that is not allowed.
- `validate_file_size(size)` rejects a file larger than the maximum size.
- `validate_string_input(text)` rejects control characters other than tab, CR
  and LF.
- `validate_resource_access(uri)` also checks that a local file exists and how
  large it is.
- `validate_tool_parameters(params)` checks every string in a JSON value,
  including the keys.

A failed check raises `SecurityError`. A local file that does not exist raises
`NotFoundError`.

By default the validator allows:

- the schemes `file`, `http` and `https`
- files up to 10 MiB
- the extensions `txt`, `md`, `json`, `yml`, `yaml`, `xml`, `csv` and `log`

`ErrorRecoverySystem.execute_with_retry(operation)` retries a function until it
succeeds. The function may be plain or async. The default is at most 3 attempts
with 1000 ms between them. When the last attempt fails it raises
`OperationFailedError`.

`handle_invalid_method`, `handle_invalid_parameters` and `handle_resource_error`
return descriptive `McpError` instances.

## Monitoring (`mocopr.monitoring`)

`MonitoringSystem` has these methods:

- `register_health_check(check)` registers a `HealthCheck`.
- `health_check()` runs all of them. The report's status is the worst one,
  ordered healthy < degraded < unhealthy < unknown.
- `record_request(RequestMetrics(...))` counts a request. It keeps the average,
  p95 and p99 response times over the latest `max_response_times` samples.
- `get_metrics()` returns a snapshot of the metrics.
- `update_system_metrics(active_connections)` stores the connection count. On
  Linux it also reads memory and CPU usage from `/proc`.
- `start_periodic_health_checks()` starts an asyncio task that runs and logs
  the checks every interval. Cancel the task to stop it.

Two checks are built in:

- `BasicHealthCheck` is healthy unless the environment variable
  `HEALTH_CHECK_FAIL` is set.
- `FileSystemHealthCheck` is healthy when its path can be stat'ed.

## What this package does not do

The package does not include:

- a request dispatcher
- a server
- session management

Nothing sends incoming requests to handler methods. Nothing runs the
`initialize` handshake or matches responses to the requests waiting for them.
Your code does these things with `parse_message`, `create_response`,
`error_to_jsonrpc` and a transport.

There is no command-line program.