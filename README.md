# webserv

A small HTTP server. It reads an nginx-like configuration file, opens one
listening socket per configured port and handles every client from a single
event loop.

## Installing

    pip install .

To run the tests:

    pip install ".[test]"
    pytest

## Running

    webserv [config_file]

With no argument the server reads `./configuration/default.conf`. More than
one argument is a usage error. At startup the command deletes any existing
`webserver.log` in the current directory and writes a new log there. If a
`./welcome.txt` file exists, its contents are printed as a banner. When it is
missing, a message goes to stderr and the server starts anyway.

The server runs until it receives `SIGINT` or `SIGQUIT`. It then closes its
client and listening sockets and exits.

Exit status:

- 1 for bad arguments.
- 2 for a configuration file that cannot be opened or is invalid.
- 3 for any other error reported while starting.

## Configuration

Reading rules:

- Each line is trimmed.
- Blank lines and lines that start with `#` are skipped.
- A `#` later on a line starts a comment.
- Every remaining line must end in `;`, `{` or `}`.
- Each line must carry exactly one of those characters.
- Braces must balance.

Example:

    server {
        listen 8080;
        server_name localhost example.com;
        error_page 404 /errors/404.html;
        client_max_body_size 10M;

        location / {
            root /var/www;
            autoindex on;
        }

        location /old {
            return 301 /new;
        }
    }

Directives inside a `server` block:

- `listen <port>`: the port, from 1 to 65535.
- `server_name <name> [<name> ...]`: the names of the server. The first name is
  used as its host, and that host must resolve to an IPv4 address. The socket
  itself listens on every interface.
- `error_page <code> <path>`: a page for an error code. The code must be positive.
- `client_max_body_size <n>[K|M]`: `n` runs from 1 to 1024. `K` means kibibytes
  and `M` means mebibytes. A value with any other last character sets 1 MiB.
- `location <path> { ... }`: one `key value;` setting per line. A location
  needs both `root` and `autoindex`. A location that holds only
  `return <code> <target>;` is stored as a redirect instead.

Server blocks that follow one another on the same port are grouped. The first
block is the main server and the rest become its `virtual_servers`. A port
that comes back after a different port is an error.

The first server and its virtual servers are checked after loading. A missing
port, or an incomplete location, rejects the file. Other missing settings are
only logged.

## Using it from Python

    from webserv.config_loader import parse_config
    from webserv.server import serve, default_handler

    configs = parse_config("site.conf")
    serve(configs, default_handler)

The modules:

- `webserv.config_syntax` reads the lines and checks the structure with
  `read_config`, `read_config_file`, `validate_structure` and `count_servers`.
- `webserv.config_loader` turns the lines into `ServerConfig` objects with
  `load_config`, checks them with `validate_config`, and does all of it at
  once with `parse_config`.
- `webserv.server` has the `Poller` and the `WebServer` class.
  - `start` opens the listeners.
  - `run` serves until `request_shutdown` is called.
  - `stop` closes all sockets.
  - `serve` wraps the three steps and installs the signal handlers.
- `webserv.connection` holds the per-client `Connection` state machine.
- `webserv.network` holds the socket helpers.

A request is complete once its headers end with a blank line and the body
has reached any `Content-Length`. The complete request goes to the handler,
which is any callable taking `(request_bytes, config)` and returning the
response bytes. The response is sent in chunks of up to 8192 bytes, and then
the connection is closed.

## What it does not do

The built-in `default_handler` does not serve files. It reads only the
request line and answers with a short plain-text status:

- `400 Bad Request` for a malformed request line.
- `405 Method Not Allowed` for methods other than `GET`, `POST` and `DELETE`.
- `200 OK` otherwise.

The settings are loaded and checked, but nothing in the package acts on them
when it answers a request. That covers locations, `root`, `autoindex`,
redirects, error pages and the body size limit. CGI, directory listings,
uploads and file deletion are not provided; a custom handler has to supply
such behaviour. Each connection serves one request.