# webserv

A small HTTP/1.1 server driven by a single event loop. It reads an
nginx-style configuration file and serves static files, multipart uploads
and file deletion for one or more virtual servers. It needs nothing beyond
the Python standard library.

## Installing

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Running

```
webserv [CONFIG] [BUFFER_SIZE]
```

- `CONFIG` is the configuration file. The default is `config/default.conf`,
  relative to the working directory.
- `BUFFER_SIZE` is the number of bytes read from a client at a time. The
  default is 20. It must be a positive decimal number; an empty value, a
  value with non-digit characters, zero, or a value larger than 2^64 − 1 is
  rejected.

If the configuration cannot be read, or a listening socket cannot be
opened, the error is printed and the command exits with status 1.

Press Ctrl+C to stop the server. While it runs, typing a hexadecimal number
from 1 to 13 (decimal 1–19) on standard input pauses the server for that
many seconds.

## Configuration

A configuration file holds one or more `server` blocks. Text after `#` is a
comment. Each directive ends with `;`.

```
server {
    listen 127.0.0.1:8080;
    server_name localhost;
    root /webPages;
    client_max_body_size 10m;
    autoindex off;
    error_page 404 /errors/404.html;

    location /uploads {
        limit_except GET POST DELETE { deny all; }
        client_max_body_size 50m;
    }

    location / {
        index index.html;
    }
}
```

Server-block directives:

| Directive | Meaning |
|---|---|
| `listen [host:]port` | Address to listen on. The host defaults to `0.0.0.0`; the port must be between 1 and 65535. Without a `listen` directive the server listens on port 80. |
| `server_name name` | Name matched against the request's `Host` header. When no server's name matches, the first server listening on the address is used. |
| `root /path` | Document root. It must start with `/` and is resolved relative to the working directory. The default is `/var/www`. |
| `client_max_body_size N[k\|m\|g]` | Largest accepted `Content-Length`. `0` means no limit. The default is 1 MiB. |
| `autoindex on\|off` | Stored flag; the default is `off`. With `off`, a directory without a readable index page gives 404. |
| `error_page code... /page` | Page served for the given codes, relative to the root. Codes must be between 300 and 599. |
| `return code target` | Redirect setting. The code must be 301–303, 307 or 308. |
| `location /path { ... }` | Per-path settings. |

Location blocks accept `root`, `client_max_body_size`, `autoindex`,
`error_page`, `return` and `index`, plus:

| Directive | Meaning |
|---|---|
| `limit_except METHOD... { deny all; }` | Allowed methods, chosen from `HEAD`, `GET`, `POST` and `DELETE`. All four are allowed by default; any other method gives 405. |
| `upload_store /path` | Stored setting, defaulting to the location's root. |

A location inherits any setting it does not set from its server. Locations
are kept longest path first, and a request uses the first location whose
path is a prefix of the request path. If no `/` location is configured, one
is added in front of the others.

For the codes 400, 403, 404, 405, 413, 414, 431, 500, 501, 502, 503 and 504
that have no `error_page`, the server uses
`./webPages/defaultErrorPages/<code>.html`. Every error page must exist and
be readable when the configuration is loaded, otherwise the configuration is
rejected.

## Requests

- `GET` serves the requested file from the location's root. For a directory
  it serves the first readable `index` page.
- `HEAD` checks that the file exists and answers with headers only.
- `POST` with `multipart/form-data` stores the uploaded file as
  `<root><request path>/<filename>` and answers with the stored path.
- `DELETE` removes the file at the request path, taken relative to the
  working directory.

The request line must use `HTTP/1.1` and the request must carry a `Host`
header. `Connection: close` ends the connection after the response. Idle
connections are closed after five seconds. Errors with a status code are
answered with the configured error page; other malformed requests get a
plain `400 Bad Request`.

## Using it from Python

```python
from webserv.parsing import parse_config
from webserv.listener import Server, create_listeners
from webserv.runner import WebServer

servers = [Server.from_config(c) for c in parse_config("config/default.conf")]
create_listeners(servers)
with WebServer(servers) as server:
    server.run()  # returns after server.stop() is called
```

`ConfigParser(path).print_all()` prints a summary of every parsed server and
location. `webserv.main.main()` starts the server the same way as the
`webserv` command and takes an optional argument list.

## What it does not do

- No directory listings: `autoindex on` only suppresses the 404 for a
  directory without an index page.
- `return` redirects and `upload_store` are parsed and stored but not
  applied to requests.
- No CGI.
- Chunked request bodies (`Transfer-Encoding: chunked`) are decoded but not
  stored and get no reply.
- `POST` bodies other than `multipart/form-data` are rejected with 400.