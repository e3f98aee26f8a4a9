# itshare

A small network for chatting and sharing files over TCP. One server relays
chat messages and file data between connected clients. Each client names a
local folder that received files are written into and that other users can
ask to see.

## Installation

```
pip install .
```

## Running a server

```
itshare-server --port 8080
```

The port may also be given as `:8080`. The server refuses to start if
something already accepts connections on that port. It pings connected
clients every 100 seconds and tells the others when a user goes offline.

## Connecting a client

```
itshare-client --server localhost:8080
```

Without `--server` the client asks for an address (`host:port`) and checks
that a server answers there before going on; if none does, it asks whether
to try another address. After connecting you enter a username and the folder
to share, which must be an existing directory. When a client connects again
from an IP address the server already knows, the server sends the stored
user back and the login is skipped.

## Commands

| Command | What it does |
| --- | --- |
| `/status` | Ask the server for the online users |
| `/help` | Show the help screen |
| `exit` | Disconnect and quit |
| `/lookup <userId>` | Ask a user for a listing of their shared folder |
| `/sendfile <userId> <path>` | Send a file to a user |
| `/sendfolder <userId> <path>` | Send a whole folder, zipped on the way and unpacked on arrival |
| `/download <userId> <path>` | Ask a user to send you a file or folder |
| `/transfers` | List the transfers in progress |
| `/pause <transferId>` | Pause a transfer on this side |
| `/resume <transferId>` | Resume a paused transfer |

Anything else you type is sent to everyone as a chat message.

Received files go into the receiver's shared folder. Every transfer carries
an MD5 checksum, which the receiver compares once all the data has arrived.

## Using the library

The pieces can be used on their own:

```python
from itshare.helper import calculate_file_checksum, create_zip_from_folder, extract_zip
from itshare.transfers import TransferRegistry, format_size, format_duration

create_zip_from_folder("photos", "photos.zip")
print(calculate_file_checksum("photos.zip"))
extract_zip("photos.zip", "restored")

print(format_size(1536))      # "1.5 KB"
print(format_duration(90))    # "1m 30s"
registry = TransferRegistry()
print(registry.generate_id())  # "1"
```

The server can be run from code with `itshare.server.ChatServer`:
`serve_forever()` accepts clients, `start_heartbeat(interval)` starts the
pings and `shutdown()` stops both.

## What it does not do

`itshare.discovery` can listen for `DRIZLINK_SERVER:<ip>:<port>` UDP
broadcasts (`discover_servers`) and let the user pick one (`select_server`),
but the server in this package sends no such broadcasts and the client
command does not use discovery; the server address is always typed in.
The server keeps users in memory only; nothing is stored between runs.

## Tests

```
pip install .[test]
pytest
```