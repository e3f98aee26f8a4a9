"""The chat and relay server: users, broadcasts, heartbeats and transfer forwarding."""

from __future__ import annotations

import queue
import socket
import threading
from dataclasses import dataclass, field
from typing import Any

from itshare.helper import generate_user_id

_BUFFER = 1024
_CHUNK = 32768


@dataclass
class User:
    """A user known to the server."""

    user_id: str
    username: str
    store_file_path: str
    conn: Any
    is_online: bool = True
    ip_address: str = ""


@dataclass
class Message:
    """A chat message sent through the server."""

    sender_id: str
    sender_username: str
    content: str
    timestamp: str


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    try:
        return host.strip("[]"), int(port)
    except ValueError:
        raise ValueError(f"address {address}: invalid port") from None


def _peer_ip(conn: Any) -> str:
    try:
        peer = conn.getpeername()
    except OSError:
        return ""
    if isinstance(peer, tuple):
        return str(peer[0])
    return str(peer)


def _relay(src: Any, dst: Any, size: int) -> tuple[int, Exception | None]:
    """Copy ``size`` bytes from ``src`` to ``dst``; return the count and any error."""
    copied = 0
    while copied < size:
        try:
            chunk = src.recv(min(_CHUNK, size - copied))
        except OSError as exc:
            return copied, exc
        if not chunk:
            return copied, EOFError("EOF")
        try:
            dst.sendall(chunk)
        except OSError as exc:
            return copied, exc
        copied += len(chunk)
    return copied, None


class ChatServer:
    """Accepts clients, relays chat and forwards file, folder and lookup traffic."""

    def __init__(self, address: str = ":8080") -> None:
        self.address = address
        self.connections: dict[str, User] = {}
        self.ip_addresses: dict[str, User] = {}
        self.messages: queue.Queue[Message] = queue.Queue()
        self.lock = threading.RLock()
        self.server_address: tuple[str, int] | None = None
        self.ready = threading.Event()
        self._stop = threading.Event()
        self._listener: socket.socket | None = None

    def serve_forever(self) -> None:
        """Listen on the configured address and handle each client in its own thread."""
        host, port = _split_address(self.address)
        listener = socket.create_server((host, port))
        self._listener = listener
        self.server_address = listener.getsockname()[:2]
        print("Server started on", self.address)
        self.ready.set()
        with listener:
            while not self._stop.is_set():
                try:
                    conn, _ = listener.accept()
                except OSError:
                    if self._stop.is_set():
                        break
                    print("error in accept")
                    continue
                threading.Thread(target=self.handle_connection, args=(conn,), daemon=True).start()

    def shutdown(self) -> None:
        """Stop accepting clients and end the heartbeat."""
        self._stop.set()
        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass

    def handle_connection(self, conn: Any) -> None:
        """Log a client in (or welcome it back by its IP) and serve its messages."""
        ip = _peer_ip(conn)
        print("New connection from", ip)
        with self.lock:
            existing = self.ip_addresses.get(ip)
        if existing is not None:
            print("Connection already exists for IP:", ip)
            try:
                conn.sendall(f"/RECONNECT {existing.username} {existing.store_file_path}".encode())
            except OSError as exc:
                print("Error sending reconnect signal:", exc)
                return
            with self.lock:
                existing.conn = conn
                existing.is_online = True
            self.broadcast(f"User {existing.username} has rejoined the chat", existing)
            self._serve_user(conn, existing)
            return

        try:
            data = conn.recv(_BUFFER)
        except OSError:
            data = b""
        if not data:
            print("error in read username")
            return
        username = data.decode("utf-8", errors="replace")

        try:
            data = conn.recv(_BUFFER)
        except OSError:
            data = b""
        if not data:
            print("error in read storeFilePath")
            return
        store_file_path = data.decode("utf-8", errors="replace")

        user = User(
            user_id=generate_user_id(),
            username=username,
            store_file_path=store_file_path,
            conn=conn,
            is_online=True,
            ip_address=ip,
        )
        with self.lock:
            self.connections[user.user_id] = user
            self.ip_addresses[ip] = user

        self.broadcast(f"User {username} has joined the chat", user)
        print(f"New user connected: {username} (ID: {user.user_id})")
        self._serve_user(conn, user)

    def _go_offline(self, user: User) -> None:
        with self.lock:
            user.is_online = False
        self.broadcast(f"User {user.username} is now offline", user)

    def _serve_user(self, conn: Any, user: User) -> None:
        while True:
            try:
                data = conn.recv(_BUFFER)
            except OSError:
                data = b""
            if not data:
                print(f"User disconnected: {user.username}")
                self._go_offline(user)
                return
            if not self.handle_message(conn, user, data.decode("utf-8", errors="replace")):
                return

    def handle_message(self, conn: Any, user: User, message: str) -> bool:
        """Act on one message from ``user``; return False when the user has left."""
        if message == "/exit":
            self._go_offline(user)
            return False
        if message.startswith("/FILE_REQUEST") or message.startswith("/FOLDER_REQUEST"):
            is_file = message.startswith("/FILE_REQUEST")
            usage = (
                "/FILE_REQUEST <userId> <filename> <fileSize> [checksum]"
                if is_file
                else "/FOLDER_REQUEST <userId> <folderName> <folderSize> [checksum]"
            )
            args = message.split(" ", 4)
            if len(args) < 4:
                print(f"Invalid arguments. Use: {usage}")
                return True
            recipient_id, name = args[1], args[2]
            if len(args) == 5:
                name = f"{name}|{args[4].strip()}"
            try:
                size = int(args[3].strip())
            except ValueError:
                kind = "fileSize" if is_file else "folderSize"
                print(f"Invalid {kind}. Use: {usage}")
                return True
            if is_file:
                self.forward_file(conn, recipient_id, name, size)
            else:
                self.forward_folder(conn, recipient_id, name, size)
            return True
        if message == "PONG\n":
            return True
        if message.startswith("/status"):
            self._send_status(conn)
            return True
        if message.startswith("/LOOK"):
            args = message.split(" ", 1)
            if len(args) != 2:
                print("Invalid arguments. Use: /LOOK <userId>")
                return True
            self.forward_lookup_request(conn, args[1].strip())
            return True
        if message.startswith("/DIR_LISTING"):
            args = message.split(" ", 2)
            if len(args) != 3:
                print("Invalid arguments. Use: /DIR_LISTING <userId> <files>")
                return True
            self.send_lookup_response(conn, args[1].strip(), args[2].strip().split(" "))
            return True
        if message.startswith("/DOWNLOAD_REQUEST"):
            args = message.split(" ", 2)
            if len(args) != 3:
                print("Invalid arguments. Use: /DOWNLOAD_REQUEST <userId> <filename>")
                return True
            self.forward_download_request(args[1].strip(), user.user_id, args[2].strip())
            return True
        self.broadcast(message, user)
        return True

    def _send_status(self, conn: Any) -> None:
        try:
            conn.sendall(b"USERS:")
        except OSError as exc:
            print("Error sending user list header:", exc)
            return
        with self.lock:
            online = [u for u in self.connections.values() if u.is_online]
        for other in online:
            try:
                conn.sendall(f"{other.username} ({other.user_id}) is online\n".encode())
            except OSError as exc:
                print("Error sending user list:", exc)

    def broadcast(self, content: str, sender: User) -> None:
        """Send ``content`` from ``sender`` to every other online user."""
        line = f"{sender.username}: {content}\n".encode()
        with self.lock:
            for recipient in self.connections.values():
                if recipient.is_online and recipient is not sender:
                    try:
                        recipient.conn.sendall(line)
                    except OSError:
                        pass

    def start_heartbeat(self, interval: float) -> threading.Thread:
        """Ping every online user each ``interval`` seconds, marking unreachable ones offline."""

        def beat() -> None:
            while not self._stop.wait(interval):
                with self.lock:
                    for user in list(self.connections.values()):
                        if not user.is_online:
                            continue
                        try:
                            user.conn.sendall(b"PING\n")
                        except OSError:
                            print(f"User disconnected: {user.username}")
                            user.is_online = False
                            self.broadcast(f"User {user.username} is now offline", user)

        thread = threading.Thread(target=beat, daemon=True)
        thread.start()
        return thread

    def forward_file(self, conn: Any, recipient_id: str, file_name: str, file_size: int) -> int | None:
        """Announce a file to its recipient and relay its bytes; return the count relayed."""
        name, sep, checksum = file_name.partition("|")
        if sep:
            print("Original checksum:", checksum)
        with self.lock:
            recipient = self.connections.get(recipient_id)
        if recipient is None:
            print(f"User {recipient_id} not found")
            return None
        header = f"/FILE_RESPONSE {recipient_id} {file_name} {file_size} {recipient.store_file_path}"
        try:
            recipient.conn.sendall(header.encode())
        except OSError as exc:
            print(f"Error sending file response to {recipient_id}: {exc}")
        copied, error = _relay(conn, recipient.conn, file_size)
        if error is not None:
            print(f"Error receiving file from {recipient_id}: {error}")
        print(f"Transferred {copied} bytes from {recipient_id}")
        return copied

    def forward_folder(
        self, conn: Any, recipient_id: str, folder_name: str, folder_size: int
    ) -> int | None:
        """Announce a zipped folder to its recipient and relay its bytes."""
        with self.lock:
            recipient = self.connections.get(recipient_id)
        if recipient is None:
            print(f"User {recipient_id} not found")
            return None
        header = f"/FOLDER_RESPONSE {recipient_id} {folder_name} {folder_size} {recipient.store_file_path}"
        try:
            recipient.conn.sendall(header.encode())
        except OSError as exc:
            print(f"Error sending folder response to {recipient_id}: {exc}")
            return None
        copied, error = _relay(conn, recipient.conn, folder_size)
        if error is not None:
            print(f"Error transferring folder data: {error}")
            return copied
        print(f"Transferred {copied} bytes of folder data")
        return copied

    def send_file(self, sender_id: str, recipient_id: str, file_path: str) -> None:
        """Ask ``sender_id`` to send ``file_path`` to ``recipient_id``."""
        with self.lock:
            if recipient_id not in self.connections:
                print(f"User {recipient_id} not found")
                return
            sender = self.connections.get(sender_id)
            if sender is None:
                print(f"User {sender_id} not found")
                return
            try:
                sender.conn.sendall(f"/sendfile {recipient_id} {file_path}\n".encode())
            except OSError as exc:
                print(f"Error sending file to {recipient_id}: {exc}")

    def forward_download_request(self, sender_id: str, recipient_id: str, file_path: str) -> None:
        """Pass a download request from ``recipient_id`` on to the owner ``sender_id``."""
        with self.lock:
            sender = self.connections.get(sender_id)
        if sender is None:
            print(f"User {sender_id} not found")
            return
        if not sender.is_online:
            print(f"User {sender_id} is not online")
            return
        try:
            sender.conn.sendall(f"/DOWNLOAD_REQUEST {recipient_id} {file_path}\n".encode())
        except OSError as exc:
            print(f"Error sending file request to {sender_id}: {exc}")
        print("Download request sent successfully")

    def _reply(self, conn: Any, text: str) -> None:
        try:
            conn.sendall(text.encode())
        except OSError as exc:
            print(f"Error sending lookup response: {exc}")

    def forward_lookup_request(self, conn: Any, user_id: str) -> None:
        """Ask ``user_id`` for a listing of their shared folder."""
        with self.lock:
            recipient = self.connections.get(user_id)
        if recipient is None:
            print(f"User {user_id} not found")
            self._reply(conn, f"User {user_id} not found\n")
            return
        if not recipient.is_online:
            print(f"User {user_id} is not online")
            self._reply(conn, f"User {user_id} is not online\n")
            return
        print(f"StoreFilePath: {recipient.store_file_path}")
        try:
            recipient.conn.sendall(f"/LOOK_REQUEST {user_id} {recipient.store_file_path}\n".encode())
        except OSError as exc:
            print(f"Error sending lookup request to recipient: {exc}")
            try:
                conn.sendall(f"Error looking up user {user_id}'s directory\n".encode())
            except OSError as resp_exc:
                print(f"Error sending error response: {resp_exc}")
            return
        print(f"Lookup request sent to user {user_id}")

    def send_lookup_response(self, conn: Any, user_id: str, files: list[str]) -> None:
        """Send a directory listing for ``user_id`` over ``conn``."""
        self._reply(conn, f"LOOK_RESPONSE {user_id} {' '.join(files)}\n")