import io
import socket
import zipfile

import pytest

from itshare import helper


def test_file_checksum_of_empty_file(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    assert helper.calculate_file_checksum(path) == "d41d8cd98f00b204e9800998ecf8427e"


def test_file_checksum_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        helper.calculate_file_checksum(tmp_path / "nope")


def test_data_checksum_matches_file_and_keeps_data(tmp_path):
    payload = b"some shared bytes\n" * 5000
    path = tmp_path / "data.bin"
    path.write_bytes(payload)
    checksum, stream = helper.calculate_data_checksum(io.BytesIO(payload))
    assert checksum == helper.calculate_file_checksum(path)
    assert stream.read() == payload


def test_different_data_gives_different_checksum():
    first, _ = helper.calculate_data_checksum(io.BytesIO(b"a"))
    second, _ = helper.calculate_data_checksum(io.BytesIO(b"b"))
    assert helper.verify_checksum(first, first) is True
    assert helper.verify_checksum(first, second) is False


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(5)
    yield sock
    sock.close()


def _free_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def test_server_available(listener):
    port = listener.getsockname()[1]
    assert helper.check_server_availability(f"127.0.0.1:{port}") == (True, "")


def test_server_refused():
    port = _free_port()
    ok, message = helper.check_server_availability(f"127.0.0.1:{port}")
    assert ok is False
    assert message == "Connection refused - no server running at this address"


def test_server_address_without_port():
    ok, message = helper.check_server_availability("localhost")
    assert ok is False
    assert "missing port" in message


def test_port_in_use(listener):
    port = listener.getsockname()[1]
    assert helper.is_port_in_use(str(port)) is True
    assert helper.is_port_in_use(f":{port}") is True


def test_port_not_in_use():
    assert helper.is_port_in_use(str(_free_port())) is False


def test_generate_user_id_range():
    for _ in range(200):
        user_id = helper.generate_user_id()
        assert user_id.isdigit()
        assert 0 <= int(user_id) < 10_000_000


def test_zip_round_trip(tmp_path):
    src = tmp_path / "share"
    (src / "docs" / "deep").mkdir(parents=True)
    (src / "empty").mkdir()
    (src / "top.txt").write_text("top level")
    (src / "docs" / "a.txt").write_text("alpha")
    (src / "docs" / "deep" / "b.bin").write_bytes(bytes(range(256)) * 10)

    archive = tmp_path / "share.zip"
    helper.create_zip_from_folder(src, archive)

    with zipfile.ZipFile(archive) as zf:
        names = zf.namelist()
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist() if not info.is_dir())
    assert "top.txt" in names
    assert "docs/deep/b.bin" in names
    assert not any(name.startswith("share") for name in names)

    dest = tmp_path / "out"
    helper.extract_zip(archive, dest)
    assert (dest / "top.txt").read_text() == "top level"
    assert (dest / "docs" / "a.txt").read_text() == "alpha"
    assert (dest / "docs" / "deep" / "b.bin").read_bytes() == bytes(range(256)) * 10
    assert (dest / "empty").is_dir()


def test_zip_missing_folder_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        helper.create_zip_from_folder(tmp_path / "missing", tmp_path / "x.zip")


def test_extract_non_zip_raises(tmp_path):
    bogus = tmp_path / "bogus.zip"
    bogus.write_bytes(b"not an archive")
    with pytest.raises(zipfile.BadZipFile):
        helper.extract_zip(bogus, tmp_path / "out")