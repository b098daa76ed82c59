import socket

import fakeredis
import pytest
import redis

from spiders.codecs import EventMessage, TensorMessage, decode, decode_batch, encode_event
from spiders.schema.types import MessageHeader, TypedValue
from spiders.scripts import send_event
from spiders.transport import OfferStatus


class StubPublication:
    channel = "stub:pub"

    def __init__(self, stream_id: int, *, connected: bool = True, result: int = 64) -> None:
        self.stream_id = stream_id
        self.connected = connected
        self.result = result
        self.offers: list[list[bytes]] = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def is_connected(self) -> bool:
        return self.connected

    def offer(self, buffers) -> int:
        self.offers.append(list(buffers))
        return self.result

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_connect(monkeypatch):
    calls: list[dict] = []
    options: dict = {}

    def fake_connect(uri, stream_id, *, driver_dir=None, settings=None):
        pub = StubPublication(stream_id, **options)
        calls.append({"uri": uri, "stream_id": stream_id, "driver_dir": driver_dir, "pub": pub})
        return pub

    monkeypatch.setattr(send_event, "connect", fake_connect)
    fake_connect.calls = calls
    fake_connect.options = options
    return fake_connect


@pytest.fixture
def forbid_connect(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("connect must not be called")

    monkeypatch.setattr(send_event, "connect", fail)


UDP_URI = "aeron:udp?endpoint=localhost:40123"


class TestParser:
    def test_tag_is_required(self) -> None:
        with pytest.raises(SystemExit) as excinfo:
            send_event.main(["a=1"])
        assert excinfo.value.code == 2

    def test_flags(self) -> None:
        ns = send_event.build_parser().parse_args(
            ["--tag", "t", "--uri", UDP_URI, "--stream", "3", "--tensor", "--timeout-ms", "250", "a=1", "b"]
        )
        assert ns.tag == "t"
        assert ns.stream == 3
        assert ns.tensor
        assert ns.timeout_ms == 250
        assert ns.tokens == ["a=1", "b"]


class TestDryRun:
    def test_prints_each_message(self, forbid_connect, capsys) -> None:
        code = send_event.main(["--tag", "cam", "--dry-run", "gain=12ub", "name='M31'", "flag"])
        assert code == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("event cam id=")
        assert "gain=TypedValue(UINT8, 12)" in lines[0]
        assert "name=TypedValue(STRING, 'M31')" in lines[1]
        assert "flag=TypedValue(null)" in lines[2]

    def test_tensor_summary(self, forbid_connect, capsys, tmp_path) -> None:
        path = tmp_path / "blob.bin"
        path.write_bytes(b"12345")
        code = send_event.main(["--tag", "cam", "--dry-run", "--tensor", f"frame={path.as_uri()}"])
        assert code == 0
        assert capsys.readouterr().out.startswith("tensor cam id=")

    def test_describe_event_with_embedded_array(self, forbid_connect, capsys, tmp_path) -> None:
        path = tmp_path / "blob.bin"
        path.write_bytes(b"abc")
        code = send_event.main(["--tag", "cam", "--dry-run", f"blob={path.as_uri()}"])
        assert code == 0
        assert "blob=TypedValue(array UINT8, shape=(3,))" in capsys.readouterr().out

    def test_describe_formats_header(self) -> None:
        buffer = encode_event(MessageHeader(1, 99, "cam"), "k", TypedValue.boolean(True))
        assert send_event.describe(buffer) == "event cam id=99 k=TypedValue(BIT, True)"


class TestFailuresBeforeNetwork:
    def test_bad_token(self, forbid_connect) -> None:
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "1", "a=b=c"]) == 1

    def test_out_of_range_number(self, forbid_connect) -> None:
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "1", "a=300b"]) == 1

    def test_missing_destination(self, forbid_connect) -> None:
        assert send_event.main(["--tag", "t", "a=1"]) == 2

    def test_missing_stream(self, forbid_connect) -> None:
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "a=1"]) == 2

    def test_long_tag(self, forbid_connect) -> None:
        assert send_event.main(["--tag", "x" * 33, "--dry-run", "a=1"]) == 2

    def test_missing_file_aborts_whole_batch(self, forbid_connect, tmp_path) -> None:
        missing = (tmp_path / "nope.fits").as_uri()
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "1", "a=1", f"f={missing}"]) == 1

    def test_scalar_in_tensor_mode(self, forbid_connect) -> None:
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "1", "--tensor", "a=1"]) == 1

    def test_invalid_environment(self, forbid_connect, monkeypatch) -> None:
        monkeypatch.setenv("BLOCK_ID", "5000")
        with pytest.raises(SystemExit) as excinfo:
            send_event.main(["--tag", "t", "--dry-run"])
        assert excinfo.value.code == 2


class TestPublish:
    def test_single_offer_of_whole_batch(self, stub_connect) -> None:
        code = send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "5", "--aerondir", "/dev/shm/a", "a=1", "b=2"])
        assert code == 0
        (call,) = stub_connect.calls
        assert call["uri"] == UDP_URI
        assert call["stream_id"] == 5
        assert call["driver_dir"] == "/dev/shm/a"
        pub = call["pub"]
        assert len(pub.offers) == 1
        assert [decode(b).key for b in pub.offers[0]] == ["a", "b"]
        assert pub.closed

    def test_environment_defaults(self, stub_connect, monkeypatch) -> None:
        monkeypatch.setenv("CONTROL_URI", "aeron:udp?endpoint=env:1")
        monkeypatch.setenv("CONTROL_STREAM_ID", "77")
        monkeypatch.setenv("AERON_DIR", "/dev/shm/env")
        assert send_event.main(["--tag", "t", "a=1"]) == 0
        (call,) = stub_connect.calls
        assert call["uri"] == "aeron:udp?endpoint=env:1"
        assert call["stream_id"] == 77
        assert call["driver_dir"] == "/dev/shm/env"

    def test_flags_override_environment(self, stub_connect, monkeypatch) -> None:
        monkeypatch.setenv("CONTROL_URI", "aeron:udp?endpoint=env:1")
        monkeypatch.setenv("CONTROL_STREAM_ID", "77")
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "0", "a=1"]) == 0
        (call,) = stub_connect.calls
        assert call["uri"] == UDP_URI
        assert call["stream_id"] == 0

    def test_not_connected_result(self, stub_connect) -> None:
        stub_connect.options["result"] = OfferStatus.NOT_CONNECTED
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "1", "a=1"]) == 1

    def test_transport_error(self, stub_connect) -> None:
        stub_connect.options["result"] = OfferStatus.ERROR
        assert send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "1", "a=1"]) == 1
        assert stub_connect.calls[0]["pub"].closed

    def test_connection_timeout(self, stub_connect) -> None:
        stub_connect.options["connected"] = False
        code = send_event.main(["--tag", "t", "--uri", UDP_URI, "--stream", "1", "--timeout-ms", "0", "a=1"])
        assert code == 1
        pub = stub_connect.calls[0]["pub"]
        assert pub.offers == []
        assert pub.closed


class TestEndToEnd:
    def test_udp(self) -> None:
        receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        receiver.bind(("127.0.0.1", 0))
        receiver.settimeout(2.0)
        port = receiver.getsockname()[1]
        try:
            code = send_event.main(
                ["--tag", "cam", "--uri", f"aeron:udp?endpoint=127.0.0.1:{port}", "--stream", "1", "x=1.5", "y=true"]
            )
            assert code == 0
            messages = decode_batch(receiver.recv(65535))
        finally:
            receiver.close()
        assert [type(m) for m in messages] == [EventMessage, EventMessage]
        assert [m.key for m in messages] == ["x", "y"]
        assert messages[0].header.correlation_id < messages[1].header.correlation_id

    def test_redis_stream(self, monkeypatch, tmp_path) -> None:
        server = fakeredis.FakeServer()
        fake = fakeredis.FakeRedis(server=server)
        monkeypatch.setattr(redis.Redis, "from_url", classmethod(lambda cls, url, **kwargs: fake))
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\x00\xff")
        code = send_event.main(
            ["--tag", "cam", "--uri", "redis://localhost:6379/0", "--stream", "2", "--tensor", f"f={path.as_uri()}"]
        )
        assert code == 0
        ((_, fields),) = fakeredis.FakeRedis(server=server).xrange("spiders.stream.2")
        (message,) = decode_batch(fields[b"payload"])
        assert isinstance(message, TensorMessage)
        assert message.value.value.tolist() == [0, 255]
