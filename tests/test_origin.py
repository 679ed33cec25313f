from unittest import mock

import pytest
import requests

from aptsync.errors import OriginError
from aptsync.origin import Origin


def make_session(status=200, chunks=(), error=None):
    session = mock.Mock()
    r = mock.MagicMock()
    r.status_code = status
    r.ok = status < 400
    if error is not None:
        r.iter_content.side_effect = error
    else:
        r.iter_content.return_value = iter(chunks)
    session.get.return_value = r
    return session, r


def test_open_streams_chunks_and_releases_connection():
    session, r = make_session(chunks=[b"Package: ", b"", b"foo\n"])
    origin = Origin("http://ddebs.ubuntu.com/", session=session)

    with origin.open("/pool/main/f/foo.deb") as chunks:
        assert list(chunks) == [b"Package: ", b"foo\n"]

    session.get.assert_called_once_with("http://ddebs.ubuntu.com/pool/main/f/foo.deb",
                                        stream=True, timeout=origin.timeout)
    r.__exit__.assert_called_once()


def test_http_error_status():
    session, _ = make_session(status=404)

    with pytest.raises(OriginError):
        with Origin("http://origin.test", session=session).open("pool/x.deb"):
            pass


def test_connection_error():
    session = mock.Mock()
    session.get.side_effect = requests.ConnectionError("refused")

    with pytest.raises(OriginError):
        with Origin("http://origin.test", session=session).open("pool/x.deb"):
            pass


def test_error_while_reading_body():
    session, _ = make_session(error=requests.exceptions.ChunkedEncodingError("reset"))

    with Origin("http://origin.test", session=session).open("pool/x.deb") as chunks:
        with pytest.raises(OriginError):
            list(chunks)
