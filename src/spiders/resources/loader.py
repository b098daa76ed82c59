"""Resolve URI values to raw bytes or pixel arrays.

Supported schemes are ``file``, ``http``, ``https``, ``ftp`` and ``ftps``.
Paths ending in ``.fit``/``.fits`` (optionally ``.gz``) are decoded as FITS
images and yield the primary HDU's pixels in their native shape.
"""

from __future__ import annotations

import ftplib
import gzip
import io
import logging
import re
import zlib
from collections.abc import Callable
from pathlib import Path
from urllib.parse import SplitResult, unquote, urlsplit
from urllib.request import url2pathname

import httpx
import numpy as np
from astropy.io import fits

from spiders.core.errors import ResourceError, ResourceNotFoundError, UnsupportedSchemeError
from spiders.schema.types import URI_SCHEMES

logger = logging.getLogger(__name__)

FITS_SUFFIX = re.compile(r"\.fits?(\.gz)?$", re.IGNORECASE)
_GZIP_MAGIC = b"\x1f\x8b"

FtpFactory = Callable[[bool], ftplib.FTP]


def is_fits_path(path: str) -> bool:
    return FITS_SUFFIX.search(path) is not None


def _default_ftp(secure: bool) -> ftplib.FTP:
    return ftplib.FTP_TLS() if secure else ftplib.FTP()


def _read_fits(source, uri: str) -> np.ndarray:
    try:
        with fits.open(source, memmap=False) as hdus:
            data = hdus[0].data
            if data is None:
                raise ResourceError(f"{uri}: FITS primary HDU holds no image data", uri)
            # Copy out before the file closes.
            return np.array(data)
    except (OSError, EOFError, ValueError, zlib.error) as exc:
        raise ResourceError(f"{uri}: unreadable FITS data ({exc})", uri) from exc


def _gunzip(raw: bytes, uri: str) -> bytes:
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as exc:
        raise ResourceError(f"{uri}: corrupt gzip data ({exc})", uri) from exc


class ResourceLoader:
    """Loads the content a URI value refers to.

    The HTTP client is created lazily and owned by the loader unless one is
    passed in. FTP connections are opened per request through ``ftp_factory``.
    """

    def __init__(
        self,
        *,
        http_client: httpx.Client | None = None,
        timeout_s: float = 30.0,
        ftp_factory: FtpFactory | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._http = http_client
        self._owns_http = http_client is None
        self._ftp_factory = ftp_factory or _default_ftp

    def __enter__(self) -> ResourceLoader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http and self._http is not None:
            self._http.close()
            self._http = None

    def load(self, uri: str) -> bytes | np.ndarray:
        try:
            parts = urlsplit(uri)
        except ValueError as exc:
            raise ResourceError(f"malformed URI {uri}: {exc}", uri) from exc
        scheme = parts.scheme.lower()
        if scheme not in URI_SCHEMES:
            raise UnsupportedSchemeError(f"unsupported URI scheme {scheme!r} in {uri}", uri)

        if scheme == "file":
            return self._load_file(parts, uri)

        if scheme in ("http", "https"):
            raw = self._fetch_http(uri)
        else:
            raw = self._fetch_ftp(parts, uri, secure=scheme == "ftps")
        logger.info("Fetched %d bytes from %s", len(raw), uri)

        if is_fits_path(parts.path):
            if raw[:2] == _GZIP_MAGIC:
                raw = _gunzip(raw, uri)
            return _read_fits(io.BytesIO(raw), uri)
        return raw

    def _load_file(self, parts: SplitResult, uri: str) -> bytes | np.ndarray:
        path = Path(url2pathname(parts.path))
        if not path.is_file():
            raise ResourceNotFoundError(f"no such file: {path}", uri)
        if is_fits_path(path.name):
            return _read_fits(path, uri)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ResourceError(f"cannot read {path}: {exc.strerror or exc}", uri) from exc

    def _client(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=self._timeout_s)
        return self._http

    def _fetch_http(self, uri: str) -> bytes:
        try:
            response = self._client().get(uri, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ResourceError(f"{uri}: request failed ({exc})", uri) from exc
        if response.status_code == httpx.codes.NOT_FOUND:
            raise ResourceNotFoundError(f"{uri}: 404 Not Found", uri)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ResourceError(f"{uri}: HTTP {response.status_code}", uri) from exc
        return response.content

    def _fetch_ftp(self, parts: SplitResult, uri: str, *, secure: bool) -> bytes:
        try:
            port = parts.port or 21
        except ValueError as exc:
            raise ResourceError(f"{uri}: {exc}", uri) from exc
        ftp = self._ftp_factory(secure)
        sink = io.BytesIO()
        try:
            ftp.connect(parts.hostname, port, timeout=self._timeout_s)
            ftp.login(unquote(parts.username or "anonymous"), unquote(parts.password or ""))
            if secure:
                ftp.prot_p()
            ftp.retrbinary(f"RETR {unquote(parts.path)}", sink.write)
        except ftplib.error_perm as exc:
            if str(exc).startswith("550"):
                raise ResourceNotFoundError(f"{uri}: {exc}", uri) from exc
            raise ResourceError(f"{uri}: {exc}", uri) from exc
        except ftplib.all_errors as exc:
            raise ResourceError(f"{uri}: transfer failed ({exc})", uri) from exc
        finally:
            ftp.close()
        return sink.getvalue()


__all__ = ["ResourceLoader", "FITS_SUFFIX", "is_fits_path"]
