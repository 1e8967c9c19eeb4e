# client.py -- Implementation of the client side git protocols
# Copyright (C) 2025 The minigit authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# minigit is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Client side support for the smart HTTP Git protocol.

Only what a plain clone needs is implemented: the reference advertisement
of git-upload-pack, and a single request wanting one commit that is
answered with a pack. No capabilities are requested, so the server sends
the pack without side-band framing.
"""

__all__ = [
    "Urllib3HttpGitClient",
    "default_urllib3_manager",
    "default_user_agent_string",
]

import logging
import os
from collections.abc import Callable
from types import TracebackType
from typing import TYPE_CHECKING, Optional
from urllib.parse import urljoin

import urllib3
import urllib3.exceptions

import minigit

from .errors import GitProtocolError, TransferError
from .objects import ObjectID, valid_hexsha
from .pack import PACK_SIGNATURE
from .protocol import Protocol, extract_capabilities, pkt_line

if TYPE_CHECKING:
    from urllib3.response import BaseHTTPResponse

logger = logging.getLogger(__name__)

UPLOAD_PACK_SERVICE = "git-upload-pack"


def default_user_agent_string() -> str:
    """Return the default user agent string for minigit."""
    # Start user agent with "git/", because GitHub requires this.
    return "git/minigit/{}".format(".".join([str(x) for x in minigit.__version__]))


def default_urllib3_manager(
    timeout: Optional[float] = None,
    pool_manager_cls: Optional[type] = None,
    proxy_manager_cls: Optional[type] = None,
) -> "urllib3.PoolManager":
    """Return urllib3 connection pool manager.

    Honour proxy configuration from the https_proxy, http_proxy and
    all_proxy environment variables.

    Args:
      timeout: Timeout for HTTP requests in seconds
      pool_manager_cls: Pool manager class to use
      proxy_manager_cls: Proxy manager class to use
    Returns:
      Either a proxy_manager_cls (defaults to `urllib3.ProxyManager`)
      instance when a proxy is configured, or a pool_manager_cls (defaults
      to `urllib3.PoolManager`) instance otherwise
    """
    proxy_server: Optional[str] = None
    for proxyname in ("https_proxy", "http_proxy", "all_proxy"):
        proxy_server = os.environ.get(proxyname)
        if proxy_server:
            break

    headers = {"User-agent": default_user_agent_string()}
    kwargs: dict = {"cert_reqs": "CERT_REQUIRED"}
    if timeout is not None:
        kwargs["timeout"] = timeout

    if proxy_server:
        if proxy_manager_cls is None:
            proxy_manager_cls = urllib3.ProxyManager
        return proxy_manager_cls(proxy_server, headers=headers, **kwargs)
    if pool_manager_cls is None:
        pool_manager_cls = urllib3.PoolManager
    return pool_manager_cls(headers=headers, **kwargs)


def _wrap_urllib3_exceptions(
    func: Callable[[int], bytes],
) -> Callable[[int], bytes]:
    def wrapper(size: int) -> bytes:
        try:
            return func(size)
        except urllib3.exceptions.HTTPError as error:
            raise TransferError(str(error)) from error

    return wrapper


class _PushbackReader:
    """Read function that can be handed bytes back to return first."""

    def __init__(self, read: Callable[[int], bytes]) -> None:
        self._read = read
        self._pushback = b""

    def unread(self, data: bytes) -> None:
        self._pushback = data + self._pushback

    def __call__(self, size: int) -> bytes:
        if self._pushback:
            data = self._pushback[:size]
            self._pushback = self._pushback[size:]
            return data
        return self._read(size)


class Urllib3HttpGitClient:
    """Git client that uses urllib3 for smart HTTP(S) connections."""

    def __init__(
        self,
        base_url: str,
        pool_manager: Optional["urllib3.PoolManager"] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize Urllib3HttpGitClient.

        Args:
          base_url: URL of the remote repository
          pool_manager: urllib3 pool manager to send requests through
          timeout: Timeout for HTTP requests in seconds; none by default
        """
        self._base_url = base_url.rstrip("/") + "/"
        self._timeout = timeout
        if pool_manager is None:
            self.pool_manager = default_urllib3_manager(timeout=timeout)
        else:
            self.pool_manager = pool_manager
        self._responses: list["BaseHTTPResponse"] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._base_url!r})"

    def get_url(self) -> str:
        """Return the URL of the remote repository."""
        return self._base_url.rstrip("/")

    def _http_request(
        self,
        url: str,
        headers: Optional[dict[str, str]] = None,
        data: Optional[bytes] = None,
    ) -> tuple["BaseHTTPResponse", Callable[[int], bytes]]:
        req_headers = dict(getattr(self.pool_manager, "headers", {}))
        req_headers.setdefault("User-agent", default_user_agent_string())
        if headers is not None:
            req_headers.update(headers)
        req_headers["Pragma"] = "no-cache"

        request_kwargs: dict = {
            "headers": req_headers,
            "preload_content": False,
        }
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout

        method = "GET" if data is None else "POST"
        if data is not None:
            request_kwargs["body"] = data
        logger.debug("%s %s", method, url)
        try:
            resp = self.pool_manager.request(method, url, **request_kwargs)
        except urllib3.exceptions.HTTPError as e:
            raise TransferError(str(e)) from e
        self._responses.append(resp)

        if resp.status != 200:
            raise TransferError(f"unexpected http resp {resp.status} for {url}")
        return resp, _wrap_urllib3_exceptions(resp.read)

    def get_refs(self) -> dict[bytes, ObjectID]:
        """Retrieve the references advertised by the remote.

        Returns: dict mapping ref names (including b"HEAD") to hex shas
        Raises:
          TransferError: if the request fails or the advertisement cannot
            be parsed
        """
        url = urljoin(self._base_url, f"info/refs?service={UPLOAD_PACK_SERVICE}")
        _resp, read = self._http_request(url, {"Accept": "*/*"})
        proto = Protocol(read)
        refs: dict[bytes, ObjectID] = {}
        try:
            pkt = proto.read_pkt_line()
            if pkt is not None and pkt.startswith(b"# service="):
                # The service banner section ends with a flush-pkt
                for _ in proto.read_pkt_seq():
                    pass
                pkt = proto.read_pkt_line()
            first = True
            while pkt is not None:
                if first:
                    pkt, _capabilities = extract_capabilities(pkt)
                    first = False
                sha, sep, name = pkt.rstrip(b"\n").partition(b" ")
                if not sep or not valid_hexsha(sha):
                    raise TransferError(f"invalid ref line {pkt!r}")
                refs[name] = ObjectID(sha)
                pkt = proto.read_pkt_line()
        except TransferError:
            raise
        except GitProtocolError as exc:
            raise TransferError(f"malformed ref advertisement: {exc}") from exc
        logger.debug("remote advertised %d refs", len(refs))
        return refs

    def discover_head(self) -> ObjectID:
        """Return the sha the remote's HEAD points at.

        Raises:
          TransferError: if the remote does not advertise HEAD
        """
        refs = self.get_refs()
        try:
            return refs[b"HEAD"]
        except KeyError:
            raise TransferError(
                f"remote {self.get_url()} does not advertise HEAD"
            ) from None

    def fetch_pack(self, want: ObjectID) -> Callable[[int], bytes]:
        """Request a pack containing the given commit.

        Args:
          want: hex sha of the commit to fetch
        Returns: Read function positioned at the start of the pack stream
        Raises:
          TransferError: if the request fails or the response does not
            contain a pack
        """
        body = pkt_line(b"want " + want + b"\n") + pkt_line(None) + pkt_line(b"done\n")
        url = urljoin(self._base_url, UPLOAD_PACK_SERVICE)
        headers = {
            "Content-Type": f"application/x-{UPLOAD_PACK_SERVICE}-request",
            "Accept": f"application/x-{UPLOAD_PACK_SERVICE}-result",
            "Content-Length": str(len(body)),
        }
        _resp, read = self._http_request(url, headers, body)
        reader = _PushbackReader(read)
        proto = Protocol(reader)
        try:
            while True:
                head = proto.read_exactly(4)
                reader.unread(head)
                if head == PACK_SIGNATURE:
                    return reader
                pkt = proto.read_pkt_line()
                if pkt is None:
                    continue
                if pkt.startswith(b"NAK") or pkt.startswith(b"ACK"):
                    logger.debug("server said %r", pkt.rstrip(b"\n"))
                    continue
                if pkt.startswith(b"ERR "):
                    raise TransferError(
                        pkt[4:].rstrip(b"\n").decode("utf-8", "replace")
                    )
                raise TransferError(f"unexpected line before pack: {pkt!r}")
        except TransferError:
            raise
        except GitProtocolError as exc:
            raise TransferError(f"malformed upload-pack response: {exc}") from exc

    def close(self) -> None:
        """Release the connections held by this client."""
        for resp in self._responses:
            resp.release_conn()
        self._responses = []

    def __enter__(self) -> "Urllib3HttpGitClient":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
