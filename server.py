"""WebDAV server built on http.server, serving a Backend."""

import io
import logging
import xml.etree.ElementTree as ET
from datetime import timezone
from email.utils import format_datetime
from http.server import HTTPServer, ThreadingHTTPServer, BaseHTTPRequestHandler
from urllib.parse import unquote, quote, urlparse

from backend import Backend, BackendError, NotFoundError, RemoteError, ProtocolError, ResourceInfo

logger = logging.getLogger(__name__)

DAV_NS = "DAV:"
SUPPORTED_PROPS = [
    "displayname",
    "getcontentlength",
    "getcontenttype",
    "resourcetype",
    "getlastmodified",
    "getetag",
]
ALLOW = "OPTIONS, GET, HEAD, PROPFIND, PUT, MKCOL, DELETE"


def _parse_path(raw: str) -> str:
    """Parse a URL path into a backend path. Handles decoding, slashes, dots."""
    decoded = unquote(raw)
    return "/".join(p for p in decoded.split("/") if p and p != ".")


def _to_href(path: str, is_dir: bool) -> str:
    """Convert a backend path back to a URL-safe href string."""
    href = "/" + "/".join(quote(p, safe="") for p in path.split("/") if p)
    if is_dir and not href.endswith("/"):
        href += "/"
    return href


def _build_response_element(info: ResourceInfo, include_props: list[str] | None = None) -> ET.Element:
    """Build a DAV:response element for a resource."""
    response = ET.Element(f"{{{DAV_NS}}}response")

    href_el = ET.SubElement(response, f"{{{DAV_NS}}}href")
    href_el.text = _to_href(info.path, info.is_dir)

    propstat = ET.SubElement(response, f"{{{DAV_NS}}}propstat")
    prop = ET.SubElement(propstat, f"{{{DAV_NS}}}prop")

    props_to_report = include_props if include_props is not None else SUPPORTED_PROPS

    for pname in props_to_report:
        if pname == "displayname":
            el = ET.SubElement(prop, f"{{{DAV_NS}}}displayname")
            el.text = info.name or "/"
        elif pname == "getcontentlength":
            if not info.is_dir:
                el = ET.SubElement(prop, f"{{{DAV_NS}}}getcontentlength")
                el.text = str(info.size)
        elif pname == "getcontenttype":
            if not info.is_dir:
                el = ET.SubElement(prop, f"{{{DAV_NS}}}getcontenttype")
                el.text = info.content_type
        elif pname == "resourcetype":
            rt = ET.SubElement(prop, f"{{{DAV_NS}}}resourcetype")
            if info.is_dir:
                ET.SubElement(rt, f"{{{DAV_NS}}}collection")
        elif pname == "getlastmodified":
            el = ET.SubElement(prop, f"{{{DAV_NS}}}getlastmodified")
            el.text = format_datetime(info.mod_time.astimezone(timezone.utc), usegmt=True)
        elif pname == "getetag":
            digest = info.sha1 or info.md5
            if not info.is_dir and digest:
                el = ET.SubElement(prop, f"{{{DAV_NS}}}getetag")
                el.text = f'"{digest}"'

    status = ET.SubElement(propstat, f"{{{DAV_NS}}}status")
    status.text = "HTTP/1.1 200 OK"

    return response


def _multistatus_xml(responses: list[ET.Element]) -> bytes:
    """Wrap response elements in a multistatus document and serialize."""
    ET.register_namespace("D", DAV_NS)
    ms = ET.Element(f"{{{DAV_NS}}}multistatus")
    for r in responses:
        ms.append(r)

    buf = io.BytesIO()
    tree = ET.ElementTree(ms)
    tree.write(buf, xml_declaration=True, encoding="utf-8")
    return buf.getvalue()


def _parse_propfind_body(body: bytes) -> list[str] | None:
    """Parse a PROPFIND request body to determine requested properties.

    Returns None for allprop (or empty body), or a list of property local names.
    """
    if not body or not body.strip():
        return None

    root = ET.fromstring(body)
    if root.find(f"{{{DAV_NS}}}allprop") is not None:
        return None

    prop_el = root.find(f"{{{DAV_NS}}}prop")
    if prop_el is None:
        return None

    props = []
    for child in prop_el:
        tag = child.tag
        if tag.startswith(f"{{{DAV_NS}}}"):
            tag = tag[len(f"{{{DAV_NS}}}"):]
        props.append(tag)
    return props


def _error_status(e: BackendError) -> int:
    if isinstance(e, NotFoundError):
        return 404
    if isinstance(e, RemoteError):
        if e.fatal:
            return 403
        if e.status == 404:
            return 404
        return 502
    if isinstance(e, ProtocolError):
        return 502
    return 500


class WebDAVHandler(BaseHTTPRequestHandler):
    """HTTP request handler for WebDAV."""

    backend: Backend

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send(self, status: int, body: bytes, content_type: str, include_body: bool = True):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def _send_empty(self, status: int, headers: dict[str, str] | None = None):
        self.send_response(status)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _request_path(self) -> str:
        return _parse_path(urlparse(self.path).path)

    def _read_body(self) -> bytes:
        content_length = int(self.headers.get("Content-Length", 0))
        return self.rfile.read(content_length) if content_length > 0 else b""

    def _try(self, fn, include_body: bool = True):
        """Call fn(), returning its result. On backend errors, send an error response and return None."""
        try:
            return fn()
        except BackendError as e:
            status = _error_status(e)
            if status >= 500:
                logger.warning("%s %s failed: %s", self.command, self.path, e)
            self._send(status, str(e).encode(), "text/plain", include_body)
            return None

    def do_OPTIONS(self):
        self._send_empty(200, {"Allow": ALLOW, "DAV": "1"})

    def do_GET(self):
        self._handle_get(include_body=True)

    def do_HEAD(self):
        self._handle_get(include_body=False)

    def _handle_get(self, include_body: bool):
        path = self._request_path()
        info = self._try(lambda: self.backend.info(path), include_body)
        if info is None:
            return

        if info.is_dir:
            children = self._try(lambda: self.backend.list(path), include_body)
            if children is None:
                return
            dir_name = "/" + path
            lines = [f"<html><head><title>{dir_name}</title></head><body>"]
            lines.append(f"<h1>{dir_name}</h1><ul>")
            if path:
                lines.append('<li><a href="../">..</a></li>')
            for child in children:
                href = quote(child.name, safe="") + ("/" if child.is_dir else "")
                lines.append(f'<li><a href="{href}">{child.name}</a></li>')
            lines.append("</ul></body></html>")
            body = "\n".join(lines).encode("utf-8")
            return self._send(200, body, "text/html; charset=utf-8", include_body)
        else:
            if not include_body:
                # Size is known from the listing; no need to download.
                self.send_response(200)
                self.send_header("Content-Type", info.content_type)
                self.send_header("Content-Length", str(info.size))
                self.end_headers()
                return
            data = self._try(lambda: self.backend.get(path))
            if data is None:
                return
            return self._send(200, data, info.content_type)

    def do_PROPFIND(self):
        path = self._request_path()
        depth = self.headers.get("Depth", "1")
        requested_props = _parse_propfind_body(self._read_body())

        info = self._try(lambda: self.backend.info(path))
        if info is None:
            return

        responses = [_build_response_element(info, requested_props)]

        if info.is_dir and depth != "0":
            if depth == "infinity":
                children = self._try(lambda: self.backend.walk(path))
            else:
                children = self._try(lambda: self.backend.list(path))
            if children is None:
                return
            for child in children:
                responses.append(_build_response_element(child, requested_props))

        xml_bytes = _multistatus_xml(responses)
        self._send(207, xml_bytes, "application/xml; charset=utf-8")

    def do_PUT(self):
        path = self._request_path()
        if "Content-Length" not in self.headers:
            return self._send_empty(411)
        body = self._read_body()
        content_type = self.headers.get("Content-Type", "application/octet-stream")
        info = self._try(lambda: self.backend.put(io.BytesIO(body), path, len(body), content_type))
        if info is None:
            return
        self._send_empty(201)

    def do_MKCOL(self):
        path = self._request_path()
        if self._try(lambda: self.backend.mkdir(path) or True) is None:
            return
        self._send_empty(201)

    def do_DELETE(self):
        path = self._request_path()
        info = self._try(lambda: self.backend.info(path))
        if info is None:
            return
        if not info.is_dir:
            return self._method_not_allowed()
        if self._try(lambda: self.backend.rmdir(path) or True) is None:
            return
        self._send_empty(204)

    def _method_not_allowed(self):
        self._send_empty(405, {"Allow": ALLOW})

    do_PROPPATCH = lambda self: self._method_not_allowed()
    do_MOVE = lambda self: self._method_not_allowed()
    do_COPY = lambda self: self._method_not_allowed()
    do_LOCK = lambda self: self._method_not_allowed()
    do_UNLOCK = lambda self: self._method_not_allowed()
    do_POST = lambda self: self._method_not_allowed()
    do_PATCH = lambda self: self._method_not_allowed()


def make_server(backend: Backend, host: str = "localhost", port: int = 8080) -> HTTPServer:
    """Create a WebDAV server for the given backend."""
    handler_class = type("Handler", (WebDAVHandler,), {"backend": backend})
    return ThreadingHTTPServer((host, port), handler_class)
