"""SOAP client for the campaign server.

Speaks the server's SOAP router (``/nl/jsp/soaprouter.jsp``) over httpx:

- ``xtk:session#Logon`` / ``#Logoff`` to open and close a session
- ``xtk:queryDef#ExecuteQuery`` to count or select records

Every call is attempted once; faults, HTTP errors and transport errors are
raised as QueryError (AuthenticationError for logon).

Observers registered with :meth:`CampaignClient.register_observer` are told
about each call. The request and response text they receive has session
tokens and passwords redacted.

Example:
    with CampaignClient("https://campaign.example.com") as client:
        info = client.logon("admin", "secret")
        print(info.instance_name)
        print(client.execute_query({"schema": "nms:recipient", "operation": "count"}))
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple, Union
from xml.sax.saxutils import escape

import httpx
import requests_toolbelt
from requests_toolbelt.utils.user_agent import user_agent

from campaign._version import __version__
from campaign.lib.errors import AuthenticationError, QueryError
from campaign.lib.query import QueryDef, QueryOperation, query_def_to_xml
from campaign.lib.records import XmlNodeCursor

logger = logging.getLogger(__name__)

__all__ = [
    "CampaignClient",
    "ClientObserver",
    "ServerInfo",
    "SoapCall",
    "redact",
]

SOAP_ROUTER = "/nl/jsp/soaprouter.jsp"
SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
LITERAL_XML_STYLE = "http://xml.apache.org/xml-soap/literalxml"

SENSITIVE_TAGS = ("sessiontoken", "strPassword", "pstrSessionToken", "pstrSecurityToken")
_SENSITIVE_PATTERN = re.compile(
    r"(<(?:\w+:)?(%s)\b[^>]*>)(.*?)(</(?:\w+:)?\2>)" % "|".join(SENSITIVE_TAGS),
    re.DOTALL,
)

_USER_AGENT = user_agent(
    "campaign-pull",
    __version__,
    extras=[
        ("httpx", getattr(httpx, "__version__", "unknown")),
        ("requests-toolbelt", getattr(requests_toolbelt, "__version__", "unknown")),
    ],
)

_ENVELOPE = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<SOAP-ENV:Envelope xmlns:xsd="http://www.w3.org/2001/XMLSchema"'
    ' xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"'
    ' xmlns:ns="http://xml.apache.org/xml-soap"'
    ' xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/">'
    "<SOAP-ENV:Header/>"
    "<SOAP-ENV:Body>"
    '<m:{method} xmlns:m="urn:{urn}"'
    ' SOAP-ENV:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
    "{params}"
    "</m:{method}>"
    "</SOAP-ENV:Body>"
    "</SOAP-ENV:Envelope>"
)

SoapParam = Tuple[str, Union[str, ET.Element]]


def redact(text: Optional[str]) -> Optional[str]:
    """Mask session tokens and passwords in a SOAP message."""
    if text is None:
        return None
    return _SENSITIVE_PATTERN.sub(lambda m: f"{m.group(1)}***{m.group(4)}", text)


@dataclass
class ServerInfo:
    """Server identity reported by a successful logon."""

    instance_name: str
    release_name: str = ""
    build_number: str = ""

    def describe(self) -> str:
        return f"{self.instance_name} ({self.release_name} build {self.build_number})"


@dataclass
class SoapCall:
    """One SOAP round trip as seen by observers (redacted)."""

    urn: str
    method: str
    request: str
    response: Optional[str] = None
    status_code: Optional[int] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def action(self) -> str:
        return f"{self.urn}#{self.method}"


class ClientObserver:
    """Base class for call observers; override the hooks you need."""

    def on_call(self, call: SoapCall) -> None:
        pass

    def on_success(self, call: SoapCall) -> None:
        pass

    def on_failure(self, call: SoapCall, error: Exception) -> None:
        pass


class CampaignClient:
    """Authenticated SOAP session against one server."""

    def __init__(
        self,
        host: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not host:
            raise ValueError("host is required (e.g. 'http://localhost:8080')")
        self.host = host.rstrip("/")
        self.timeout = timeout
        self.session_token = ""
        self.security_token = ""
        self.server_info: Optional[ServerInfo] = None
        self._observers: List[ClientObserver] = []
        self._http = httpx.Client(
            base_url=self.host,
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": _USER_AGENT},
        )

    def __enter__(self) -> "CampaignClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def is_logged(self) -> bool:
        return bool(self.session_token)

    def register_observer(self, observer: ClientObserver) -> None:
        self._observers.append(observer)

    def unregister_observer(self, observer: ClientObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # -- session ---------------------------------------------------------

    def logon(self, user: str, password: str) -> Optional[ServerInfo]:
        """Open a session with user/password credentials.

        Returns:
            The server info from the session info, or None when the server
            did not report any

        Raises:
            AuthenticationError: If the server rejects the logon or cannot be reached
        """
        params: List[SoapParam] = [
            ("strLogin", user),
            ("strPassword", password),
            ("elemParameters", ET.Element("parameters")),
        ]
        try:
            response = self._soap_call("xtk:session", "Logon", params)
        except QueryError as e:
            raise AuthenticationError(
                f"Logon failed for {user}@{self.host}: {e.base_message}",
                host=self.host,
                cause=e,
            ) from e

        session_token = _child_text(response, "pstrSessionToken")
        if not session_token:
            raise AuthenticationError("Logon response has no session token", host=self.host)

        self.session_token = session_token
        self.security_token = _child_text(response, "pstrSecurityToken") or ""
        self.server_info = _parse_server_info(_child(response, "pSessionInfo"))
        logger.debug("Logged in to %s as %s", self.host, user)
        return self.server_info

    def logoff(self) -> None:
        """Close the session; failures are logged, the tokens are dropped anyway."""
        if not self.is_logged:
            return
        try:
            self._soap_call("xtk:session", "Logoff", [])
        except QueryError as e:
            logger.warning("Logoff from %s failed: %s", self.host, e.base_message)
        finally:
            self.session_token = ""
            self.security_token = ""

    # -- queries ---------------------------------------------------------

    def execute_query(self, query_def: QueryDef) -> Any:
        """Run a query definition.

        Returns:
            ``{"count": int}`` for count operations, an XmlNodeCursor over the
            returned collection for select operations, and the bare result
            element for any other operation

        Raises:
            QueryError: On faults, HTTP or transport errors, or an
                unexpected response shape
        """
        response = self._soap_call(
            "xtk:queryDef", "ExecuteQuery", [("entity", query_def_to_xml(query_def))]
        )
        output = _child(response, "pdomOutput")
        result = _first_element(output) if output is not None else None
        if result is None:
            raise QueryError(
                "ExecuteQuery response has no result element",
                schema=query_def.get("schema"),
            )
        _strip_namespaces(result)

        operation = str(query_def.get("operation", ""))
        if operation == QueryOperation.COUNT.value:
            raw = result.get("count")
            try:
                return {"count": int(raw or 0)}
            except ValueError as e:
                raise QueryError(
                    f"Invalid count value: {raw!r}", schema=query_def.get("schema")
                ) from e
        if operation == QueryOperation.SELECT.value:
            return XmlNodeCursor(result)
        return result

    # -- transport -------------------------------------------------------

    def _build_envelope(self, urn: str, method: str, params: Sequence[SoapParam]) -> str:
        parts = [f'<sessiontoken xsi:type="xsd:string">{escape(self.session_token)}</sessiontoken>']
        for name, value in params:
            if isinstance(value, ET.Element):
                literal = ET.tostring(value, encoding="unicode")
                parts.append(
                    f'<{name} xsi:type="ns:Element" SOAP-ENV:encodingStyle="{LITERAL_XML_STYLE}">'
                    f"{literal}</{name}>"
                )
            else:
                parts.append(f'<{name} xsi:type="xsd:string">{escape(value)}</{name}>')
        return _ENVELOPE.format(method=method, urn=urn, params="".join(parts))

    def _headers(self, urn: str, method: str) -> dict:
        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": f"{urn}#{method}",
        }
        if self.session_token:
            headers["X-Session-Token"] = self.session_token
            headers["Cookie"] = f"__sessiontoken={self.session_token}"
        if self.security_token:
            headers["X-Security-Token"] = self.security_token
        return headers

    def _soap_call(self, urn: str, method: str, params: Sequence[SoapParam]) -> ET.Element:
        envelope = self._build_envelope(urn, method, params)
        call = SoapCall(urn=urn, method=method, request=redact(envelope) or "")
        self._notify("on_call", call)

        try:
            response = self._http.post(
                SOAP_ROUTER,
                content=envelope.encode("utf-8"),
                headers=self._headers(urn, method),
            )
            call.status_code = response.status_code
            call.response = redact(response.text)
            element = self._parse_response(response, call.action)
        except httpx.RequestError as e:
            error = QueryError(f"Request to {self.host} failed: {e}", cause=e)
            self._notify("on_failure", call, error)
            raise error from e
        except QueryError as e:
            self._notify("on_failure", call, e)
            raise

        self._notify("on_success", call)
        return element

    def _parse_response(self, response: httpx.Response, action: str) -> ET.Element:
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            if response.is_error:
                raise QueryError(
                    f"{action} failed with HTTP {response.status_code}",
                    status_code=response.status_code,
                ) from e
            raise QueryError(f"Malformed response to {action}: {e}", cause=e) from e

        body = root.find(f"{{{SOAP_ENV_NS}}}Body")
        if body is None:
            raise QueryError(f"Response to {action} has no SOAP body", status_code=response.status_code)

        fault = body.find(f"{{{SOAP_ENV_NS}}}Fault")
        if fault is not None:
            code = _child_text(fault, "faultcode") or ""
            message = _child_text(fault, "faultstring") or "SOAP fault"
            detail = _child_text(fault, "detail")
            if detail:
                message = f"{message} ({detail.strip()})"
            raise QueryError(message, fault_code=code, status_code=response.status_code)

        if response.is_error:
            raise QueryError(
                f"{action} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        result = _first_element(body)
        if result is None:
            raise QueryError(f"Response to {action} is empty", status_code=response.status_code)
        return result

    def _notify(self, hook: str, call: SoapCall, *args: Any) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, hook)(call, *args)
            except Exception as e:
                logger.warning(
                    "Observer %s.%s failed: %s", type(observer).__name__, hook, e
                )


def _local_name(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _first_element(parent: ET.Element) -> Optional[ET.Element]:
    for child in parent:
        if isinstance(child.tag, str):
            return child
    return None


def _child(parent: ET.Element, name: str) -> Optional[ET.Element]:
    for child in parent:
        if _local_name(child.tag) == name:
            return child
    return None


def _child_text(parent: ET.Element, name: str) -> Optional[str]:
    child = _child(parent, name)
    if child is None:
        return None
    return child.text or ""


def _strip_namespaces(element: ET.Element) -> None:
    for node in element.iter():
        if isinstance(node.tag, str) and "}" in node.tag:
            node.tag = _local_name(node.tag)


def _parse_server_info(session_info: Optional[ET.Element]) -> Optional[ServerInfo]:
    if session_info is None:
        return None
    for node in session_info.iter():
        if _local_name(node.tag) == "serverInfo":
            name = node.get("instanceName")
            if not name:
                return None
            return ServerInfo(
                instance_name=name,
                release_name=node.get("releaseName", ""),
                build_number=node.get("buildNumber", ""),
            )
    return None
