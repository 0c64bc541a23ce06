"""Normalized view of one incoming request."""

from collections.abc import Iterator, Mapping
from email.utils import formatdate
from http.cookies import CookieError, SimpleCookie
from pathlib import Path
from typing import Any

from app.core.annex import AnnexRegistry
from app.core.body import BodyAccessor, BodyOpener
from app.core.context import Conf, Contact
from app.core.exceptions import ActiveListError, RequestError
from app.core.files import FileRegistry, UploadGuard, uploaded_within
from app.core.logger import LogIcon, logger
from app.core.navigation import NavigationState
from app.core.params import ParameterStore
from app.core.session import Qsession, post_token
from app.models.core import HttpVerb, Marker, UploadedFile

UPLOAD_ERRORS_ANNEX = "upload_errors"
ACTIVE_LIST_ANNEX = "active_list"


def canonical_header(name: str) -> str:
    """Canonical header key: ``HTTP_CONTENT_TYPE`` and ``Content-Type`` agree."""
    key = name.strip()
    if key.upper().startswith("HTTP_"):
        key = key[5:]
    return key.lower().replace("_", "-")


def render_cookie(name: str, value: str, opt: Mapping[str, Any]) -> str:
    """Render one ``Set-Cookie`` header value."""
    cookie: SimpleCookie = SimpleCookie()
    cookie[name] = value
    morsel = cookie[name]
    if expires := opt.get("expires"):
        morsel["expires"] = formatdate(expires, usegmt=True)
    morsel["path"] = opt.get("path") or "/"
    if opt.get("domain"):
        morsel["domain"] = opt["domain"]
    if opt.get("secure"):
        morsel["secure"] = True
    if opt.get("httponly"):
        morsel["httponly"] = True
    if opt.get("samesite"):
        morsel["samesite"] = opt["samesite"]
    return morsel.OutputString()


class Qrequest:
    """One request's method, routing context, parameters, files, body,
    session and annexes behind a single surface.

    Routing context (method, page, path, navigation) is fixed once
    ``start_dispatch`` has been called.
    """

    def __init__(
        self,
        method: str,
        data: Mapping[str, Any] | None = None,
        *,
        qsession: Qsession | None = None,
        body: BodyAccessor | None = None,
    ) -> None:
        self._method = HttpVerb(method.upper())
        self._conf: Conf | None = None
        self._user: Contact | None = None
        self._navigation: NavigationState | None = None
        self._page: str | None = None
        self._path: str | None = None
        self._referrer: str | None = None
        self._headers: dict[str, str] = {}
        self._params = ParameterStore(data)
        self._files = FileRegistry()
        self._annexes = AnnexRegistry()
        self._body = body if body is not None else BodyAccessor()
        self._qsession = qsession if qsession is not None else Qsession()
        self._token_approved = False
        self._body_was_empty = False
        self._active_list_set = False
        self._dispatched = False
        self._cookies: list[str] = []

    def __repr__(self) -> str:
        return f"Qrequest({self._method.value} {self._page!r} {self._path!r})"

    # -- setup ------------------------------------------------------------

    def _check_setup(self) -> None:
        if self._dispatched:
            raise RequestError("Routing context is fixed after dispatch")

    def start_dispatch(self) -> "Qrequest":
        self._dispatched = True
        return self

    def set_navigation(self, nav: NavigationState) -> "Qrequest":
        self._check_setup()
        self._navigation = nav
        self._page = nav.page
        self._path = nav.path
        return self

    def set_page(self, page: str | None, path: str | None = None) -> "Qrequest":
        self._check_setup()
        self._page = page
        self._path = path
        return self

    def set_referrer(self, referrer: str | None) -> "Qrequest":
        self._referrer = referrer
        return self

    def set_conf(self, conf: Conf) -> "Qrequest":
        if self._conf is not None and self._conf is not conf:
            raise RequestError("Request already bound to another conference")
        self._conf = conf
        return self

    def set_user(self, user: Contact | None) -> "Qrequest":
        if user is not None:
            if self._conf is not None and user.conf is not self._conf:
                raise RequestError("User belongs to another conference")
            self._conf = user.conf
        self._user = user
        return self

    def set_qsession(self, qsession: Qsession) -> "Qrequest":
        self._qsession = qsession
        return self

    # -- routing context --------------------------------------------------

    def method(self) -> str:
        return self._method.value

    def is_get(self) -> bool:
        return self._method is HttpVerb.GET

    def is_post(self) -> bool:
        return self._method is HttpVerb.POST

    def is_head(self) -> bool:
        return self._method is HttpVerb.HEAD

    def conf(self) -> Conf | None:
        return self._conf

    def user(self) -> Contact | None:
        return self._user

    def navigation(self) -> NavigationState | None:
        return self._navigation

    def qsession(self) -> Qsession:
        return self._qsession

    def page(self) -> str | None:
        return self._page

    def path(self) -> str | None:
        return self._path

    def path_component(self, n: int, decoded: bool = False) -> str | None:
        return NavigationState(page=self._page, path=self._path).path_component(n, decoded)

    def referrer(self) -> str | None:
        return self._referrer

    def header(self, name: str) -> str | None:
        return self._headers.get(canonical_header(name))

    def set_header(self, name: str, value: str | None) -> None:
        key = canonical_header(name)
        if value is None:
            self._headers.pop(key, None)
        else:
            self._headers[key] = value

    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    # -- body -------------------------------------------------------------

    def body(self) -> bytes | None:
        return self._body.content()

    def body_filename(self, extension: str | None = None) -> Path | None:
        return self._body.filename(extension, self.header("Content-Type"))

    def body_content_type(self) -> str | None:
        return self._body.content_type(self.header("Content-Type"))

    def set_body(self, content: bytes | str, content_type: str | None = None) -> "Qrequest":
        self._body.set(content)
        if content_type is not None:
            self.set_header("Content-Type", content_type)
        return self

    # -- parameters -------------------------------------------------------

    def __contains__(self, key: object) -> bool:
        return key in self._params

    def __getitem__(self, key: str) -> str | Marker:
        if key not in self._params:
            raise KeyError(key)
        return self._params.get(key)  # type: ignore[return-value]

    def __setitem__(self, key: str, value: Any) -> None:
        self._params.set(key, value)

    def __delitem__(self, key: str) -> None:
        self._params.unset(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def has(self, key: str) -> bool:
        return self._params.has(key)

    def contains(self, key: str) -> bool:
        return self._params.contains(key)

    def get(self, key: str) -> str | Marker | None:
        return self._params.get(key)

    def set(self, key: str, value: Any) -> None:
        self._params.set(key, value)

    def unset(self, key: str) -> None:
        self._params.unset(key)

    def has_array(self, key: str) -> bool:
        return self._params.has_array(key)

    def get_array(self, key: str) -> list | None:
        return self._params.get_array(key)

    def set_array(self, key: str, items: list | tuple) -> None:
        self._params.set_array(key, items)

    def set_req(self, key: str, value: Any) -> "Qrequest":
        self._params.set_req(key, value)
        return self

    def keys(self) -> list[str]:
        return self._params.keys()

    def as_dict(self) -> dict[str, str | Marker]:
        return self._params.as_dict()

    def subset_as_dict(self, *keys: str) -> dict[str, str | Marker]:
        return self._params.subset_as_dict(*keys)

    def as_json(self) -> dict[str, str | list]:
        return self._params.as_json()

    # -- files ------------------------------------------------------------

    def set_file(self, name: str, finfo: UploadedFile | Mapping) -> "Qrequest":
        self._files.set_file(name, finfo)
        return self

    def set_file_content(
        self,
        name: str,
        content: bytes,
        filename: str | None = None,
        mimetype: str | None = None,
    ) -> "Qrequest":
        self._files.set_file_content(name, content, filename, mimetype)
        return self

    def has_files(self) -> bool:
        return self._files.has_files()

    def has_file(self, name: str) -> bool:
        return self._files.has_file(name)

    def file(self, name: str) -> UploadedFile | None:
        return self._files.file(name)

    def file_filename(self, name: str) -> str | None:
        return self._files.file_filename(name)

    def file_size(self, name: str) -> int | None:
        return self._files.file_size(name)

    def file_contents(self, name: str, offset: int = 0, maxlen: int | None = None) -> bytes | None:
        return self._files.file_contents(name, offset, maxlen)

    def files(self) -> dict[str, UploadedFile]:
        return self._files.files()

    def register_uploads(self, raw: Mapping[str, Mapping], guard: UploadGuard, max_filesize: int) -> None:
        """Register platform uploads; failures go to the ``upload_errors`` annex."""
        if errors := self._files.register_uploads(raw, guard, max_filesize):
            self.set_annex(UPLOAD_ERRORS_ANNEX, errors)

    # -- annexes ----------------------------------------------------------

    def has_annexes(self) -> bool:
        return bool(self._annexes)

    def annexes(self) -> dict[str, Any]:
        return self._annexes.as_dict()

    def has_annex(self, name: str) -> bool:
        return self._annexes.has(name)

    def annex(self, name: str) -> Any:
        return self._annexes.get(name)

    def checked_annex[T](self, name: str, kind: type[T]) -> T:
        return self._annexes.checked(name, kind)

    def set_annex(self, name: str, value: Any) -> None:
        self._annexes.set(name, value)

    def has_active_list(self) -> bool:
        return bool(self._annexes.get(ACTIVE_LIST_ANNEX))

    def active_list(self) -> Any:
        self._active_list_set = True
        return self._annexes.get(ACTIVE_LIST_ANNEX)

    def set_active_list(self, active_list: Any) -> None:
        if self._active_list_set:
            raise ActiveListError("Active list already determined")
        self._active_list_set = True
        self._annexes.set(ACTIVE_LIST_ANNEX, active_list)

    # -- anti-forgery flags -----------------------------------------------

    def approve_token(self) -> "Qrequest":
        self._token_approved = True
        return self

    def valid_token(self) -> bool:
        return self._token_approved

    def valid_post(self) -> bool:
        return self._token_approved and self._method is HttpVerb.POST

    def set_body_was_empty(self) -> None:
        self._body_was_empty = True

    def body_was_empty(self) -> bool:
        return self._body_was_empty

    def xt_allow(self, requirement: str) -> bool | None:
        """Whether the request satisfies an ``allow_if`` requirement; None if unknown."""
        match requirement:
            case "post":
                return self.valid_post()
            case "anypost":
                return self._method is HttpVerb.POST
            case "getpost":
                return self._token_approved and self._method in (HttpVerb.POST, HttpVerb.GET, HttpVerb.HEAD)
            case "get":
                return self._method is HttpVerb.GET
            case "head":
                return self._method is HttpVerb.HEAD
            case _ if requirement.startswith("req."):
                return self.has(requirement[4:])
            case _:
                return None

    # -- cookies ----------------------------------------------------------

    def set_cookie_opt(self, name: str, value: str, opt: Mapping[str, Any]) -> bool:
        opt = dict(opt)
        conf = self._conf
        if opt.get("path") is None:
            opt["path"] = self._navigation.base_path if self._navigation else "/"
        if opt.get("domain") is None:
            opt["domain"] = conf.session_domain if conf else ""
        if opt.get("secure") is None:
            opt["secure"] = conf.session_secure if conf else False
        if opt.get("samesite") is None:
            samesite = conf.session_samesite if conf else "Lax"
            if samesite and (opt["secure"] or samesite != "None"):
                opt["samesite"] = samesite
        try:
            self._cookies.append(render_cookie(name, value, opt))
        except CookieError as ex:
            logger.error("Cannot set cookie", icon=LogIcon.ERROR, cookie=name, error=str(ex))
            return False
        return True

    def set_cookie(self, name: str, value: str, expires_at: int) -> bool:
        return self.set_cookie_opt(name, value, {"expires": expires_at})

    def set_httponly_cookie(self, name: str, value: str, expires_at: int) -> bool:
        return self.set_cookie_opt(name, value, {"expires": expires_at, "httponly": True})

    def cookies(self) -> list[str]:
        """Rendered ``Set-Cookie`` values queued by this request."""
        return list(self._cookies)

    # -- session ----------------------------------------------------------

    def open_session(self) -> None:
        self._qsession.open()

    def qsid(self) -> str | None:
        return self._qsession.sid

    def has_gsession(self, key: str) -> bool:
        return self._qsession.has(key)

    def clear_gsession(self) -> None:
        self._qsession.clear()

    def gsession(self, key: str) -> Any:
        return self._qsession.get(key)

    def set_gsession(self, key: str, value: Any) -> None:
        self._qsession.set(key, value)

    def unset_gsession(self, key: str) -> None:
        self._qsession.unset(key)

    def _session_key(self) -> str | None:
        return self._conf.session_key if self._conf else None

    def has_csession(self, key: str) -> bool:
        namespace = self._session_key()
        return namespace is not None and self._qsession.has2(namespace, key)

    def csession(self, key: str) -> Any:
        namespace = self._session_key()
        return self._qsession.get2(namespace, key) if namespace is not None else None

    def set_csession(self, key: str, value: Any) -> None:
        if (namespace := self._session_key()) is not None:
            self._qsession.set2(namespace, key, value)

    def unset_csession(self, key: str) -> None:
        if (namespace := self._session_key()) is not None:
            self._qsession.unset2(namespace, key)

    def post_value(self) -> str:
        """Anti-forgery token, opening a session if there is none."""
        if self._qsession.sid is None:
            self._qsession.open()
        return self.maybe_post_value()

    def maybe_post_value(self) -> str:
        return post_token(self._qsession.sid)

    # -- teardown ---------------------------------------------------------

    def finish(self, session_cookie: str, session_lifetime: int, now: float) -> None:
        """Commit the session and issue its cookie if it was opened here."""
        self._qsession.commit()
        if self._qsession.opened_now and self._qsession.sid:
            self.set_httponly_cookie(session_cookie, self._qsession.sid, int(now) + session_lifetime)

    def cleanup(self) -> None:
        self._body.cleanup()


def make_minimal(
    method: str,
    query: Mapping[str, Any],
    nav: NavigationState,
    *,
    qsession: Qsession | None = None,
    body: BodyAccessor | None = None,
) -> Qrequest:
    """Request carrying only its routing context and the ``post`` token."""
    qreq = Qrequest(method, qsession=qsession, body=body).set_navigation(nav)
    if "post" in query:
        qreq.set_req("post", query["post"])
    return qreq


def build_request(
    method: str,
    nav: NavigationState,
    *,
    query: Mapping[str, Any] | None = None,
    form: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    uploads: Mapping[str, Mapping] | None = None,
    body_opener: BodyOpener | None = None,
    qsession: Qsession | None = None,
    upload_guard: UploadGuard | None = None,
    max_filesize: int = 0,
    temp_root: Path | None = None,
) -> Qrequest:
    """Populate a request from platform-delivered pieces.

    Form fields override query fields of the same name. With no form
    fields, the raw body stays readable through the body accessors.
    """
    query = query or {}
    form = form or {}
    body = BodyAccessor(body_opener if not form else None, temp_root)
    qreq = make_minimal(method, query, nav, qsession=qsession, body=body)
    for key, value in query.items():
        qreq.set_req(key, value)
    for key, value in form.items():
        qreq.set_req(key, value)
    if not form:
        qreq.set_body_was_empty()
    for key, value in (headers or {}).items():
        qreq.set_header(key, value)
    qreq.set_referrer(qreq.header("Referer"))
    if uploads:
        qreq.register_uploads(uploads, upload_guard or uploaded_within(), max_filesize)
    return qreq
