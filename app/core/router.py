"""Router that hands handlers a Qrequest and renders their results."""

import inspect
import io
import time
import uuid
from collections.abc import Callable, Mapping
from functools import wraps
from http.cookies import CookieError, SimpleCookie
from typing import Any

import orjson
import structlog
from pydantic import BaseModel
from robyn import Headers, Request, Response, SubRouter, status_codes
from robyn.robyn import HttpMethod

from app.core.files import uploaded_within
from app.core.logger import LogIcon, logger
from app.core.navigation import NavigationState
from app.core.request import Qrequest, build_request
from app.core.session import Qsession
from app.core.settings import settings as st


def parse_endpoint_signature(sig: inspect.Signature) -> set[str]:
    """Names of handler parameters that want the Qrequest."""
    return {name for name, param in sig.parameters.items() if param.annotation is Qrequest}


def _header_map(request: Request) -> dict[str, str]:
    headers = getattr(request, "headers", None)
    if headers is None:
        return {}
    raw = headers.get_headers() if hasattr(headers, "get_headers") else dict(headers)
    return {k: ", ".join(v) if isinstance(v, list) else v for k, v in raw.items()}


def _query_map(request: Request) -> dict[str, Any]:
    """Query fields; ``key[]`` fields and repeated keys stay lists."""
    params = getattr(request, "query_params", None)
    raw = params.to_dict() if params is not None else {}
    query: dict[str, Any] = {}
    for key, values in raw.items():
        if not isinstance(values, list):
            query[key] = values
        elif key.endswith("[]"):
            query[key[:-2]] = list(values)
        else:
            query[key] = values[-1] if len(values) == 1 else list(values)
    return query


def _session_id(headers: Mapping[str, str]) -> str | None:
    raw = next((v for k, v in headers.items() if k.lower() == "cookie"), None)
    if not raw:
        return None
    try:
        cookie = SimpleCookie(raw)
    except CookieError:
        return None
    morsel = cookie.get(st.SESSION_COOKIE)
    return morsel.value if morsel else None


def request_from_robyn(request: Request, state: Any) -> Qrequest:
    """Build the Qrequest for a Robyn request, bound to the app state."""
    headers = _header_map(request)
    raw_body = getattr(request, "body", None) or b""
    if isinstance(raw_body, str):
        raw_body = raw_body.encode()

    qreq = build_request(
        request.method,
        NavigationState.from_url_path(request.url.path, st.BASE_PATH),
        query=_query_map(request),
        form=dict(getattr(request, "form_data", None) or {}),
        headers=headers,
        body_opener=(lambda: io.BytesIO(raw_body)) if raw_body else None,
        qsession=Qsession(state.sessions, _session_id(headers)),
        upload_guard=uploaded_within(st.UPLOAD_TMP_DIR),
        max_filesize=st.UPLOAD_MAX_FILESIZE,
        temp_root=st.TEMP_DIR,
    )
    for filename, content in (getattr(request, "files", None) or {}).items():
        qreq.set_file_content(filename, content, filename=filename)

    conf = state.conf
    qreq.set_conf(conf)
    qreq.set_user(conf.contact(qreq.gsession("u"), qreq.gsession("uid") or 0))

    post = qreq.get("post")
    if qreq.qsid() and isinstance(post, str) and post == qreq.maybe_post_value():
        qreq.approve_token()
        logger.debug("Post token approved", icon=LogIcon.TOKEN)
    logger.debug("Request dispatched", icon=LogIcon.REQUEST, page=qreq.page(), signed_in=qreq.user().is_signed_in)
    return qreq.start_dispatch()


def parse_response(result: Any, cookies: list[str] | None = None) -> Response:
    """Convert handler result to Response."""
    headers: Headers | dict = {}
    if cookies:
        headers = Headers({})
        for cookie in cookies:
            headers.append("set-cookie", cookie)

    def _with(content_type: str) -> Headers | dict:
        if isinstance(headers, Headers):
            headers.set("content-type", content_type)
            return headers
        return {**headers, "content-type": content_type}

    match result:
        case Response():
            return result
        case BaseModel():
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers=_with("application/json"),
                description=result.model_dump_json(indent=4),
            )
        case dict():
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers=_with("application/json"),
                description=orjson.dumps(result).decode(),
            )
        case _:
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers=headers,
                description=str(result),
            )


HTTP_METHODS = (
    HttpMethod.GET,
    HttpMethod.POST,
    HttpMethod.PUT,
    HttpMethod.DELETE,
    HttpMethod.PATCH,
    HttpMethod.HEAD,
    HttpMethod.OPTIONS,
)


def _create_method_wrapper(original_method: Callable) -> Callable:
    @wraps(original_method)
    def method_wrapper(*args, **kwargs) -> Callable:
        decorator = original_method(*args, **kwargs)

        def handler_decorator(handler: Callable) -> Callable:
            sig = inspect.signature(handler)
            qreq_params = parse_endpoint_signature(sig)
            has_request_param = "request" in sig.parameters

            @wraps(handler)
            async def wrapped_handler(request: Request, global_dependencies, **h_kwargs):
                state = global_dependencies["state"]
                structlog.contextvars.bind_contextvars(
                    request_id=uuid.uuid4().hex[:12],
                    method=request.method,
                    path=request.url.path,
                )
                qreq = None
                try:
                    qreq = request_from_robyn(request, state)
                    for name in qreq_params:
                        h_kwargs[name] = qreq

                    # Pass request to handler only if it declared it
                    if has_request_param:
                        h_kwargs["request"] = request

                    result = await handler(**h_kwargs)
                    qreq.finish(st.SESSION_COOKIE, st.SESSION_LIFETIME, time.time())
                    return parse_response(result, qreq.cookies())
                finally:
                    if qreq is not None:
                        qreq.cleanup()
                    structlog.contextvars.clear_contextvars()

            # Build signature: always include request and app state for Robyn injection
            new_params = [
                inspect.Parameter("request", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=Request),
                inspect.Parameter("global_dependencies", inspect.Parameter.POSITIONAL_OR_KEYWORD),
            ]
            for name, param in sig.parameters.items():
                if name == "request" or name in qreq_params:
                    continue
                new_params.append(param)

            wrapped_handler.__signature__ = sig.replace(parameters=new_params)  # type: ignore[attr-defined]
            return decorator(wrapped_handler)

        return handler_decorator

    return method_wrapper


class Router(SubRouter):
    """SubRouter whose handlers receive a Qrequest and return plain values."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._wrap_methods()

    def _wrap_methods(self) -> None:
        """Wrap HTTP methods with request building and response rendering."""
        for method in HTTP_METHODS:
            method_name = str(method).split(".")[-1].lower()
            if hasattr(self, method_name):
                original_method = getattr(self, method_name)
                setattr(self, method_name, _create_method_wrapper(original_method))
