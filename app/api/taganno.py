"""Tag annotation API: read and batch-edit the annotations of one tag."""

import re
from typing import Any

import orjson
from pydantic import ValidationError

from app.core.context import Contact
from app.core.logger import LogIcon, logger
from app.core.request import Qrequest
from app.core.router import Router
from app.models.messages import MessageItem, make_error_json, message_list_json
from app.models.taganno import Statement, TagAnnoChange
from app.services.tagger import Tagger, TagFlags

router = Router(__file__, prefix="/api")

NUMERIC_RE = re.compile(r"\A[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\Z")

BAD_REQUEST = {"ok": False, "error": "Bad request"}


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else ""
    return value if isinstance(value, str) else str(value)


def _checked_tag(user: Contact, qreq: Qrequest) -> tuple[str | None, Tagger]:
    tagger = Tagger(user)
    raw = qreq.get("tag")
    return tagger.check(raw if isinstance(raw, str) else None, TagFlags.NOVALUE), tagger


def taganno_get(user: Contact, qreq: Qrequest) -> dict:
    tag, tagger = _checked_tag(user, qreq)
    if not tag:
        return make_error_json(tagger.error_ftext())
    annos = user.conf.tag_annos.order_anno_list(tag)
    return {
        "ok": True,
        "tag": tag,
        "editable": user.can_edit_tag_anno(tag),
        "anno": [anno.as_json() for anno in annos if anno.annoid is not None],
    }


def taganno_set(user: Contact, qreq: Qrequest) -> dict:
    """Apply a batch of annotation changes, then return the stored state.

    Field errors reject the whole batch; nothing is written.
    """
    tag, tagger = _checked_tag(user, qreq)
    if not tag:
        return make_error_json(tagger.error_ftext())
    if not user.can_edit_tag_anno(tag):
        logger.info("Annotation edit denied", icon=LogIcon.FORBIDDEN, tag=tag)
        return {"ok": False, "error": "Permission error"}
    raw = qreq.get("anno")
    try:
        reqanno = orjson.loads(raw if isinstance(raw, str) else "")
    except orjson.JSONDecodeError:
        return BAD_REQUEST
    if isinstance(reqanno, dict):
        reqanno = [reqanno]
    elif not isinstance(reqanno, list):
        return BAD_REQUEST

    repo = user.conf.tag_annos
    statements: list[Statement] = []
    messages: list[MessageItem] = []
    next_annoid = repo.next_anno_id(tag)

    for position, row in enumerate(reqanno, start=1):
        try:
            change = TagAnnoChange.model_validate(row)
        except ValidationError:
            return BAD_REQUEST
        if change.deleted:
            if not change.is_new:
                statements.append(Statement("DELETE FROM PaperTagAnno WHERE tag = ? AND annoId = ?", (tag, change.annoid)))
            continue
        if change.is_new:
            annoid = next_annoid
            next_annoid += 1
            statements.append(Statement("INSERT INTO PaperTagAnno (tag, annoId) VALUES (?, ?)", (tag, annoid)))
        else:
            annoid = change.annoid
        annokey = change.key if change.key is not None else position

        assignments: list[str] = []
        values: list[Any] = []
        if change.legend is not None:
            assignments += ["heading = ?", "annoFormat = ?"]
            values += [_text(change.legend), None]
        if change.tagval is not None:
            tagval = _text(change.tagval).strip() or "0"
            if NUMERIC_RE.match(tagval):
                assignments.append("tagIndex = ?")
                values.append(float(tagval))
            else:
                messages.append(MessageItem.error("Tag value should be a number", field=f"ta/{annokey}/tagval"))
        if info := change.info():
            assignments.append("infoJson = ?")
            values.append(orjson.dumps(info).decode())
        elif assignments:
            assignments.append("infoJson = ?")
            values.append(None)
        if assignments:
            statements.append(Statement(
                f"UPDATE PaperTagAnno SET {', '.join(assignments)} WHERE tag = ? AND annoId = ?",
                (*values, tag, annoid),
            ))

    if messages:
        logger.info("Annotation batch rejected", icon=LogIcon.VALIDATION, tag=tag, messages=len(messages))
        return {"ok": False, "message_list": message_list_json(messages)}
    repo.execute_batch(statements)
    return taganno_get(user, qreq)


@router.get("/taganno")
async def get_taganno(qreq: Qrequest) -> dict:
    """Annotations of the requested tag."""
    return taganno_get(qreq.user(), qreq)


@router.post("/taganno")
async def set_taganno(qreq: Qrequest) -> dict:
    """Edit annotations of the requested tag; requires a valid post token."""
    if not qreq.valid_post():
        return {"ok": False, "error": "Missing credentials"}
    return taganno_set(qreq.user(), qreq)
