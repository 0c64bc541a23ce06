"""Tenant and identity bound to a request."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.core.settings import Settings
    from app.repositories.taganno import TagAnnoRepository


@dataclass
class Conf:
    """A conference: session namespace, cookie policy and storage."""

    session_key: str | None = None
    session_domain: str = ""
    session_secure: bool = False
    session_samesite: str | None = "Lax"
    chair_emails: frozenset[str] = field(default_factory=frozenset)
    tag_annos: "TagAnnoRepository | None" = None

    @classmethod
    def from_settings(cls, st: "Settings", tag_annos: "TagAnnoRepository | None" = None) -> "Conf":
        return cls(
            session_key=st.CONF_SESSION_KEY,
            session_domain=st.SESSION_DOMAIN,
            session_secure=st.SESSION_SECURE,
            session_samesite=st.SESSION_SAMESITE or None,
            chair_emails=frozenset(e.lower() for e in st.CHAIR_EMAILS),
            tag_annos=tag_annos,
        )

    def contact(self, email: str | None, contact_id: int = 0) -> "Contact":
        """Identity for a signed-in email, or the anonymous user."""
        if not email:
            return Contact(conf=self)
        return Contact(
            conf=self,
            contact_id=contact_id,
            email=email,
            is_chair=email.lower() in self.chair_emails,
        )


@dataclass
class Contact:
    conf: Conf
    contact_id: int = 0
    email: str | None = None
    is_chair: bool = False

    @property
    def is_signed_in(self) -> bool:
        return self.email is not None

    def can_edit_tag_anno(self, tag: str) -> bool:
        # private tags carry their owner's id: "<contact_id>~name"
        owner, twiddle, _ = tag.partition("~")
        if twiddle and owner.isdigit():
            return self.contact_id > 0 and int(owner) == self.contact_id
        return self.is_chair
