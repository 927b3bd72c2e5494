from student_portal_client.session.kv_store import KeyValueStore
from student_portal_client.session.models import Session
from student_portal_client.session.store import STORE_ERRORS, SessionStore

__all__ = [
    "STORE_ERRORS",
    "KeyValueStore",
    "Session",
    "SessionStore",
]
