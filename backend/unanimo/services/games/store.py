"""Persistence collaborator: whole-session snapshots with compare-and-swap.

``save`` only succeeds when the stored version still equals the version the
caller loaded, and then bumps it. A losing writer gets a
:class:`PersistenceError` and nothing of its transition is kept.
"""

import json
import logging
import threading
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from unanimo import db
from unanimo.errors import PersistenceError
from unanimo.models import GameSession
from .state import Session

log = logging.getLogger(__name__)


class SessionStore:
    def load(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    def save(self, session: Session) -> None:
        raise NotImplementedError

    def exists(self, session_id: str) -> bool:
        raise NotImplementedError

    def delete(self, session_id: str) -> None:
        raise NotImplementedError

    def session_ids(self) -> List[str]:
        raise NotImplementedError


def _serialize(session: Session, version: int) -> str:
    payload = session.to_dict()
    payload['version'] = version
    return json.dumps(payload)


class InMemorySessionStore(SessionStore):
    """Process-local store. Keeps serialized snapshots so callers never share objects."""

    def __init__(self):
        self._rows: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, session_id):
        with self._lock:
            raw = self._rows.get(session_id)
        if raw is None:
            return None
        return Session.from_dict(json.loads(raw))

    def save(self, session):
        with self._lock:
            raw = self._rows.get(session.id)
            stored_version = json.loads(raw)['version'] if raw is not None else 0
            if raw is not None and session.version == 0:
                raise PersistenceError(f'Session {session.id} already exists')
            if stored_version != session.version:
                log.warning(f"[persist-conflict] session={session.id} stored={stored_version} have={session.version}")
                raise PersistenceError('Session was modified concurrently; reload and retry')
            self._rows[session.id] = _serialize(session, session.version + 1)
        session.version += 1

    def exists(self, session_id):
        with self._lock:
            return session_id in self._rows

    def delete(self, session_id):
        with self._lock:
            self._rows.pop(session_id, None)

    def session_ids(self):
        with self._lock:
            return list(self._rows)


class SqlSessionStore(SessionStore):
    """Flask-SQLAlchemy backed store; requires an application context."""

    def load(self, session_id):
        try:
            row = GameSession.query.filter_by(code=session_id).first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'Could not load session {session_id}') from exc
        if row is None:
            return None
        try:
            session = Session.from_dict(json.loads(row.state))
        except (ValueError, KeyError) as exc:
            raise PersistenceError(f'Stored session {session_id} is unreadable') from exc
        session.version = row.version
        return session

    def save(self, session):
        new_version = session.version + 1
        payload = _serialize(session, new_version)
        try:
            if session.version == 0:
                if GameSession.query.filter_by(code=session.id).first() is not None:
                    raise PersistenceError(f'Session {session.id} already exists')
                db.session.add(GameSession(
                    code=session.id,
                    status=session.status,
                    state=payload,
                    version=new_version,
                    created_at=session.created_at,
                    updated_at=session.updated_at,
                ))
            else:
                updated = GameSession.query.filter_by(code=session.id, version=session.version).update(
                    {
                        'status': session.status,
                        'state': payload,
                        'version': new_version,
                        'updated_at': session.updated_at,
                    },
                    synchronize_session=False,
                )
                if updated != 1:
                    db.session.rollback()
                    log.warning(f"[persist-conflict] session={session.id} have={session.version}")
                    raise PersistenceError('Session was modified concurrently; reload and retry')
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'Could not save session {session.id}') from exc
        session.version = new_version

    def exists(self, session_id):
        try:
            return GameSession.query.filter_by(code=session_id).first() is not None
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'Could not look up session {session_id}') from exc

    def delete(self, session_id):
        try:
            GameSession.query.filter_by(code=session_id).delete()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'Could not delete session {session_id}') from exc

    def session_ids(self):
        return [code for (code,) in db.session.query(GameSession.code).all()]
