# core/store.py
"""
Document store used by the payment intake flow.

Two implementations share one async interface:

* ``FirestoreDocumentStore`` wraps the firebase-admin Firestore client and
  runs read-modify-writes through ``@firestore.transactional``.
* ``MemoryDocumentStore`` keeps documents in a lock-guarded dict. Writes made
  inside a transaction are buffered and committed together, so a failing
  transaction leaves nothing behind.
"""
import asyncio
import copy
import logging
import threading
import uuid
from collections import defaultdict
from functools import partial
from typing import Any, Callable, Dict, Optional, TypeVar

from google.api_core import exceptions as gcp_exceptions
from firebase_admin import firestore

from app.core.errors import NotFound

logger = logging.getLogger("campusflow.store")

T = TypeVar("T")


async def run_blocking(fn, *args, **kwargs):
    """Run a blocking SDK call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(fn, *args, **kwargs))


class TransactionView:
    """What a transaction callback may do: read first, then write."""

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError


class DocumentStore:
    backend_name = "abstract"

    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        raise NotImplementedError

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def run_transaction(self, fn: Callable[[TransactionView], T]) -> T:
        """Run ``fn`` as one atomic read-modify-write and return its result."""
        raise NotImplementedError


# --------------------------------------------------------------
# Firestore
# --------------------------------------------------------------
class _FirestoreTransaction(TransactionView):
    def __init__(self, db, transaction):
        self._db = db
        self._transaction = transaction

    def _ref(self, collection, doc_id):
        return self._db.collection(collection).document(doc_id)

    def get(self, collection, doc_id):
        snap = self._ref(collection, doc_id).get(transaction=self._transaction)
        return snap.to_dict() if snap.exists else None

    def set(self, collection, doc_id, data, merge=False):
        self._transaction.set(self._ref(collection, doc_id), data, merge=merge)

    def update(self, collection, doc_id, data):
        self._transaction.update(self._ref(collection, doc_id), data)


class FirestoreDocumentStore(DocumentStore):
    backend_name = "firestore"

    def __init__(self, db):
        self.db = db

    async def create(self, collection, data, doc_id=None):
        col = self.db.collection(collection)
        ref = col.document(doc_id) if doc_id else col.document()
        await run_blocking(ref.set, data)
        return ref.id

    async def get(self, collection, doc_id):
        snap = await run_blocking(self.db.collection(collection).document(doc_id).get)
        return snap.to_dict() if snap.exists else None

    async def set(self, collection, doc_id, data, merge=False):
        await run_blocking(self.db.collection(collection).document(doc_id).set, data, merge=merge)

    async def update(self, collection, doc_id, data):
        try:
            await run_blocking(self.db.collection(collection).document(doc_id).update, data)
        except gcp_exceptions.NotFound:
            raise NotFound(f"{collection}/{doc_id} not found")

    async def run_transaction(self, fn):
        def _run():
            @firestore.transactional
            def txn(transaction):
                return fn(_FirestoreTransaction(self.db, transaction))

            return txn(self.db.transaction())

        return await run_blocking(_run)


# --------------------------------------------------------------
# In-memory
# --------------------------------------------------------------
class _MemoryTransaction(TransactionView):
    def __init__(self, store: "MemoryDocumentStore"):
        self._store = store
        self._writes = []

    def get(self, collection, doc_id):
        doc = self._store._collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def set(self, collection, doc_id, data, merge=False):
        self._writes.append(("set", collection, doc_id, copy.deepcopy(data), merge))

    def update(self, collection, doc_id, data):
        if doc_id not in self._store._collections[collection]:
            raise NotFound(f"{collection}/{doc_id} not found")
        self._writes.append(("update", collection, doc_id, copy.deepcopy(data), True))

    def commit(self):
        for _op, collection, doc_id, data, merge in self._writes:
            self._store._write(collection, doc_id, data, merge)


class MemoryDocumentStore(DocumentStore):
    backend_name = "memory"

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._lock = threading.RLock()

    def _write(self, collection, doc_id, data, merge):
        docs = self._collections[collection]
        if merge and doc_id in docs:
            docs[doc_id].update(data)
        else:
            docs[doc_id] = data

    async def create(self, collection, data, doc_id=None):
        doc_id = doc_id or uuid.uuid4().hex[:20]
        with self._lock:
            self._write(collection, doc_id, copy.deepcopy(data), merge=False)
        return doc_id

    async def get(self, collection, doc_id):
        with self._lock:
            doc = self._collections[collection].get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection, doc_id, data, merge=False):
        with self._lock:
            self._write(collection, doc_id, copy.deepcopy(data), merge)

    async def update(self, collection, doc_id, data):
        with self._lock:
            if doc_id not in self._collections[collection]:
                raise NotFound(f"{collection}/{doc_id} not found")
            self._write(collection, doc_id, copy.deepcopy(data), merge=True)

    def _run_locked(self, fn):
        with self._lock:
            txn = _MemoryTransaction(self)
            result = fn(txn)
            txn.commit()
            return result

    async def run_transaction(self, fn):
        # Worker thread so concurrent callers really contend for the lock.
        return await asyncio.to_thread(self._run_locked, fn)
