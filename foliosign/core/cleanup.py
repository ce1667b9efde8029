"""
Session-scoped guest cleanup queue.

A viewer session enqueues the guest documents it created and dequeues the
ones the user keeps working on. When the session ends (navigation away,
tab hidden, ...) the queue is flushed as one bulk cleanup call.

Event sources are explicit subscribe functions that may return an
unsubscribe function:

    triggers     receive `queue.flush`    (page hidden, navigation, blur)
    id_sources   receive `queue.enqueue`  (ids announced by other tabs)

A single document can also be removed right away with `cleanup_document`,
which goes through `delete_fn` (usually `FolioSignClient.delete_document`)
instead of the bulk endpoint:

    with FolioSignClient(base_url) as api:
        queue = CleanupQueue(
            api.cleanup_guest_documents,
            triggers=[page_hidden.subscribe],
            id_sources=[other_tabs.subscribe],
            delete_fn=api.delete_document,
        )
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

FlushFn = Callable[[List[str]], List[Dict[str, Any]]]
DeleteFn = Callable[[str], Any]
Trigger = Callable[[Callable[[], Any]], Optional[Callable[[], None]]]
IdSource = Callable[[Callable[[str], None]], Optional[Callable[[], None]]]


class CleanupQueue:
    def __init__(
        self,
        flush_fn: FlushFn,
        triggers: Iterable[Trigger] = (),
        id_sources: Iterable[IdSource] = (),
        delete_fn: Optional[DeleteFn] = None,
    ):
        self._flush_fn = flush_fn
        self._delete_fn = delete_fn
        self._queue: List[str] = []
        self._processing = False
        self._unsubscribers: List[Callable[[], None]] = []
        for subscribe in triggers:
            self._attach(subscribe(self.flush))
        for subscribe in id_sources:
            self._attach(subscribe(self.enqueue))

    def _attach(self, unsubscribe: Optional[Callable[[], None]]) -> None:
        if unsubscribe is not None:
            self._unsubscribers.append(unsubscribe)

    def enqueue(self, document_id: str) -> None:
        if not document_id:
            return
        if document_id not in self._queue:
            self._queue.append(document_id)
            logger.debug("[cleanup] queued %s", document_id)

    def dequeue(self, document_id: str) -> None:
        """Keep a document the user is actively using."""
        if document_id in self._queue:
            self._queue.remove(document_id)
            logger.debug("[cleanup] unqueued %s", document_id)

    @property
    def pending(self) -> List[str]:
        return list(self._queue)

    def flush(self) -> List[Dict[str, Any]]:
        """
        Send every queued id to the cleanup endpoint once.

        Re-entrant calls (a second trigger firing mid-flush) and empty
        queues return an empty list. A transport failure is logged and
        reported as a failed result per id; ids are not re-queued.
        """
        if self._processing or not self._queue:
            return []

        self._processing = True
        batch, self._queue = self._queue, []
        try:
            results = self._flush_fn(batch)
        except Exception as e:
            logger.error("[cleanup] failed to process cleanup queue: %s", e)
            results = [{"id": doc_id, "success": False, "error": str(e)} for doc_id in batch]
        finally:
            self._processing = False

        for r in results:
            if r.get("success"):
                logger.info("[cleanup] cleaned up document %s", r.get("id"))
            else:
                logger.warning("[cleanup] failed to clean up document %s: %s", r.get("id"), r.get("error"))
        return results

    def cleanup_document(self, document_id: str) -> bool:
        """
        Delete one document now through `delete_fn`, outside the batch.
        Returns False (and logs) when the delete fails.
        """
        if self._delete_fn is None:
            raise RuntimeError("CleanupQueue was created without a delete_fn")
        self.dequeue(document_id)
        try:
            self._delete_fn(document_id)
        except Exception as e:
            logger.error("[cleanup] failed to clean up document %s: %s", document_id, e)
            return False
        logger.info("[cleanup] cleaned up document %s", document_id)
        return True

    def close(self) -> None:
        """Detach from all triggers (end of the owning session)."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
