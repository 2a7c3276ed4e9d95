from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, TypeVar
from uuid import uuid4

from docshare.core.errors import StoreConflictError, StoreUnavailableError
from docshare.domain.access import AccessLevel, CheckMode, encode_access
from docshare.domain.drafts import is_draft_group_id
from docshare.domain.permissions import (
    DocumentGroup,
    DocumentRecord,
    DocumentUser,
    PermissionState,
    Principal,
)
from docshare.services.access import mutator
from docshare.services.access.listing import (
    DocumentPage,
    build_document_query,
    list_visible_documents,
)
from docshare.services.access.resolver import effective_access, is_allowed
from docshare.services.access.results import AccessError, AccessErrorKind, AccessResult
from docshare.services.notifications import NotificationDispatcher, granted_access_event
from docshare.services.ports import UNCHANGED, DocumentStore, GroupDirectory, UserDirectory
from docshare.services.resilience import call_with_timeout
from docshare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _fail(kind: AccessErrorKind, message: str) -> AccessError:
    return AccessError(kind, message)


class DocumentAccessService:
    """Store-backed access operations for documents.

    Every operation loads the current permission state, validates the caller
    and targets, submits a minimal partial update and returns an
    ``AccessResult``. Precondition failures, store outages and conflicts all
    come back as typed failures; none of them is raised to the caller. The one
    exception is ``list_documents``, which raises ``CursorError`` for a
    malformed or tampered cursor since that is a client input error.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        groups: GroupDirectory,
        users: UserDirectory | None = None,
        notifications: NotificationDispatcher | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._store = store
        self._groups = groups
        self._users = users
        self._notifications = notifications
        self._timeout_s = timeout_s

    async def _run(self, operation: str, func: Callable[[], Awaitable[T]]) -> AccessResult[T]:
        try:
            value = await func()
        except AccessError as exc:
            increment_counter(f"access_failures_total.{exc.kind.value}")
            logger.info("access_denied operation=%s kind=%s", operation, exc.kind.value)
            return AccessResult.failure(exc.kind, exc.message)
        except StoreUnavailableError as exc:
            increment_counter("access_failures_total.store_unavailable")
            return AccessResult.failure(AccessErrorKind.STORE_UNAVAILABLE, str(exc))
        except StoreConflictError as exc:
            increment_counter("access_failures_total.conflict")
            logger.warning("access_conflict operation=%s", operation, exc_info=exc)
            return AccessResult.failure(AccessErrorKind.CONFLICT, str(exc))
        return AccessResult.success(value)

    def _timeout(self, timeout_s: float | None) -> float | None:
        return timeout_s if timeout_s is not None else self._timeout_s

    @staticmethod
    def _require_principal(principal: Principal | None) -> Principal:
        if principal is None:
            raise _fail(AccessErrorKind.UNAUTHENTICATED, "Sign in to access documents")
        return principal

    async def _load(self, document_id: str, timeout_s: float | None) -> DocumentRecord:
        document = await call_with_timeout(
            lambda: self._store.get_document(document_id),
            integration="documents.get",
            timeout_s=timeout_s,
        )
        if document is None:
            raise _fail(AccessErrorKind.NOT_FOUND, f"Document {document_id} not found")
        return document

    @staticmethod
    def _authorize(
        document: DocumentRecord,
        principal: Principal,
        required: AccessLevel,
        mode: CheckMode,
    ) -> None:
        if not is_allowed(document.state, principal, required, mode):
            raise _fail(
                AccessErrorKind.FORBIDDEN,
                f"{required.label} access to document {document.id} is required",
            )

    async def _require_group(self, group_id: str, timeout_s: float | None) -> None:
        group = None
        if not is_draft_group_id(group_id):
            group = await call_with_timeout(
                lambda: self._groups.get_group(group_id),
                integration="groups.get",
                timeout_s=timeout_s,
            )
        if group is None:
            raise _fail(AccessErrorKind.UNKNOWN_GROUP, f"Group {group_id} does not exist")

    async def _require_user(self, user_id: str, timeout_s: float | None) -> None:
        if self._users is None:
            return
        user = await call_with_timeout(
            lambda: self._users.get_user(user_id),
            integration="users.get",
            timeout_s=timeout_s,
        )
        if user is None:
            raise _fail(AccessErrorKind.NOT_FOUND, f"User {user_id} not found")

    async def _commit(
        self,
        document: DocumentRecord,
        mutation: mutator.Mutation,
        timeout_s: float | None,
    ) -> DocumentRecord:
        delta = mutation.delta
        if delta.is_empty:
            return document
        default = UNCHANGED if delta.default_access is None else encode_access(delta.default_access)
        updated = await call_with_timeout(
            lambda: self._store.update_access(
                document.id,
                users=delta.encoded_users() or None,
                groups=delta.encoded_groups() or None,
                default=default,
            ),
            integration="documents.update",
            timeout_s=timeout_s,
        )
        if updated is None:
            raise _fail(AccessErrorKind.NOT_FOUND, f"Document {document.id} no longer exists")
        return updated

    def _notify(self, document: DocumentRecord, user_id: str | None) -> None:
        if user_id is None or self._notifications is None:
            return
        self._notifications.dispatch(
            granted_access_event(target_user_id=user_id, document_id=document.id)
        )

    async def create_document(
        self,
        principal: Principal | None,
        *,
        name: str,
        document_type: str,
        draft: bool = False,
        group_ids: Iterable[str] = (),
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentRecord]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentRecord:
            owner = self._require_principal(principal)
            initial_groups = [] if draft else list(dict.fromkeys(group_ids))
            for group_id in initial_groups:
                await self._require_group(group_id, timeout_s)
            document = DocumentRecord(
                id=uuid4().hex,
                name=name,
                document_type=document_type,
                created_at=datetime.now(timezone.utc),
                state=PermissionState.for_new_document(
                    owner.user_id, draft=draft, group_ids=initial_groups
                ),
            )
            created = await call_with_timeout(
                lambda: self._store.create_document(document),
                integration="documents.create",
                timeout_s=timeout_s,
            )
            increment_counter("documents_created_total")
            logger.info(
                "document_created document_id=%s owner=%s draft=%s",
                created.id,
                owner.user_id,
                draft,
            )
            return created

        return await self._run("create_document", _op)

    async def get_document(
        self,
        principal: Principal | None,
        document_id: str,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentRecord]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentRecord:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            self._authorize(document, caller, AccessLevel.READONLY, CheckMode.ANY)
            return document

        return await self._run("get_document", _op)

    async def get_access(
        self,
        principal: Principal | None,
        document_id: str,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[AccessLevel]:
        # NONE is a valid answer here; callers decide whether to hide or redirect.
        timeout_s = self._timeout(timeout_s)

        async def _op() -> AccessLevel:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            return effective_access(document.state, caller)

        return await self._run("get_access", _op)

    async def list_documents(
        self,
        principal: Principal | None,
        *,
        document_type: str | None = None,
        drafts: bool = False,
        limit: int | None = None,
        cursor: str | None = None,
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentPage]:
        """One page of documents visible to ``principal``.

        Raises ``CursorError`` when ``cursor`` fails signature or shape checks.
        """
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentPage:
            caller = self._require_principal(principal)
            query = build_document_query(caller, document_type=document_type, drafts=drafts, limit=limit)
            return await list_visible_documents(
                self._store, caller, query=query, cursor=cursor, timeout_s=timeout_s
            )

        return await self._run("list_documents", _op)

    async def list_document_users(
        self,
        principal: Principal | None,
        document_id: str,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[list[DocumentUser]]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> list[DocumentUser]:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            self._authorize(document, caller, AccessLevel.READONLY, CheckMode.ANY)
            state = document.state
            entries = [(state.owner, AccessLevel.FULL)]
            entries.extend(sorted(state.user_grants.items()))
            rows = []
            for user_id, level in entries:
                rows.append(
                    DocumentUser(
                        id=user_id,
                        name=await self._user_name(user_id, timeout_s),
                        access=level,
                        is_owner=user_id == state.owner,
                        is_current_user=user_id == caller.user_id,
                    )
                )
            return rows

        return await self._run("list_document_users", _op)

    async def _user_name(self, user_id: str, timeout_s: float | None) -> str:
        if self._users is None:
            return user_id
        user = await call_with_timeout(
            lambda: self._users.get_user(user_id),
            integration="users.get",
            timeout_s=timeout_s,
        )
        return user.name if user is not None else user_id

    async def list_document_groups(
        self,
        principal: Principal | None,
        document_id: str,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[list[DocumentGroup]]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> list[DocumentGroup]:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            self._authorize(document, caller, AccessLevel.READONLY, CheckMode.ANY)
            rows = []
            for group_id, level in sorted(document.state.group_grants.items()):
                # Draft groups are synthetic and have no directory entry to show.
                if is_draft_group_id(group_id):
                    continue
                group = await call_with_timeout(
                    lambda: self._groups.get_group(group_id),
                    integration="groups.get",
                    timeout_s=timeout_s,
                )
                rows.append(
                    DocumentGroup(
                        id=group_id,
                        name=group.name if group is not None else group_id,
                        access=level,
                    )
                )
            return rows

        return await self._run("list_document_groups", _op)

    async def grant_user(
        self,
        principal: Principal | None,
        document_id: str,
        user_id: str,
        level: AccessLevel,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentRecord]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentRecord:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            self._authorize(document, caller, AccessLevel.EDIT, CheckMode.USER_ONLY)
            await self._require_user(user_id, timeout_s)
            mutation = mutator.grant_user(document.state, user_id, level)
            updated = await self._commit(document, mutation, timeout_s)
            increment_counter("access_user_grants_total")
            logger.info(
                "access_user_granted document_id=%s user_id=%s level=%s by=%s",
                document.id,
                user_id,
                level.label,
                caller.user_id,
            )
            self._notify(updated, mutation.notify_user_id)
            return updated

        return await self._run("grant_user", _op)

    async def revoke_user(
        self,
        principal: Principal | None,
        document_id: str,
        user_id: str,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentRecord]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentRecord:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            self._authorize(document, caller, AccessLevel.EDIT, CheckMode.USER_ONLY)
            await self._require_user(user_id, timeout_s)
            mutation = mutator.revoke_user(document.state, user_id)
            updated = await self._commit(document, mutation, timeout_s)
            increment_counter("access_user_revokes_total")
            logger.info(
                "access_user_revoked document_id=%s user_id=%s by=%s",
                document.id,
                user_id,
                caller.user_id,
            )
            return updated

        return await self._run("revoke_user", _op)

    async def grant_group(
        self,
        principal: Principal | None,
        document_id: str,
        group_id: str,
        level: AccessLevel,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentRecord]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentRecord:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            self._authorize(document, caller, AccessLevel.EDIT, CheckMode.USER_ONLY)
            await self._require_group(group_id, timeout_s)
            mutation = mutator.grant_group(document.state, group_id, level)
            updated = await self._commit(document, mutation, timeout_s)
            increment_counter("access_group_grants_total")
            logger.info(
                "access_group_granted document_id=%s group_id=%s level=%s by=%s draft_exit=%s",
                document.id,
                group_id,
                level.label,
                caller.user_id,
                document.is_draft and not updated.is_draft,
            )
            return updated

        return await self._run("grant_group", _op)

    async def revoke_group(
        self,
        principal: Principal | None,
        document_id: str,
        group_id: str,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentRecord]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentRecord:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            self._authorize(document, caller, AccessLevel.EDIT, CheckMode.USER_ONLY)
            await self._require_group(group_id, timeout_s)
            mutation = mutator.revoke_group(document.state, group_id)
            updated = await self._commit(document, mutation, timeout_s)
            increment_counter("access_group_revokes_total")
            logger.info(
                "access_group_revoked document_id=%s group_id=%s by=%s",
                document.id,
                group_id,
                caller.user_id,
            )
            return updated

        return await self._run("revoke_group", _op)

    async def set_default_access(
        self,
        principal: Principal | None,
        document_id: str,
        level: AccessLevel,
        *,
        timeout_s: float | None = None,
    ) -> AccessResult[DocumentRecord]:
        timeout_s = self._timeout(timeout_s)

        async def _op() -> DocumentRecord:
            caller = self._require_principal(principal)
            document = await self._load(document_id, timeout_s)
            # FULL is required: a default grant reaches every authenticated principal.
            self._authorize(document, caller, AccessLevel.FULL, CheckMode.USER_ONLY)
            mutation = mutator.set_default_access(document.state, level)
            updated = await self._commit(document, mutation, timeout_s)
            increment_counter("access_default_updates_total")
            logger.info(
                "access_default_updated document_id=%s level=%s by=%s",
                document.id,
                level.label,
                caller.user_id,
            )
            return updated

        return await self._run("set_default_access", _op)
