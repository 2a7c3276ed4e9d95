from docshare.services.access.listing import (
    DocumentPage,
    build_document_query,
    filter_visible,
    iter_visible_documents,
    list_visible_documents,
)
from docshare.services.access.mutator import (
    Mutation,
    PermissionDelta,
    apply_delta,
    grant_group,
    grant_user,
    revoke_group,
    revoke_user,
    set_default_access,
)
from docshare.services.access.resolver import (
    effective_access,
    group_access,
    is_allowed,
    principal_group_ids,
    user_access,
)
from docshare.services.access.results import (
    AccessError,
    AccessErrorKind,
    AccessFailure,
    AccessResult,
    OwnerImmutableError,
)
from docshare.services.access.service import DocumentAccessService

__all__ = [
    "AccessError",
    "AccessErrorKind",
    "AccessFailure",
    "AccessResult",
    "DocumentAccessService",
    "DocumentPage",
    "Mutation",
    "OwnerImmutableError",
    "PermissionDelta",
    "apply_delta",
    "build_document_query",
    "effective_access",
    "filter_visible",
    "grant_group",
    "grant_user",
    "group_access",
    "is_allowed",
    "iter_visible_documents",
    "list_visible_documents",
    "principal_group_ids",
    "revoke_group",
    "revoke_user",
    "set_default_access",
    "user_access",
]
