from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass

from sqlalchemy import select

from docshare.domain.models import Document
from docshare.domain.permissions import Principal
from docshare.persistence.db import get_sessionmaker
from docshare.persistence.migrations import upgrade_to_head
from docshare.persistence.repos import directory as directory_repo
from docshare.persistence.repos.directory import SqlGroupDirectory, SqlUserDirectory
from docshare.persistence.repos.documents import SqlDocumentStore
from docshare.services.access import DocumentAccessService


DEMO_DRAFT_NAME = "Untitled sketch"


@dataclass(frozen=True)
class DemoUser:
    id: str
    name: str
    group_ids: tuple[str, ...]


DEMO_GROUPS: tuple[tuple[str, str], ...] = (
    ("product", "Product"),
    ("engineering", "Engineering"),
    ("design", "Design"),
)

DEMO_USERS: tuple[DemoUser, ...] = (
    DemoUser(id="charlie.layne@example.com", name="Charlie Layne", group_ids=("product", "engineering")),
    DemoUser(id="mislav.abha@example.com", name="Mislav Abha", group_ids=("engineering",)),
    DemoUser(id="tatum.paolo@example.com", name="Tatum Paolo", group_ids=("design",)),
    DemoUser(id="anjali.wanda@example.com", name="Anjali Wanda", group_ids=("product", "design")),
)


async def seed_demo() -> int:
    await asyncio.to_thread(upgrade_to_head)
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        for group_id, name in DEMO_GROUPS:
            await directory_repo.upsert_group(session, group_id, name)
        await session.flush()
        for user in DEMO_USERS:
            await directory_repo.upsert_user(session, user.id, user.name, user.group_ids)
        await session.commit()

        owner = DEMO_USERS[0]
        existing = await session.execute(
            select(Document.id).where(Document.owner_id == owner.id, Document.name == DEMO_DRAFT_NAME).limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            print("Demo directory refreshed; draft document already present.")
            return 0

    service = DocumentAccessService(
        SqlDocumentStore(sessionmaker),
        groups=SqlGroupDirectory(sessionmaker),
        users=SqlUserDirectory(sessionmaker),
    )
    result = await service.create_document(
        Principal(user_id=owner.id, group_ids=frozenset(owner.group_ids)),
        name=DEMO_DRAFT_NAME,
        document_type="whiteboard",
        draft=True,
    )
    document = result.unwrap()
    print(f"Seeded {len(DEMO_GROUPS)} groups, {len(DEMO_USERS)} users and draft {document.id}.")
    return 0


def main() -> int:
    # Surface clear failures and exit non-zero so CI/dev scripts can detect issues.
    try:
        return asyncio.run(seed_demo())
    except Exception as exc:  # noqa: BLE001 - surface any setup or DB errors
        print(f"seed_demo failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
