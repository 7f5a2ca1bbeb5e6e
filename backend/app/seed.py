"""Development seed data: a demo organization, one user per role and a sample scorecard."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_utils import hash_password
from app.config import settings
from app.models.organization import Organization, OrganizationType
from app.models.scorecard import Scorecard, ScorecardStatus
from app.models.user import User, UserRole
from app.services.access_matrix import generate_access_matrix
from app.services.scorecard_builder.assembler import Preferences, assemble_scorecard
from app.services.scorecard_builder.policy import ScorecardPolicy

logger = logging.getLogger(__name__)

DEMO_ORGANIZATION = {
    "name": "FinIQ Demo Finance",
    "code": "DEMO",
    "type": OrganizationType.NBFC.value,
    "contact_email": "ops@finiq-demo.com",
    "description": "Demonstration tenant created on first start-up",
    "regulatory_authority": "RBI",
}

DEMO_USERS = [
    {"name": "Power User", "email": "power@finiq-demo.com", "role": UserRole.POWER_USER},
    {"name": "Credit Approver", "email": "approver@finiq-demo.com", "role": UserRole.APPROVER},
    {"name": "DSA Partner", "email": "dsa@finiq-demo.com", "role": UserRole.DSA},
]

DEMO_SOURCES = ["bureau", "banking", "employment", "application"]
DEMO_WEIGHTS = {"bureau": 35, "banking": 25, "employment": 15, "application": 25}


async def seed_demo_data(db: AsyncSession) -> None:
    count = (await db.execute(select(func.count(User.id)))).scalar() or 0
    if count > 0:
        logger.info("Users already present (%d). Skipping seed.", count)
        return

    logger.info("Seeding demo organization and users...")
    org = Organization(**DEMO_ORGANIZATION)
    db.add(org)
    await db.flush()

    admin = User(
        name="Platform Admin",
        email=settings.seed_admin_email,
        hashed_password=hash_password(settings.seed_admin_password),
        role=UserRole.ADMIN.value,
        organization_id=org.id,
        access_matrix=generate_access_matrix(UserRole.ADMIN.value),
    )
    db.add(admin)
    for entry in DEMO_USERS:
        db.add(User(
            name=entry["name"],
            email=entry["email"],
            hashed_password=hash_password(settings.seed_admin_password),
            role=entry["role"].value,
            organization_id=org.id,
            access_matrix=generate_access_matrix(entry["role"].value),
        ))
    await db.flush()

    scorecard = assemble_scorecard(
        DEMO_SOURCES,
        DEMO_WEIGHTS,
        Preferences(
            institution_name=org.name,
            products=["Personal Loan"],
            segment="Salaried",
            risk_appetite="moderate",
            target_approval_rate=70,
        ),
        policy=ScorecardPolicy.from_settings(settings),
    )
    db.add(Scorecard(
        organization_id=org.id,
        name=scorecard.name,
        product=scorecard.product,
        segment=scorecard.segment,
        version=scorecard.version,
        config_json=scorecard.to_dict(),
        status=ScorecardStatus.ACTIVE.value,
        created_by=admin.id,
        approved_by=admin.id,
    ))
    await db.commit()
    logger.info("Seeded organization %s with %d users.", org.code, len(DEMO_USERS) + 1)
