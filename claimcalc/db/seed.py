"""Standard Head of Damage codes for UK property claims."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from claimcalc.db.models import HODCodeModel

logger = logging.getLogger(__name__)

# (code, description, category, sub_category, rate_low, rate_high, unit_type, notes)
STANDARD_HOD_CODES: list[tuple[str, str, str, str, str, str, str, str]] = [
    # Building damage
    ("B001", "Roof tiles - concrete/clay replacement", "building", "roofing", "45.00", "85.00", "per_square_metre", "Including battens and felt where necessary"),
    ("B002", "Roof tiles - slate replacement", "building", "roofing", "120.00", "180.00", "per_square_metre", "Natural slate including fixings"),
    ("B003", "Guttering and downpipes replacement", "building", "roofing", "35.00", "55.00", "per_metre", "PVC or cast iron systems"),
    ("B004", "Windows - double glazed unit replacement", "building", "glazing", "180.00", "350.00", "per_square_metre", "Standard white UPVC frame"),
    ("B005", "External doors - front door replacement", "building", "doors", "800.00", "2500.00", "per_item", "Including frame and ironmongery"),
    ("B006", "Internal doors replacement", "building", "doors", "150.00", "400.00", "per_item", "Including hanging and ironmongery"),
    ("B007", "Flooring - carpet replacement", "building", "flooring", "25.00", "65.00", "per_square_metre", "Standard domestic carpet and underlay"),
    ("B008", "Flooring - laminate replacement", "building", "flooring", "35.00", "85.00", "per_square_metre", "Including underlay and installation"),
    ("B009", "Wall finishes - plaster repair and redecoration", "building", "decorating", "45.00", "75.00", "per_square_metre", "Including preparation and two coats"),
    ("B010", "Kitchen units replacement", "building", "kitchen", "350.00", "800.00", "per_metre", "Standard range including worktops"),
    ("B011", "Bathroom suite replacement", "building", "bathroom", "1200.00", "3500.00", "per_item", "Basin, WC, bath/shower, tiling"),
    ("B012", "Central heating radiator", "building", "heating", "180.00", "350.00", "per_item", "Including pipework and TRV"),
    # Contents
    ("C001", "Furniture - three piece suite", "contents", "furniture", "800.00", "2500.00", "per_item", "Standard domestic suite"),
    ("C002", "Furniture - dining table and chairs", "contents", "furniture", "400.00", "1200.00", "per_item", "Table plus 4-6 chairs"),
    ("C003", "Furniture - bedroom furniture set", "contents", "furniture", "600.00", "1800.00", "per_item", "Bed, wardrobe, chest of drawers"),
    ("C004", "Electrical - television", "contents", "electrical", "300.00", "1500.00", "per_item", "Based on screen size and features"),
    ("C005", "Electrical - washing machine", "contents", "electrical", "350.00", "800.00", "per_item", "Standard domestic machine"),
    ("C006", "Electrical - refrigerator/freezer", "contents", "electrical", "400.00", "1000.00", "per_item", "Fridge freezer combination"),
    ("C007", "Clothing - adult wardrobe", "contents", "personal", "800.00", "2500.00", "per_item", "Complete seasonal wardrobe"),
    ("C008", "Clothing - child wardrobe", "contents", "personal", "300.00", "800.00", "per_item", "Age-appropriate clothing"),
    ("C009", "Books and media collection", "contents", "personal", "500.00", "2000.00", "per_item", "Personal library and media"),
    ("C010", "Kitchen utensils and crockery", "contents", "kitchen", "200.00", "600.00", "per_item", "Complete kitchen equipment"),
    # Alternative accommodation
    ("A001", "Hotel accommodation", "alternative", "accommodation", "80.00", "200.00", "per_night", "Per room per night including breakfast"),
    ("A002", "Rental property", "alternative", "accommodation", "150.00", "400.00", "per_night", "Self-catering accommodation"),
    ("A003", "Storage costs", "alternative", "storage", "25.00", "65.00", "per_week", "Containerised storage per week"),
    ("A004", "Removal costs", "alternative", "removal", "350.00", "800.00", "per_item", "Professional removal service"),
    ("A005", "Excess travel costs", "alternative", "travel", "0.45", "0.65", "per_mile", "Additional travel costs per mile"),
    # Professional fees
    ("P001", "Loss Adjuster fees", "professional_fees", "adjusting", "8.0", "15.0", "percentage", "Percentage of settlement"),
    ("P002", "Building Surveyor fees", "professional_fees", "surveying", "800.00", "2000.00", "per_item", "Survey and specification"),
    ("P003", "Structural Engineer fees", "professional_fees", "engineering", "1200.00", "3000.00", "per_item", "Structural assessment and design"),
    ("P004", "Architect fees", "professional_fees", "design", "5.0", "12.0", "percentage", "Percentage of building works"),
    ("P005", "Quantity Surveyor fees", "professional_fees", "quantity_surveying", "2.0", "5.0", "percentage", "Cost planning and monitoring"),
    ("P006", "Legal fees", "professional_fees", "legal", "200.00", "500.00", "per_hour", "Solicitor hourly rate"),
    ("P007", "Project management fees", "professional_fees", "management", "3.0", "8.0", "percentage", "Project management and coordination"),
]


async def seed_hod_codes(session: AsyncSession) -> int:
    """Insert any standard HOD codes not already present.

    Returns:
        Number of codes inserted
    """
    existing = set((await session.execute(select(HODCodeModel.code))).scalars())

    inserted = 0
    for code, description, category, sub_category, low, high, unit_type, notes in STANDARD_HOD_CODES:
        if code in existing:
            continue
        session.add(
            HODCodeModel(
                code=code,
                description=description,
                category=category,
                sub_category=sub_category,
                typical_rate_low=Decimal(low),
                typical_rate_high=Decimal(high),
                unit_type=unit_type,
                is_active=True,
                notes=notes,
            )
        )
        inserted += 1

    await session.flush()
    logger.info("Seeded %d HOD codes (%d already present)", inserted, len(existing))
    return inserted
