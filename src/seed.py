"""Seed a demo company and draft contracts."""

from __future__ import annotations

import random
import uuid
from datetime import date, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.entities.company import Company
from src.entities.contract import Contract, ContractStatus, ContractType

COMPANY = {
    "id": "comp_demo",
    "name": "Hanbit Bakery",
    "business_number": "123-45-67890",
    "ceo_name": "Kim Minsoo",
    "address": "12 Sejong-daero, Jung-gu, Seoul",
    "phone": "02-1234-5678",
}

WORKERS = [
    ("홍길동", "1995-03-14", "010-1111-2222", "Mapo-gu, Seoul"),
    ("Lee Seoyeon", "1999-11-02", "010-3333-4444", "Gangnam-gu, Seoul"),
    ("Park Jiho", "2001-07-21", "010-5555-6666", "Suwon, Gyeonggi"),
    ("Choi Yuna", "1988-01-30", "010-7777-8888", "Incheon"),
]

WORK_DAY_SETS = [
    ["월", "화", "수"],
    ["월", "화", "수", "목", "금"],
    ["토", "일"],
]


async def seed_data(db: AsyncSession):
    """Seed the database with one company and a handful of draft contracts."""
    db.add(Company(**COMPANY))
    await db.flush()

    today = date.today()
    for name, birth, phone, address in WORKERS:
        contract_type = random.choice(list(ContractType))
        start = today + timedelta(days=random.randint(0, 30))
        db.add(Contract(
            id=f"ctr_{uuid.uuid4().hex[:20]}",
            company_id=COMPANY["id"],
            status=ContractStatus.DRAFT.value,
            contract_type=contract_type.value,
            employer_name=COMPANY["name"],
            employer_ceo=COMPANY["ceo_name"],
            employer_address=COMPANY["address"],
            employer_phone=COMPANY["phone"],
            worker_name=name,
            worker_birth=birth,
            worker_phone=phone,
            worker_address=address,
            start_date=start,
            end_date=None if contract_type == ContractType.REGULAR else start + timedelta(days=90),
            work_days=random.choice(WORK_DAY_SETS),
            work_start="09:00",
            work_end="18:00",
            break_time=60,
            hourly_wage=random.choice([10030, 10320, 11000, 12000]),
            pay_day=random.choice([10, 15, 25]),
            special_terms=None,
        ))

    await db.commit()
