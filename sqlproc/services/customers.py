"""
Paged customer listing.

Calls the ``CustomerGetAll`` stored procedure, which returns one page of
customers as a row set and the total number of matching customers in
its ``PTotalRecord`` output parameter.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..procedures import DataReader, Parameter, ParameterDirection, StoredProcedureExecutor

PROCEDURE_NAME = 'CustomerGetAll'


@dataclass
class Customer:
    customer_id: int
    customer_name: str
    email: Optional[str]
    phone_number: Optional[str]


@dataclass
class CustomerPage:
    customers: List[Customer]
    total_records: int


def read_customer(reader: DataReader) -> Customer:
    return Customer(
        customer_id=int(reader[0]),
        customer_name=reader[1],
        email=reader[2],
        phone_number=reader[3],
    )


async def get_customers_page(
    executor: StoredProcedureExecutor,
    offset: int,
    page_size: int,
    current_user_id: int,
    sort_column: Optional[str] = None,
    sort_ascending: bool = False,
    active: bool = True,
    is_appointment: bool = False,
    search_text: Optional[str] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> CustomerPage:
    """Fetch one page of customers visible to ``current_user_id``.

    Raises:
        ValueError: If ``offset`` is negative or ``page_size`` is not positive.
    """
    if offset < 0:
        raise ValueError(f"offset must be >= 0, got {offset}")
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0, got {page_size}")
    total = Parameter('PTotalRecord', direction=ParameterDirection.OUTPUT, type=int)
    parameters = [
        total,
        Parameter('POffset', offset),
        Parameter('PPageSize', page_size),
        Parameter('PSortColumn', sort_column),
        Parameter('PCurrentUserId', current_user_id),
        Parameter('PSortAscending', sort_ascending),
        Parameter('PActive', active),
        Parameter('PIsAppointment', is_appointment),
        Parameter('PSearchText', search_text),
    ]
    customers = await executor.execute_set(PROCEDURE_NAME, parameters, read_customer, cancel_event=cancel_event)
    total_records = int(total.value) if total.value is not None else len(customers)
    logging.info('[customers] page loaded', extra={'count': len(customers), 'total': total_records})
    return CustomerPage(customers=customers, total_records=total_records)
