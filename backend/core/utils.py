import math
from typing import Optional


def to_amount(value) -> float:
    """Normalises a monetary value to two decimals."""
    return round(float(value or 0.0), 2)


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page":  page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


async def paginate(
    collection,
    query: dict,
    page: int,
    limit: int,
    sort: Optional[list] = None,
) -> tuple[list, dict]:
    """
    Runs a paged find on a Motor collection.
    Returns (documents, pagination) where pagination follows {page, limit, total, pages}.
    """
    skip = (page - 1) * limit
    cursor = collection.find(query, {"_id": 0})
    if sort:
        cursor = cursor.sort(sort)
    docs = await cursor.skip(skip).limit(limit).to_list(length=limit)
    total = await collection.count_documents(query)
    return docs, pagination_meta(page, limit, total)
