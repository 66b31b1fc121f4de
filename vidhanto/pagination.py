import math

from fastapi import Query


class PageParams:
    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def paginate(query, params: PageParams) -> dict:
    total = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.limit).all()
    return {
        "items": items,
        "total": total,
        "page": params.page,
        "pages": math.ceil(total / params.limit) if total else 0,
    }
